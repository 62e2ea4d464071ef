"""Execution context module."""

from .execution_context import CryptoToolkit, ExecutionContext

__all__ = ["CryptoToolkit", "ExecutionContext"]
