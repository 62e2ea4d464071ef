"""Bootstrap module."""

from .executors import (
    EntryPoint,
    ICodeExecutor,
    PythonSourceExecutor,
    RegistryExecutor,
    code_digest,
    entry_point_source,
    invoke_entry_point,
)
from .loader import (
    BOOT_EVENT_KIND,
    FUNCTION_KIND,
    BootAttempt,
    BootResult,
    BootState,
    BootstrapLoader,
)

__all__ = [
    "BootstrapLoader",
    "BootState",
    "BootAttempt",
    "BootResult",
    "BOOT_EVENT_KIND",
    "FUNCTION_KIND",
    "EntryPoint",
    "ICodeExecutor",
    "PythonSourceExecutor",
    "RegistryExecutor",
    "code_digest",
    "entry_point_source",
    "invoke_entry_point",
]
