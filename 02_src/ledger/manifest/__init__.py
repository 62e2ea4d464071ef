"""Manifest module."""

from .resolver import MANIFEST_KIND, IManifestResolver, ManifestResolver

__all__ = ["IManifestResolver", "ManifestResolver", "MANIFEST_KIND"]
