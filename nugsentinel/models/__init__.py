"""Shared data models passed between the scanner, resolver and engines."""

from nugsentinel.models.references import (
    PackageReference,
    RegistryInfo,
    SourceKind,
    SourceProjectCandidate,
)

__all__ = ["PackageReference", "RegistryInfo", "SourceKind", "SourceProjectCandidate"]
