"""Parser registry: discover .NET manifest files and match them to parsers."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from nugsentinel.engines.reference_scanner.models import ManifestParseResult

# Build output and VCS metadata never hold source manifests.
IGNORED_DIRECTORIES = frozenset({".git", "bin", "obj", "node_modules"})


@runtime_checkable
class ManifestParser(Protocol):
    """Interface that every manifest parser must satisfy."""

    detection_method: str
    file_patterns: list[str]

    def parse(self, file_path: str, content: str, repository_name: str) -> ManifestParseResult: ...


PARSER_REGISTRY: dict[str, ManifestParser] = {}


def register_parser(parser: ManifestParser) -> None:
    """Register a parser instance by its detection_method."""
    PARSER_REGISTRY[parser.detection_method] = parser


def relative_path(repo_path: Path, file_path: Path) -> str:
    """``/``-prefixed POSIX path of *file_path* inside *repo_path*."""
    return "/" + file_path.relative_to(repo_path).as_posix()


def _name_pattern(pattern: str) -> str:
    return pattern.rsplit("/", 1)[-1]


def discover_manifests(repo_path: Path) -> list[tuple[ManifestParser, Path]]:
    """Walk *repo_path* once and pair each manifest file with its parser.

    Ignored directories are pruned, not descended into. Results are sorted by
    path; a file matched by several parsers goes to the first registered one.
    """
    by_pattern = [
        (_name_pattern(pattern), parser)
        for parser in PARSER_REGISTRY.values()
        for pattern in parser.file_patterns
    ]

    matches: list[tuple[ManifestParser, Path]] = []
    for dirpath, dirnames, filenames in os.walk(repo_path):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRECTORIES)
        for filename in sorted(filenames):
            parser = next(
                (p for pat, p in by_pattern if fnmatch.fnmatchcase(filename, pat)), None
            )
            if parser is not None:
                matches.append((parser, Path(dirpath) / filename))
    matches.sort(key=lambda pair: pair[1].relative_to(repo_path).as_posix())
    return matches
