"""Parser for legacy ``packages.config`` files."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import PurePosixPath

import structlog

from nugsentinel.engines.reference_scanner.models import ManifestParseResult
from nugsentinel.engines.reference_scanner.registry import register_parser
from nugsentinel.models import PackageReference, SourceKind

log = structlog.get_logger("nugsentinel.engine")


def extract_packages_config(
    content: str | None,
    repository_name: str,
    project_path: str,
    project_name: str,
    packages_config_path: str | None = None,
) -> list[PackageReference]:
    """Extract ``<package id version>`` entries attributed to *project_path*."""
    if not content or not content.strip():
        return []

    try:
        root = ET.fromstring(content.lstrip("\ufeff"))
    except ET.ParseError as exc:
        log.warning("scanner.packages_config_parse_failed", project=project_path, error=str(exc))
        return []

    refs: list[PackageReference] = []
    for element in root.iter("package"):
        package_id = (element.get("id") or "").strip()
        if not package_id:
            continue
        version = element.get("version")
        refs.append(
            PackageReference(
                name=package_id,
                declared_version=version.strip() if version else None,
                project_path=project_path,
                repository_name=repository_name,
                project_name=project_name,
                source_kind=SourceKind.PACKAGES_CONFIG,
                packages_config_path=packages_config_path,
                line_number=len(refs) + 1,
            )
        )

    log.debug("scanner.packages_config_parsed", project=project_path, count=len(refs))
    return refs


def find_colocated_project(packages_config_path: str, project_paths: Iterable[str]) -> str | None:
    """The project file that lives in the same directory as *packages_config_path*."""
    directory = str(PurePosixPath(packages_config_path.replace("\\", "/")).parent).casefold()
    for path in project_paths:
        if str(PurePosixPath(path.replace("\\", "/")).parent).casefold() == directory:
            return path
    return None


class PackagesConfigParser:
    """Parses entries against the config path itself.

    The scanner re-attributes them to the co-located project.
    """

    detection_method = "packages-config"
    file_patterns = ["**/packages.config"]

    def parse(self, file_path: str, content: str, repository_name: str) -> ManifestParseResult:
        refs = extract_packages_config(
            content,
            repository_name,
            project_path=file_path,
            project_name=PurePosixPath(file_path).parent.name or "Unknown",
            packages_config_path=file_path,
        )
        return ManifestParseResult(
            path=file_path, detection_method=self.detection_method, references=refs
        )


register_parser(PackagesConfigParser())
