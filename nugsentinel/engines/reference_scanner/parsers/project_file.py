"""Parser for SDK-style and legacy .NET project files (csproj, vbproj, fsproj)."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import PurePosixPath

import structlog

from nugsentinel.core.errors import PackageExtractionError
from nugsentinel.engines.reference_scanner.models import ManifestParseResult
from nugsentinel.engines.reference_scanner.registry import register_parser
from nugsentinel.models import PackageReference, SourceKind

log = structlog.get_logger("nugsentinel.engine")

_PACKAGE_REFERENCE_RE = re.compile(
    r"<PackageReference\s+[^>]*Include\s*=\s*[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE
)
_VERSION_RE = re.compile(r"(?<![\w.-])Version\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
_VERSION_OVERRIDE_RE = re.compile(r"VersionOverride\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local(child.tag) == name and child.text and child.text.strip():
            return child.text.strip()
    return None


def _line_number(content: str, package_name: str) -> int:
    needles = (f'Include="{package_name}"', f"Include='{package_name}'")
    for index, line in enumerate(content.split("\n"), start=1):
        if any(n in line for n in needles):
            return index
    return 0


def _extract_xml(
    content: str, repository_name: str, project_path: str, project_name: str
) -> list[PackageReference]:
    root = ET.fromstring(content)
    refs: list[PackageReference] = []
    for element in root.iter():
        if not isinstance(element.tag, str) or _local(element.tag) != "PackageReference":
            continue
        name = (element.get("Include") or "").strip()
        if not name:
            continue
        version = (
            element.get("Version")
            or element.get("VersionOverride")
            or _child_text(element, "Version")
            or _child_text(element, "VersionOverride")
        )
        refs.append(
            PackageReference(
                name=name,
                declared_version=version.strip() if version else None,
                project_path=project_path,
                repository_name=repository_name,
                project_name=project_name,
                source_kind=SourceKind.PROJECT_FILE,
                line_number=_line_number(content, name),
            )
        )
    return refs


def _extract_regex(
    content: str, repository_name: str, project_path: str, project_name: str
) -> list[PackageReference]:
    refs: list[PackageReference] = []
    for index, line in enumerate(content.split("\n"), start=1):
        for m in _PACKAGE_REFERENCE_RE.finditer(line):
            tag = m.group(0)
            version_m = _VERSION_RE.search(tag) or _VERSION_OVERRIDE_RE.search(tag)
            refs.append(
                PackageReference(
                    name=m.group(1).strip(),
                    declared_version=version_m.group(1).strip() if version_m else None,
                    project_path=project_path,
                    repository_name=repository_name,
                    project_name=project_name,
                    source_kind=SourceKind.PROJECT_FILE,
                    line_number=index,
                )
            )
    return refs


def extract_package_references(
    content: str,
    repository_name: str,
    project_path: str,
    project_name: str | None = None,
) -> list[PackageReference]:
    """Extract ``<PackageReference>`` entries from a project file.

    Malformed XML falls back to a line-by-line regex scan.  A package listed
    more than once (e.g. in two ``ItemGroup`` blocks) keeps its first
    occurrence.
    """
    if not content or not content.strip():
        log.debug("scanner.empty_project", project=project_path)
        return []

    project_name = project_name or PurePosixPath(project_path).stem or "Unknown"
    content = content.lstrip("\ufeff")

    try:
        refs = _extract_xml(content, repository_name, project_path, project_name)
    except ET.ParseError as exc:
        log.warning("scanner.xml_parse_failed", project=project_path, error=str(exc))
        try:
            refs = _extract_regex(content, repository_name, project_path, project_name)
        except Exception as regex_exc:
            raise PackageExtractionError(
                project_path, "both XML and regex extraction failed"
            ) from regex_exc

    deduplicated: list[PackageReference] = []
    seen: set[str] = set()
    for ref in refs:
        key = ref.name.casefold()
        if key in seen:
            continue
        seen.add(key)
        deduplicated.append(ref)

    duplicates = len(refs) - len(deduplicated)
    if duplicates:
        log.warning("scanner.duplicate_references", project=project_path, count=duplicates)

    return deduplicated


class ProjectFileParser:
    detection_method = "project-file"
    file_patterns = ["**/*.csproj", "**/*.vbproj", "**/*.fsproj"]

    def parse(self, file_path: str, content: str, repository_name: str) -> ManifestParseResult:
        refs = extract_package_references(content, repository_name, file_path)
        return ManifestParseResult(
            path=file_path, detection_method=self.detection_method, references=refs
        )


register_parser(ProjectFileParser())
