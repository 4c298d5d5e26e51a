"""Parser for ``Directory.Packages.props`` (central package management)."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import structlog

from nugsentinel.engines.reference_scanner.models import CentralParseResult, ManifestParseResult
from nugsentinel.engines.reference_scanner.registry import register_parser

log = structlog.get_logger("nugsentinel.engine")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_central_props(content: str | None, file_path: str | None = None) -> CentralParseResult:
    """Read the CPM flag and every ``<PackageVersion Include Version>`` entry.

    Unparseable content yields an empty, non-CPM result.
    """
    empty = CentralParseResult(manage_centrally=False, file_path=file_path)
    if not content or not content.strip():
        return empty

    try:
        root = ET.fromstring(content.lstrip("\ufeff"))
    except ET.ParseError as exc:
        log.warning("scanner.central_parse_failed", path=file_path, error=str(exc))
        return empty

    manage_centrally = False
    versions: dict[str, str] = {}
    index: dict[str, str] = {}
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        tag = _local(element.tag)
        if tag == "ManagePackageVersionsCentrally":
            if (element.text or "").strip().lower() == "true":
                manage_centrally = True
        elif tag == "PackageVersion":
            name = (element.get("Include") or "").strip()
            version = (element.get("Version") or "").strip()
            if not name or not version:
                continue
            # Later entries win; keep the first spelling of the name.
            key = index.setdefault(name.casefold(), name)
            versions[key] = version

    log.debug(
        "scanner.central_parsed",
        path=file_path,
        manage_centrally=manage_centrally,
        entries=len(versions),
    )
    return CentralParseResult(
        manage_centrally=manage_centrally, package_versions=versions, file_path=file_path
    )


class CentralPackagesParser:
    detection_method = "central-package-management"
    file_patterns = ["**/Directory.Packages.props"]

    def parse(self, file_path: str, content: str, repository_name: str) -> ManifestParseResult:
        return ManifestParseResult(
            path=file_path,
            detection_method=self.detection_method,
            central=parse_central_props(content, file_path),
        )


register_parser(CentralPackagesParser())
