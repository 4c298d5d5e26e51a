"""Apply planned package updates to file content, preserving formatting.

Each rewriter walks the matching elements (``<PackageReference>``,
``<PackageVersion>``, ``<package>``), self-closing or not, reads the name
attribute and replaces the version only when it equals the planned old
version.  The version may be an attribute or a child element
(``<Version>1.0.0</Version>``).  Attribute order and quote style do not
matter.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from nugsentinel.engines.update_planner.models import PackageUpdate
from nugsentinel.models import SourceKind


def element_pattern(element: str) -> re.Pattern[str]:
    """Match a whole element: ``<X .../>`` or ``<X ...>...</X>``."""
    return re.compile(
        rf"<{element}\b[^>]*?(?:/>|>.*?</{element}\s*>)", re.IGNORECASE | re.DOTALL
    )


_PROJECT_ELEMENT = element_pattern("PackageReference")
_CPM_ELEMENT = element_pattern("PackageVersion")
_PACKAGES_CONFIG_ELEMENT = element_pattern("package")


def split_element(element: str) -> tuple[str, str]:
    """Split a matched element into its start tag and the rest."""
    end = element.index(">") + 1
    return element[:end], element[end:]


def attribute_match(tag: str, attribute: str) -> re.Match[str] | None:
    """Locate ``attribute="value"`` inside a start tag; group 3 is the value."""
    return re.search(
        rf"(?<![\w.-])({re.escape(attribute)}\s*=\s*)([\"'])(.*?)\2",
        tag,
        re.IGNORECASE | re.DOTALL,
    )


def child_match(body: str, name: str) -> re.Match[str] | None:
    """Locate ``<name>value</name>`` inside an element body; group 2 is the value."""
    return re.search(
        rf"(<{re.escape(name)}\s*>)\s*(.*?)\s*(</{re.escape(name)}\s*>)",
        body,
        re.IGNORECASE | re.DOTALL,
    )


def _rewrite(
    content: str,
    element_re: re.Pattern[str],
    name_attr: str,
    version_names: tuple[str, ...],
    updates: Iterable[PackageUpdate],
) -> str:
    if content is None:
        raise TypeError("content must not be None")

    lookup: dict[str, PackageUpdate] = {}
    for update in updates:
        lookup.setdefault(update.name.casefold(), update)
    if not lookup:
        return content

    def _replace(m: re.Match[str]) -> str:
        element = m.group(0)
        tag, body = split_element(element)
        name_m = attribute_match(tag, name_attr)
        if name_m is None:
            return element
        update = lookup.get(name_m.group(3).strip().casefold())
        if update is None:
            return element
        for name in version_names:
            ver_m = attribute_match(tag, name)
            if ver_m is not None and ver_m.group(3).strip() == update.old_version:
                return tag[: ver_m.start(3)] + update.new_version + tag[ver_m.end(3) :] + body
        for name in version_names:
            child_m = child_match(body, name)
            if child_m is not None and child_m.group(2) == update.old_version:
                return tag + body[: child_m.start(2)] + update.new_version + body[child_m.end(2) :]
        return element

    return element_re.sub(_replace, content)


def apply_project_updates(content: str, updates: Iterable[PackageUpdate]) -> str:
    """Update ``Version``/``VersionOverride`` on ``<PackageReference>`` elements."""
    return _rewrite(content, _PROJECT_ELEMENT, "Include", ("Version", "VersionOverride"), updates)


def apply_cpm_updates(content: str, updates: Iterable[PackageUpdate]) -> str:
    """Update ``<PackageVersion>`` entries in a central version file."""
    return _rewrite(content, _CPM_ELEMENT, "Include", ("Version",), updates)


def apply_packages_config_updates(content: str, updates: Iterable[PackageUpdate]) -> str:
    """Update ``<package id=... version=...>`` entries in a legacy packages file."""
    return _rewrite(content, _PACKAGES_CONFIG_ELEMENT, "id", ("version",), updates)


def apply_updates(
    content: str, updates: Iterable[PackageUpdate], source_kind: SourceKind
) -> str:
    """Dispatch to the rewriter matching the file format of *source_kind*."""
    if source_kind is SourceKind.CENTRAL_PACKAGE_MANAGEMENT:
        return apply_cpm_updates(content, updates)
    if source_kind is SourceKind.PACKAGES_CONFIG:
        return apply_packages_config_updates(content, updates)
    return apply_project_updates(content, updates)
