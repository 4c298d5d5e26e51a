"""Bump a project's own version properties after its references change.

Only properties already present in the file are touched, and only when they
hold a plain three- or four-part numeric version (``1.2.3``, ``1.2.3.4``).
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from nugsentinel.engines.versioning import UpdateScope

VERSION_PROPERTIES = ("Version", "AssemblyVersion", "FileVersion")


def increment_version(version: str | None, scope: UpdateScope) -> str | None:
    """Return *version* bumped at *scope*, or ``None`` when it is not numeric.

    Lower components reset to zero: ``1.2.3.4`` → ``1.3.0.0`` at ``MINOR``.
    """
    if not version or not version.strip():
        return None
    parts = version.strip().split(".")
    if not 3 <= len(parts) <= 4 or not all(p.isascii() and p.isdigit() for p in parts):
        return None

    segments = [int(p) for p in parts]
    index = {UpdateScope.MAJOR: 0, UpdateScope.MINOR: 1, UpdateScope.PATCH: 2}[scope]
    segments[index] += 1
    for i in range(index + 1, len(segments)):
        segments[i] = 0
    return ".".join(str(s) for s in segments)


_PROPERTY_GROUP = re.compile(r"<PropertyGroup\b[^>]*>.*?</PropertyGroup\s*>", re.DOTALL)


def increment_property(content: str, property_name: str, scope: UpdateScope) -> str:
    """Bump ``<property_name>x.y.z</property_name>`` inside ``<PropertyGroup>`` blocks.

    Item metadata such as a ``<PackageReference>`` child ``<Version>`` is
    outside any property group and stays as it is.
    """
    name = re.escape(property_name)
    pattern = re.compile(rf"(<{name}>)(\d+(?:\.\d+){{2,3}})(</{name}>)")

    def _replace(m: re.Match[str]) -> str:
        bumped = increment_version(m.group(2), scope)
        if bumped is None:
            return m.group(0)
        return m.group(1) + bumped + m.group(3)

    return _PROPERTY_GROUP.sub(lambda group: pattern.sub(_replace, group.group(0)), content)


def apply_version_increments(
    content: str, properties: Iterable[str], scope: UpdateScope
) -> str:
    if content is None:
        raise TypeError("content must not be None")
    for name in properties:
        content = increment_property(content, name, scope)
    return content
