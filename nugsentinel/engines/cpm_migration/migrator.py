"""Plan a migration from inline package versions to central package management.

Per repository, every package gets one central version (the highest in
use); projects pinned lower keep their version through ``VersionOverride``
and are reported as conflicts.  Per project, each project gets its own
``Directory.Packages.props`` beside it and no conflicts can arise.

Nothing here touches the filesystem: the result carries new content strings
for the caller to persist.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping
from pathlib import PurePosixPath

import structlog

from nugsentinel.engines.cpm_migration.models import CpmConflict, CpmFileChange, CpmMigrationResult
from nugsentinel.engines.update_planner.rewriter import (
    attribute_match,
    child_match,
    element_pattern,
    split_element,
)
from nugsentinel.engines.versioning import highest_version
from nugsentinel.models import PackageReference, SourceKind

log = structlog.get_logger("nugsentinel.engine")

PROPS_FILE_NAME = "Directory.Packages.props"

_PACKAGE_REFERENCE_ELEMENT = element_pattern("PackageReference")
_CLOSING_TAG = re.compile(r"\s*</PackageReference\s*>", re.IGNORECASE)


def generate_central_props(package_versions: Mapping[str, str]) -> str:
    """Render a ``Directory.Packages.props`` listing *package_versions*.

    Entries are sorted case-insensitively by package name.
    """
    if package_versions is None:
        raise TypeError("package_versions must not be None")

    lines = [
        "<Project>",
        "  <PropertyGroup>",
        "    <ManagePackageVersionsCentrally>true</ManagePackageVersionsCentrally>",
        "  </PropertyGroup>",
        "  <ItemGroup>",
    ]
    for name in sorted(package_versions, key=str.casefold):
        lines.append(f'    <PackageVersion Include="{name}" Version="{package_versions[name]}" />')
    lines.append("  </ItemGroup>")
    lines.append("</Project>")
    return "\n".join(lines) + "\n"


def _drop_attribute(tag: str, m: re.Match[str]) -> str:
    start = m.start()
    while start > 0 and tag[start - 1].isspace():
        start -= 1
    return tag[:start] + tag[m.end() :]


def _drop_child(body: str, m: re.Match[str]) -> str:
    start, end = m.start(), m.end()
    # Take the child's own line with it when it sits alone on that line.
    line_start = body.rfind("\n", 0, start)
    if body[line_start + 1 : start].strip() == "":
        start = max(line_start, 0)
    return body[:start] + body[end:]


def _collapse(tag: str, body: str) -> str:
    closing = _CLOSING_TAG.fullmatch(body)
    if closing is None:
        return tag + body
    return tag[:-1].rstrip() + " />"


def remove_version_attributes(
    content: str,
    overrides: Mapping[str, str],
    managed: Collection[str] | None = None,
) -> str:
    """Move ``<PackageReference>`` versions out of a project file.

    Packages listed in *overrides* keep their version as ``VersionOverride``;
    other managed packages lose it.  The version may be an attribute (before
    or after ``Include``) or a child ``<Version>`` element.  When *managed*
    is given, references to any other package are left exactly as they are.
    """
    if content is None:
        raise TypeError("content must not be None")
    if overrides is None:
        raise TypeError("overrides must not be None")

    folded = {name.casefold(): version for name, version in overrides.items()}
    managed_names = None if managed is None else {n.casefold() for n in managed}

    def _replace(m: re.Match[str]) -> str:
        element = m.group(0)
        tag, body = split_element(element)
        name_m = attribute_match(tag, "Include")
        if name_m is None:
            return element
        key = name_m.group(3).strip().casefold()
        if managed_names is not None and key not in managed_names:
            if attribute_match(tag, "Version") or child_match(body, "Version"):
                log.warning("cpm.unmanaged_reference", package=name_m.group(3).strip())
            return element

        override = folded.get(key)
        version_m = attribute_match(tag, "Version")
        if version_m is not None:
            if override is not None:
                replacement = f'VersionOverride="{override}"'
                return tag[: version_m.start()] + replacement + tag[version_m.end() :] + body
            return _drop_attribute(tag, version_m) + body

        child_m = child_match(body, "Version")
        if child_m is None:
            return element
        if override is not None:
            replacement = f"<VersionOverride>{override}</VersionOverride>"
            return tag + body[: child_m.start()] + replacement + body[child_m.end() :]
        return _collapse(tag, _drop_child(body, child_m))

    return _PACKAGE_REFERENCE_ELEMENT.sub(_replace, content)


def _eligible(references: Iterable[PackageReference]) -> list[PackageReference]:
    return [
        r
        for r in references
        if r.source_kind is SourceKind.PROJECT_FILE and r.declared_version
    ]


def _lookup_content(project_contents: Mapping[str, str], path: str) -> str | None:
    content = project_contents.get(path)
    if content is not None:
        return content
    folded = path.casefold()
    for key, value in project_contents.items():
        if key.casefold() == folded:
            return value
    return None


def _root_props_path(references: list[PackageReference]) -> str:
    rooted = any(r.project_path.startswith("/") for r in references)
    return f"/{PROPS_FILE_NAME}" if rooted else PROPS_FILE_NAME


def per_project_props_path(project_path: str) -> str:
    """``Directory.Packages.props`` path in the directory of *project_path*."""
    normalized = project_path.replace("\\", "/")
    if "/" not in normalized:
        return PROPS_FILE_NAME
    parent = PurePosixPath(normalized).parent
    return str(parent / PROPS_FILE_NAME)


def migrate(
    references: Iterable[PackageReference],
    project_contents: Mapping[str, str],
    per_project: bool = False,
) -> CpmMigrationResult:
    """Migrate project-file references with explicit versions to CPM.

    CPM-managed and ``packages.config`` references are ignored.  Project files
    missing from *project_contents* still count towards central versions but
    are not rewritten.
    """
    if references is None:
        raise TypeError("references must not be None")
    if project_contents is None:
        raise TypeError("project_contents must not be None")

    eligible = _eligible(references)
    if not eligible:
        return CpmMigrationResult()

    if per_project:
        return _migrate_per_project(eligible, project_contents)
    return _migrate_per_repository(eligible, project_contents)


def _migrate_per_repository(
    references: list[PackageReference], project_contents: Mapping[str, str]
) -> CpmMigrationResult:
    groups: dict[str, list[PackageReference]] = {}
    for ref in references:
        groups.setdefault(ref.name.casefold(), []).append(ref)

    central_versions: dict[str, str] = {}
    conflicts: list[CpmConflict] = []
    project_overrides: dict[str, dict[str, str]] = {}
    project_managed: dict[str, set[str]] = {}
    for ref in references:
        project_managed.setdefault(ref.project_path.casefold(), set()).add(ref.name)

    for group in groups.values():
        package_name = group[0].name
        versions: list[str] = []
        for ref in group:
            if not any(v.casefold() == ref.declared_version.casefold() for v in versions):
                versions.append(ref.declared_version)

        central = highest_version(versions)
        central_versions[package_name] = central

        if len(versions) <= 1:
            continue

        for ref in group:
            if ref.declared_version.casefold() == central.casefold():
                continue
            conflicts.append(
                CpmConflict(
                    package_name=ref.name,
                    project_path=ref.project_path,
                    override_version=ref.declared_version,
                    central_version=central,
                )
            )
            project_overrides.setdefault(ref.project_path.casefold(), {})[ref.name] = (
                ref.declared_version
            )

    changes = [
        CpmFileChange(
            path=_root_props_path(references),
            content=generate_central_props(central_versions),
            is_new_file=True,
        )
    ]

    seen_projects: set[str] = set()
    for ref in references:
        key = ref.project_path.casefold()
        if key in seen_projects:
            continue
        seen_projects.add(key)

        content = _lookup_content(project_contents, ref.project_path)
        if content is None:
            log.debug("cpm.project_content_missing", project=ref.project_path)
            continue
        rewritten = remove_version_attributes(
            content, project_overrides.get(key, {}), project_managed[key]
        )
        changes.append(CpmFileChange(path=ref.project_path, content=rewritten, is_new_file=False))

    log.info(
        "cpm.migration_planned",
        mode="repository",
        packages=len(central_versions),
        files=len(changes),
        conflicts=len(conflicts),
    )
    return CpmMigrationResult(file_changes=changes, conflicts=conflicts)


def _migrate_per_project(
    references: list[PackageReference], project_contents: Mapping[str, str]
) -> CpmMigrationResult:
    groups: dict[str, list[PackageReference]] = {}
    for ref in references:
        groups.setdefault(ref.project_path.casefold(), []).append(ref)

    changes: list[CpmFileChange] = []
    for group in groups.values():
        project_path = group[0].project_path
        versions: dict[str, str] = {}
        seen: set[str] = set()
        for ref in group:
            if ref.name.casefold() in seen:
                continue
            seen.add(ref.name.casefold())
            versions[ref.name] = ref.declared_version

        changes.append(
            CpmFileChange(
                path=per_project_props_path(project_path),
                content=generate_central_props(versions),
                is_new_file=True,
            )
        )

        content = _lookup_content(project_contents, project_path)
        if content is None:
            log.debug("cpm.project_content_missing", project=project_path)
            continue
        changes.append(
            CpmFileChange(
                path=project_path,
                content=remove_version_attributes(content, {}, versions),
                is_new_file=False,
            )
        )

    log.info("cpm.migration_planned", mode="project", projects=len(groups), files=len(changes))
    return CpmMigrationResult(file_changes=changes, conflicts=[])


def migrate_by_repository(
    references: Iterable[PackageReference],
    project_contents: Mapping[str, Mapping[str, str]],
    per_project: bool = False,
) -> dict[str, CpmMigrationResult]:
    """Run :func:`migrate` once per repository, in ascending name order.

    *project_contents* maps repository name to ``{project_path: content}``.
    Repositories with nothing to migrate are left out.
    """
    if references is None:
        raise TypeError("references must not be None")

    by_repo: dict[str, list[PackageReference]] = {}
    for ref in references:
        by_repo.setdefault(ref.repository_name, []).append(ref)

    results: dict[str, CpmMigrationResult] = {}
    for repo_name in sorted(by_repo):
        result = migrate(by_repo[repo_name], project_contents.get(repo_name, {}), per_project)
        if result.file_changes:
            results[repo_name] = result
    return results
