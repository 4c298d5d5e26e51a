"""CLI entry point: nugsentinel.

Subcommands:
    nugsentinel scan ROOT                 # List package references per repository
    nugsentinel warnings ROOT             # Version drift warnings and recommendations
    nugsentinel update ROOT --apply       # Plan (and apply) in-scope version updates
    nugsentinel sync ROOT PACKAGE         # Force one package to one version everywhere
    nugsentinel migrate-cpm ROOT --apply  # Move inline versions to Directory.Packages.props
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import json
import sys
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import click
import structlog

from nugsentinel.core.config import ToolConfig, VersionIncrementConfig, load_config
from nugsentinel.core.errors import NugSentinelError
from nugsentinel.core.logging import setup_logging
from nugsentinel.engines.cpm_migration import migrate_by_repository
from nugsentinel.engines.reference_scanner import (
    ExclusionList,
    LocalWorkspace,
    ProjectPathFilter,
    RenovateOverrides,
    WorkspaceScan,
    filter_renovate_exclusions,
    merge_reviewers,
    read_renovate_config,
    scan_workspace,
)
from nugsentinel.engines.registry_resolver import PackageResolver
from nugsentinel.engines.update_planner import (
    RepositoryUpdatePlan,
    UpdatePlanBuilder,
    apply_updates,
    apply_version_increments,
    plan_sync,
    summarize,
)
from nugsentinel.engines.version_warnings import VersionWarningAnalyzer
from nugsentinel.engines.versioning import (
    UpdateScope,
    VersionWarningLevel,
    find_all_in_scope_versions,
    find_latest_in_scope,
    is_updateable_only,
)
from nugsentinel.models import PackageReference, RegistryInfo, SourceKind

log = structlog.get_logger("nugsentinel.cli")


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _dump_json(rows: Any) -> None:
    click.echo(json.dumps(rows, indent=2, default=_json_default))


def _handle_errors(func):
    """Report :class:`NugSentinelError` on stderr and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NugSentinelError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ── shared steps ─────────────────────────────────────────────────────────


def _exclusions(config: ToolConfig) -> ExclusionList:
    return ExclusionList(
        prefixes=list(config.exclude_prefixes),
        packages=list(config.exclude_packages),
        patterns=list(config.exclude_patterns),
        case_sensitive=config.case_sensitive,
    )


def _workspace(config: ToolConfig, root: Path) -> LocalWorkspace:
    return LocalWorkspace(root, config.include_repositories, config.exclude_repositories)


def _renovate(config: ToolConfig, root: Path) -> dict[str, RenovateOverrides]:
    """Renovate overrides per repository name; empty when ``ignoreRenovate`` is set."""
    if config.ignore_renovate:
        return {}
    workspace = _workspace(config, root)
    found: dict[str, RenovateOverrides] = {}
    for repo_name in workspace.list_repositories():
        overrides = read_renovate_config(workspace, repo_name)
        if overrides is not None:
            found[repo_name] = overrides
    return found


def _scan(
    config: ToolConfig,
    root: Path,
    renovate: Mapping[str, RenovateOverrides] | None = None,
    exclude_packages: bool = True,
) -> WorkspaceScan:
    if renovate is None:
        renovate = _renovate(config, root)
    workspace_scan = scan_workspace(
        root,
        exclusions=_exclusions(config) if exclude_packages else None,
        project_filter=ProjectPathFilter(config.exclude_project_patterns),
        include_repositories=config.include_repositories,
        exclude_repositories=config.exclude_repositories,
        include_packages_config=config.include_packages_config,
    )
    for repo in workspace_scan.repositories:
        repo.references = filter_renovate_exclusions(
            repo.references, renovate.get(repo.repository_name)
        )
    return workspace_scan


def _reviewers(
    config: ToolConfig, overrides: RenovateOverrides | None, plan: RepositoryUpdatePlan
) -> tuple[list[str], list[str]]:
    """Required and optional reviewers for *plan*; Renovate reviewers are optional."""
    required = merge_reviewers(config.update.required_reviewers)
    renovate: list[str] = []
    if overrides is not None:
        names = [u.name for f in plan.file_updates for u in f.updates]
        renovate = overrides.reviewers_for(names)
    folded = {r.casefold() for r in required}
    optional = [
        r
        for r in merge_reviewers(config.update.optional_reviewers, renovate)
        if r.casefold() not in folded
    ]
    return required, optional


def _echo_reviewers(required: list[str], optional: list[str]) -> None:
    if required:
        click.echo(f"  Required reviewers: {', '.join(required)}")
    if optional:
        click.echo(f"  Optional reviewers: {', '.join(optional)}")


def _write_plans(
    workspace: LocalWorkspace,
    plans: list[RepositoryUpdatePlan],
    increment: VersionIncrementConfig | None = None,
) -> int:
    """Rewrite every planned file in plan order; returns the number written.

    A planned file whose content does not change (the declaration moved or
    no longer holds the old version) is reported as not applied.
    """
    written = 0
    for plan in plans:
        for file_update in plan.file_updates:
            path = file_update.target_path
            content = workspace.read_file(plan.repository_name, path)
            if content is None:
                log.warning("update.file_missing", repository=plan.repository_name, path=path)
                continue
            new_content = apply_updates(content, file_update.updates, file_update.source_kind)
            if new_content == content:
                packages = [u.name for u in file_update.updates]
                log.warning(
                    "update.not_applied",
                    repository=plan.repository_name,
                    path=path,
                    packages=packages,
                )
                click.echo(
                    f"Not applied: {plan.repository_name}{path} ({', '.join(packages)})", err=True
                )
                continue
            if (
                increment is not None
                and increment.is_enabled
                and file_update.source_kind is SourceKind.PROJECT_FILE
            ):
                new_content = apply_version_increments(
                    new_content, increment.properties, increment.scope
                )
            workspace.write_file(plan.repository_name, path, new_content)
            written += 1
    return written


async def _enrich(
    resolver: PackageResolver, refs: list[PackageReference]
) -> list[PackageReference]:
    async with resolver:
        return await resolver.enrich(refs)


def _resolve(ctx: click.Context, refs: list[PackageReference]) -> list[PackageReference]:
    config: ToolConfig = ctx.obj["config"]
    factory = ctx.obj.get("resolver_factory") or PackageResolver.from_config
    return asyncio.run(_enrich(factory(config), refs))


def _reference_row(ref: PackageReference) -> dict[str, Any]:
    row = dataclasses.asdict(ref)
    row["source_kind"] = ref.source_kind.value
    return row


# ── commands ─────────────────────────────────────────────────────────────


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON configuration file",
)
@click.option(
    "--ignore-renovate", is_flag=True, help="Do not honour repositories' Renovate files"
)
@click.pass_context
def main(
    ctx: click.Context, verbose: bool, config_path: str | None, ignore_renovate: bool
) -> None:
    """nugsentinel: keep NuGet package versions consistent across repositories."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path)
    except NugSentinelError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if ignore_renovate:
        ctx.obj["config"].ignore_renovate = True


@main.command("scan")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--resolve/--no-resolve", default=True, help="Look packages up on the feeds")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@_handle_errors
def scan(ctx: click.Context, root: Path, resolve: bool, as_json: bool) -> None:
    """List package references grouped by repository and project."""
    config: ToolConfig = ctx.obj["config"]
    refs = _scan(config, root).references
    if resolve and refs:
        refs = _resolve(ctx, refs)

    if as_json:
        _dump_json([_reference_row(r) for r in refs])
        return

    if not refs:
        click.echo("No package references found.")
        return

    pinned = {name.casefold() for name in config.update.pinned_map()}
    by_repo: dict[str, dict[str, list[PackageReference]]] = {}
    for ref in refs:
        by_repo.setdefault(ref.repository_name, {}).setdefault(ref.project_path, []).append(ref)

    click.echo(f"Found {len(refs)} package reference(s) in {len(by_repo)} repository(ies)\n")
    for repo_name in sorted(by_repo):
        click.echo(f"Repository: {repo_name}")
        click.echo("-" * 50)
        for project_path in sorted(by_repo[repo_name]):
            click.echo(f"  Project: {project_path}")
            for ref in sorted(by_repo[repo_name][project_path], key=lambda r: r.name.casefold()):
                click.echo("    - " + _describe(ref, config, ref.name.casefold() in pinned))
            click.echo()

    if resolve:
        _echo_outdated_report(refs, config, pinned)


def _warning_level(config: ToolConfig, package_name: str) -> VersionWarningLevel:
    """The package's warning level, or the update scope's band when warnings are off."""
    level = config.version_warnings.level_for(package_name)
    if level is VersionWarningLevel.NONE:
        return config.update.scope.as_warning_level()
    return level


def _echo_outdated_report(
    refs: list[PackageReference], config: ToolConfig, pinned: set[str]
) -> None:
    """Split outdated packages into those with an in-band upgrade and the rest.

    "Updateable only" packages have newer versions, but every one of them
    crosses the package's warning band for the oldest version in use.
    """
    by_name: dict[str, list[PackageReference]] = {}
    for ref in refs:
        by_name.setdefault(ref.name.casefold(), []).append(ref)

    outdated: list[str] = []
    updateable_only: list[str] = []
    for key in sorted(by_name):
        group = by_name[key]
        info: RegistryInfo | None = next(
            (r.registry_info for r in group if r.registry_info is not None), None
        )
        if info is None or not info.is_outdated or key in pinned:
            continue

        name = group[0].name
        level = _warning_level(config, name)
        available = info.available_stable_versions
        line = f"  - {name}: uses {info.resolved_used_version}, latest {info.latest_stable_version}"

        if is_updateable_only(info.resolved_used_version, available, level):
            updateable_only.append(f"{line} (outside the {level.value} band)")
            continue

        used = [r.declared_version for r in group if r.declared_version]
        in_scope = find_all_in_scope_versions(used, available, level, info.latest_stable_version)
        if in_scope:
            line += f", in scope: {', '.join(in_scope)}"
        outdated.append(line)

    if outdated:
        click.echo(f"OUTDATED ({len(outdated)})")
        for line in outdated:
            click.echo(line)
        click.echo()
    if updateable_only:
        click.echo(f"UPDATEABLE ONLY ({len(updateable_only)})")
        for line in updateable_only:
            click.echo(line)
        click.echo()


def _describe(ref: PackageReference, config: ToolConfig, is_pinned: bool) -> str:
    version = ref.declared_version or "Not specified"
    parts = [f"{ref.name} (Version: {version})"]
    if ref.source_kind is not SourceKind.PROJECT_FILE:
        parts.append(f"[{ref.source_kind.value}]")
    if is_pinned:
        parts.append("[PINNED]")

    info = ref.registry_info
    if info is None:
        return " ".join(parts)

    if info.is_resolved:
        if info.exists_on_primary_registry:
            parts.append(f"[{info.package_url}]")
        else:
            parts.append(f"[Feed: {info.feed_name}]")
    elif info.source_project_candidates:
        source = info.source_project_candidates[0]
        parts.append(f"[Source: {source.project_name} in {source.repository_name}]")
    else:
        parts.append("[Not found in any feed]")

    if info.is_deprecated:
        parts.append("[DEPRECATED]")
    if (
        info.is_outdated
        and not is_pinned
        and info.latest_stable_version
        and (ref.declared_version or "").casefold() != info.latest_stable_version.casefold()
    ):
        latest = f"Latest: {info.latest_stable_version}"
        level = config.version_warnings.level_for(ref.name)
        in_scope = find_latest_in_scope(ref.declared_version, info.available_stable_versions, level)
        if in_scope and in_scope != info.latest_stable_version:
            latest += f", In-Scope: {in_scope}"
        parts.append(f"[{latest}]")
    if info.is_vulnerable:
        parts.append("[VULNERABLE]")
    return " ".join(parts)


@main.command("warnings")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--resolve/--no-resolve", default=True, help="Compare with the latest feed versions")
@click.pass_context
@_handle_errors
def warnings_cmd(ctx: click.Context, root: Path, resolve: bool) -> None:
    """Print version warnings and upgrade recommendations."""
    config: ToolConfig = ctx.obj["config"]
    refs = _scan(config, root).references
    if resolve and refs:
        refs = _resolve(ctx, refs)

    analyzer = VersionWarningAnalyzer(config.version_warnings, config.update.pinned_map())
    warnings = analyzer.analyze(refs)
    recommendations = analyzer.recommend(refs)

    if not warnings:
        click.echo("No version warnings.")
    else:
        click.echo("VERSION WARNINGS")
        for package, items in analyzer.group_by_package(warnings).items():
            click.echo(f"  {package}:")
            for w in items:
                click.echo(f"    [{w.repository}] {w.project_path}: {w.description}")
        stats = analyzer.warning_stats(warnings)
        click.echo(
            f"\n  {stats.total_warnings} warning(s) across {stats.packages_with_warnings} "
            f"package(s): {stats.major_warnings} major, {stats.minor_warnings} minor, "
            f"{stats.patch_warnings} patch"
        )

    if recommendations:
        click.echo("\nRECOMMENDATIONS")
        for package, items in analyzer.group_by_package(recommendations).items():
            click.echo(f"  {package}:")
            for r in items:
                click.echo(
                    f"    [{r.repository}] {r.project_path}: {r.current_version} -> "
                    f"{r.recommended_version} ({r.reason})"
                )
        rstats = analyzer.recommendation_stats(recommendations)
        click.echo(
            f"\n  {rstats.total_recommendations} recommendation(s) for "
            f"{rstats.packages_needing_update} package(s) in {rstats.projects_affected} project(s)"
        )


@main.command("update")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "--scope",
    type=click.Choice(["patch", "minor", "major"], case_sensitive=False),
    default=None,
    help="Largest version jump allowed (default from config: patch)",
)
@click.option("--apply", "apply_changes", is_flag=True, help="Rewrite files on disk")
@click.option("--source-only", is_flag=True, help="Only update packages built in the workspace")
@click.option(
    "--increment-versions",
    is_flag=True,
    help="Bump Version, AssemblyVersion and FileVersion of updated projects",
)
@click.option("--json", "as_json", is_flag=True, help="Output the plans as JSON")
@click.pass_context
@_handle_errors
def update(
    ctx: click.Context,
    root: Path,
    scope: str | None,
    apply_changes: bool,
    source_only: bool,
    increment_versions: bool,
    as_json: bool,
) -> None:
    """Build update plans and optionally apply them."""
    config: ToolConfig = ctx.obj["config"]
    renovate = _renovate(config, root)
    refs = _scan(config, root, renovate).references
    if refs:
        refs = _resolve(ctx, refs)

    builder = UpdatePlanBuilder(
        scope=UpdateScope.parse(scope) if scope else config.update.scope,
        pinned_packages=config.update.pinned_map(),
        source_packages_only=source_only or config.update.source_packages_only,
    )
    plans = builder.build_plans(refs)

    if as_json:
        _dump_json([dataclasses.asdict(p) for p in plans])
    elif not plans:
        click.echo("Everything is up to date.")
    else:
        for plan in plans:
            click.echo(f"Repository: {plan.repository_name} ({plan.update_count} update(s))")
            _echo_reviewers(*_reviewers(config, renovate.get(plan.repository_name), plan))
            for index, file_update in enumerate(plan.file_updates, start=1):
                click.echo(
                    f"  [{index}] {file_update.target_path} ({file_update.source_kind.value}, "
                    f"{file_update.dependency_count} reference(s))"
                )
                for u in file_update.updates:
                    click.echo(f"      {u.name} {u.old_version} -> {u.new_version}")
            click.echo()
        summary = summarize(plans)
        click.echo(
            f"Summary: {summary.repositories} repository(ies), {summary.files} file(s), "
            f"{summary.updates} update(s), {summary.packages} package(s)"
        )
        if builder.skipped_pinned:
            click.echo(f"Pinned, skipped: {', '.join(sorted(builder.skipped_pinned))}")

    write = apply_changes or not config.update.dry_run
    if not write or not plans:
        return

    increment = config.update.version_increment.model_copy()
    if increment_versions:
        increment.enable_all()
    written = _write_plans(_workspace(config, root), plans, increment)
    click.echo(f"Applied updates to {written} file(s).", err=as_json)


async def _resolve_latest(resolver: PackageResolver, package_name: str) -> str | None:
    async with resolver:
        info = await resolver.resolve(package_name)
    return info.latest_stable_version


@main.command("sync")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("package")
@click.option(
    "--version",
    "target_version",
    default=None,
    help="Target version (default: latest on the feeds)",
)
@click.option("--apply", "apply_changes", is_flag=True, help="Rewrite files on disk")
@click.pass_context
@_handle_errors
def sync(
    ctx: click.Context,
    root: Path,
    package: str,
    target_version: str | None,
    apply_changes: bool,
) -> None:
    """Force PACKAGE to one version in every repository, downgrades included."""
    config: ToolConfig = ctx.obj["config"]

    if not target_version:
        click.echo(f"Resolving latest version for {package}...")
        factory = ctx.obj.get("resolver_factory") or PackageResolver.from_config
        target_version = asyncio.run(_resolve_latest(factory(config), package))
        if not target_version:
            raise NugSentinelError(
                f"could not resolve the latest version of {package!r} from the configured feeds"
            )
        click.echo(f"Resolved latest version: {target_version}")

    renovate = _renovate(config, root)
    refs = _scan(config, root, renovate, exclude_packages=False).references
    result = plan_sync(refs, package, target_version)

    click.echo(f"\nSYNC: {package} -> {result.target_version}\n")
    for plan in result.plans:
        click.echo(f"Repository: {plan.repository_name}")
        click.echo("-" * 50)
        _echo_reviewers(*_reviewers(config, renovate.get(plan.repository_name), plan))
        for file_update in plan.file_updates:
            for u in file_update.updates:
                click.echo(f"  {file_update.target_path}: {u.old_version} -> {u.new_version}")
        click.echo()

    write = apply_changes or not config.update.dry_run
    synced = len(result.plans)
    already = f"{len(result.up_to_date)} already at {result.target_version}."
    if not write:
        click.echo(f"Would sync {synced} repository(ies). {already}")
        return

    written = _write_plans(_workspace(config, root), result.plans)
    click.echo(f"Synced {synced} repository(ies), {written} file(s) written. {already}")


@main.command("migrate-cpm")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--per-project", is_flag=True, help="One Directory.Packages.props per project")
@click.option("--apply", "apply_changes", is_flag=True, help="Write the file changes")
@click.pass_context
@_handle_errors
def migrate_cpm(ctx: click.Context, root: Path, per_project: bool, apply_changes: bool) -> None:
    """Migrate inline package versions to central package management."""
    config: ToolConfig = ctx.obj["config"]
    workspace_scan = _scan(config, root)
    results = migrate_by_repository(
        workspace_scan.references,
        workspace_scan.project_contents,
        per_project=per_project or config.cpm.per_project,
    )

    if not results:
        click.echo("Nothing to migrate.")
        return

    # Conflicts always print before anything is written.
    for repo_name, result in results.items():
        if not result.conflicts:
            continue
        click.echo(f"Conflicts in {repo_name}:")
        for c in result.conflicts:
            click.echo(
                f"  {c.package_name}: {c.project_path} keeps {c.override_version} "
                f"(central {c.central_version}) via VersionOverride"
            )
    click.echo()

    workspace = _workspace(config, root)
    for repo_name, result in results.items():
        click.echo(f"Repository: {repo_name}")
        for change in result.file_changes:
            marker = "new" if change.is_new_file else "modified"
            click.echo(f"  {change.path} ({marker})")

        if not apply_changes:
            continue

        clashes = [
            c.path
            for c in result.file_changes
            if c.is_new_file and workspace.read_file(repo_name, c.path) is not None
        ]
        if clashes:
            click.echo(
                f"  Skipped: {', '.join(clashes)} already exist(s); migrate manually.", err=True
            )
            continue
        for change in result.file_changes:
            workspace.write_file(repo_name, change.path, change.content)
        click.echo(f"  Wrote {len(result.file_changes)} file(s).")
