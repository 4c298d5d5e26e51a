"""Honour a repository's Renovate configuration.

Repositories that already let Renovate manage some dependencies say so in a
``renovate.json``.  Packages listed in ``ignoreDeps``, or matched by a
``packageRules`` entry with ``enabled: false``, are left alone.  Reviewers are
read as well: top-level ``reviewers`` and per-package rule ``reviewers``.
Only exact names (``matchPackageNames``) are honoured; pattern rules are
ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nugsentinel.engines.reference_scanner.workspace import RepositoryStore
from nugsentinel.models import PackageReference

log = structlog.get_logger("nugsentinel.engine")

# Checked in this order; the first non-empty file wins.
RENOVATE_CONFIG_PATHS = (
    "/renovate.json",
    "/.renovaterc",
    "/.renovaterc.json",
    "/.github/renovate.json",
)


class _RenovateModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RenovatePackageRule(_RenovateModel):
    match_package_names: list[str] = Field(default_factory=list, alias="matchPackageNames")
    enabled: bool | None = None
    reviewers: list[str] = Field(default_factory=list)


class RenovateConfig(_RenovateModel):
    ignore_deps: list[str] = Field(default_factory=list, alias="ignoreDeps")
    package_rules: list[RenovatePackageRule] = Field(default_factory=list, alias="packageRules")
    reviewers: list[str] = Field(default_factory=list)


@dataclass
class RenovateOverrides:
    """What one repository's Renovate file means for this tool.

    Name sets and reviewer keys are casefolded.
    """

    ignored_packages: set[str] = field(default_factory=set)
    disabled_packages: set[str] = field(default_factory=set)
    reviewers: list[str] = field(default_factory=list)
    package_reviewers: dict[str, list[str]] = field(default_factory=dict)

    def excludes(self, package_name: str) -> bool:
        key = package_name.casefold()
        return key in self.ignored_packages or key in self.disabled_packages

    def reviewers_for(self, package_names: Iterable[str]) -> list[str]:
        """Top-level reviewers plus the rule reviewers of *package_names*."""
        combined = list(self.reviewers)
        for name in package_names:
            combined.extend(self.package_reviewers.get(name.casefold(), []))
        return merge_reviewers(combined)


def merge_reviewers(*groups: Iterable[str]) -> list[str]:
    """Concatenate reviewer lists, dropping case-insensitive duplicates."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for reviewer in group:
            key = reviewer.strip().casefold()
            if key and key not in seen:
                seen.add(key)
                merged.append(reviewer.strip())
    return merged


def parse_renovate_config(text: str, repository: str = "") -> RenovateOverrides:
    """Parse Renovate JSON.  Invalid content logs a warning and overrides nothing."""
    try:
        config = RenovateConfig.model_validate_json(text)
    except ValidationError as exc:
        log.warning("renovate.parse_failed", repository=repository, error=str(exc))
        return RenovateOverrides()

    overrides = RenovateOverrides(
        ignored_packages={name.casefold() for name in config.ignore_deps},
        reviewers=merge_reviewers(config.reviewers),
    )
    for rule in config.package_rules:
        names = [name.casefold() for name in rule.match_package_names]
        if rule.enabled is False:
            overrides.disabled_packages.update(names)
        if rule.reviewers:
            for name in names:
                overrides.package_reviewers[name] = list(rule.reviewers)

    log.debug(
        "renovate.config_parsed",
        repository=repository,
        ignored=len(overrides.ignored_packages),
        disabled=len(overrides.disabled_packages),
        reviewers=len(overrides.reviewers),
    )
    return overrides


def read_renovate_config(store: RepositoryStore, repository: str) -> RenovateOverrides | None:
    """Read the first Renovate file found in *repository*, or ``None``."""
    for path in RENOVATE_CONFIG_PATHS:
        content = store.read_file(repository, path)
        if content is not None and content.strip():
            log.debug("renovate.config_found", repository=repository, path=path)
            return parse_renovate_config(content, repository)
    return None


def filter_renovate_exclusions(
    references: Iterable[PackageReference], overrides: RenovateOverrides | None
) -> list[PackageReference]:
    """Drop references to packages *overrides* excludes."""
    if overrides is None:
        return list(references)
    kept: list[PackageReference] = []
    dropped: set[str] = set()
    for ref in references:
        if overrides.excludes(ref.name):
            dropped.add(ref.name.casefold())
            continue
        kept.append(ref)
    if dropped:
        log.info("renovate.packages_excluded", packages=sorted(dropped))
    return kept
