"""Configuration file schema and loader.

The file is JSON with camelCase keys; every model also accepts the
snake_case field names.  Credentials may reference the environment with
``${VAR}`` or ``$env:VAR``.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from nugsentinel.core.errors import ConfigurationError
from nugsentinel.engines.versioning import UpdateScope, VersionWarningLevel

_ENV_VAR_RE = re.compile(r"^\s*(?:\$env:(?P<name1>\w+)|\$\{(?P<name2>\w+)\})\s*$")


def resolve_env_var(value: str | None) -> str | None:
    """Replace a whole-value ``${VAR}``/``$env:VAR`` reference.

    Unset variables leave the value unchanged.
    """
    if not value or not value.strip():
        return value
    m = _ENV_VAR_RE.match(value)
    if m is None:
        return value
    name = m.group("name1") or m.group("name2")
    return os.environ.get(name, value)


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FeedConfig(_Model):
    name: str
    url: str

    @field_validator("name", "url", mode="before")
    @classmethod
    def _strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class FeedAuthConfig(_Model):
    feed_name: str
    username: str | None = None
    pat: str | None = None

    @field_validator("username", "pat", mode="after")
    @classmethod
    def _expand_env(cls, v: str | None) -> str | None:
        return resolve_env_var(v)


class PackageWarningRule(_Model):
    package_name: str
    level: VersionWarningLevel

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, v: object) -> VersionWarningLevel:
        return VersionWarningLevel.parse(v)


class VersionWarningConfig(_Model):
    default_level: VersionWarningLevel = VersionWarningLevel.NONE
    package_rules: list[PackageWarningRule] = Field(default_factory=list)

    @field_validator("default_level", mode="before")
    @classmethod
    def _parse_level(cls, v: object) -> VersionWarningLevel:
        return VersionWarningLevel.parse(v)

    def level_for(self, package_name: str) -> VersionWarningLevel:
        """First matching package rule (case-insensitive), else the default."""
        folded = package_name.casefold()
        for rule in self.package_rules:
            if rule.package_name.casefold() == folded:
                return rule.level
        return self.default_level


class PinnedPackage(_Model):
    package_name: str
    version: str | None = None
    reason: str | None = None


class VersionIncrementConfig(_Model):
    """Which of a project's own version properties to bump when it is updated."""

    increment_version: bool = False
    increment_assembly_version: bool = False
    increment_file_version: bool = False
    scope: UpdateScope = UpdateScope.PATCH

    @field_validator("scope", mode="before")
    @classmethod
    def _parse_scope(cls, v: object) -> UpdateScope:
        return UpdateScope.parse(v)

    @property
    def properties(self) -> list[str]:
        flags = (
            ("Version", self.increment_version),
            ("AssemblyVersion", self.increment_assembly_version),
            ("FileVersion", self.increment_file_version),
        )
        return [name for name, enabled in flags if enabled]

    @property
    def is_enabled(self) -> bool:
        return bool(self.properties)

    def enable_all(self) -> None:
        self.increment_version = True
        self.increment_assembly_version = True
        self.increment_file_version = True


class UpdateConfig(_Model):
    scope: UpdateScope = UpdateScope.PATCH
    dry_run: bool = True
    source_packages_only: bool = False
    pinned_packages: list[PinnedPackage] = Field(default_factory=list)
    required_reviewers: list[str] = Field(default_factory=list)
    optional_reviewers: list[str] = Field(default_factory=list)
    version_increment: VersionIncrementConfig = Field(default_factory=VersionIncrementConfig)

    @field_validator("scope", mode="before")
    @classmethod
    def _parse_scope(cls, v: object) -> UpdateScope:
        return UpdateScope.parse(v)

    def pinned_map(self) -> dict[str, str | None]:
        """Pinned package name → pinned version (``None`` = keep current)."""
        return {p.package_name: p.version for p in self.pinned_packages}

    def validate_reviewers(self) -> None:
        """Raise :class:`ConfigurationError` if a reviewer is both required and optional."""
        required = {r.strip().casefold() for r in self.required_reviewers}
        overlap = sorted(
            r for r in self.optional_reviewers if r.strip().casefold() in required
        )
        if overlap:
            raise ConfigurationError(
                f"reviewers listed as both required and optional: {', '.join(overlap)}"
            )


class CpmConfig(_Model):
    per_project: bool = False


def _default_feeds() -> list[FeedConfig]:
    return [FeedConfig(name="nuget.org", url="https://api.nuget.org/v3/index.json")]


class ToolConfig(_Model):
    """Root of the configuration file."""

    feeds: list[FeedConfig] = Field(default_factory=_default_feeds)
    feed_auth: list[FeedAuthConfig] = Field(default_factory=list)
    exclude_prefixes: list[str] = Field(default_factory=list)
    exclude_packages: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    case_sensitive: bool = False
    exclude_project_patterns: list[str] = Field(default_factory=list)
    include_repositories: list[str] = Field(default_factory=list)
    exclude_repositories: list[str] = Field(default_factory=list)
    include_packages_config: bool = True
    ignore_renovate: bool = False
    version_warnings: VersionWarningConfig = Field(default_factory=VersionWarningConfig)
    update: UpdateConfig = Field(default_factory=UpdateConfig)
    cpm: CpmConfig = Field(default_factory=CpmConfig)

    @field_validator("feeds", mode="after")
    @classmethod
    def _default_when_empty(cls, v: list[FeedConfig]) -> list[FeedConfig]:
        return v or _default_feeds()

    def auth_for(self, feed_name: str) -> FeedAuthConfig | None:
        folded = feed_name.strip().casefold()
        return next((a for a in self.feed_auth if a.feed_name.strip().casefold() == folded), None)


def load_config(path: str | Path | None) -> ToolConfig:
    """Load and validate a configuration file; ``None`` gives the defaults."""
    if path is None:
        return ToolConfig()

    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"configuration file not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"invalid JSON in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: top-level value must be an object")

    try:
        config = ToolConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration in {path}: {exc}") from exc

    config.update.validate_reviewers()
    return config
