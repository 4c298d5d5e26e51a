"""PackageResolver: resolve package names against feeds in priority order."""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

import structlog

from nugsentinel.core.config import ToolConfig
from nugsentinel.core.errors import FeedError
from nugsentinel.engines.registry_resolver.client import FeedPackageMetadata, NuGetFeedClient
from nugsentinel.engines.source_matcher import build_catalog, find_source_project
from nugsentinel.engines.versioning import mark_outdated
from nugsentinel.models import PackageReference, RegistryInfo

log = structlog.get_logger("nugsentinel.engine")

DEFAULT_MAX_CONCURRENCY = 5
_DESCRIPTION_LIMIT = 200
_VULNERABILITY_KEYWORDS = ("vulnerability", "security issue", "cve", "xss", "sql injection")
_STALE_AFTER = timedelta(days=3 * 365)


def detect_vulnerabilities(
    description: str | None, published: datetime | None, now: datetime | None = None
) -> list[str]:
    """Heuristic findings from package metadata.

    Keyword hits in the description and a newest release older than three
    years both count.  This is not an advisory database lookup.
    """
    findings: list[str] = []
    if description:
        lowered = description.lower()
        findings.extend(
            f"Keyword detected: {kw}" for kw in _VULNERABILITY_KEYWORDS if kw in lowered
        )
    if published is not None:
        if published.tzinfo is None:
            published = published.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        if published < now - _STALE_AFTER:
            findings.append("Package publish date older than 3 years (potentially outdated)")
    return findings


def _unresolved(package_name: str) -> RegistryInfo:
    return RegistryInfo(package_name=package_name)


class PackageResolver:
    """Resolve registry metadata; first feed that knows a package wins.

    The first feed is the primary registry.  Results are memoized
    case-insensitively for the lifetime of the resolver.
    """

    def __init__(
        self,
        clients: Sequence[NuGetFeedClient],
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self._clients = list(clients)
        self._max_concurrency = max_concurrency
        self._cache: dict[str, RegistryInfo] = {}

    @classmethod
    def from_config(cls, config: ToolConfig, **client_kwargs) -> PackageResolver:
        clients = []
        for feed in config.feeds:
            auth = config.auth_for(feed.name)
            clients.append(
                NuGetFeedClient(
                    feed.name,
                    feed.url,
                    username=auth.username if auth else None,
                    password=auth.pat if auth else None,
                    **client_kwargs,
                )
            )
        return cls(clients)

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        for client in self._clients:
            await client.close()

    async def __aenter__(self) -> PackageResolver:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── lookups ────────────────────────────────────────────────────────────

    async def resolve(self, package_name: str) -> RegistryInfo:
        """Registry metadata for *package_name*; never raises for feed failures."""
        if not package_name or not package_name.strip():
            return _unresolved(package_name)

        key = package_name.casefold()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        info: RegistryInfo | None = None
        for index, client in enumerate(self._clients):
            try:
                metadata = await client.get_package(package_name)
            except FeedError as exc:
                log.warning("resolver.feed_unusable", feed=client.name, error=str(exc))
                continue
            except Exception as exc:
                log.debug(
                    "resolver.feed_lookup_failed",
                    feed=client.name,
                    package=package_name,
                    error=str(exc),
                )
                continue
            if metadata is not None:
                info = self._to_registry_info(package_name, metadata, client, primary=index == 0)
                break

        if info is None:
            log.debug("resolver.not_found", package=package_name)
            info = _unresolved(package_name)

        self._cache[key] = info
        return info

    async def resolve_many(
        self, package_names: Iterable[str], max_concurrency: int | None = None
    ) -> dict[str, RegistryInfo]:
        """Resolve distinct names with bounded concurrency.

        Keys are the first spelling seen of each name.
        """
        names: dict[str, str] = {}
        for name in package_names:
            names.setdefault(name.casefold(), name)

        semaphore = asyncio.Semaphore(max_concurrency or self._max_concurrency)

        async def _one(name: str) -> tuple[str, RegistryInfo]:
            async with semaphore:
                try:
                    return name, await self.resolve(name)
                except Exception as exc:
                    log.warning("resolver.lookup_failed", package=name, error=str(exc))
                    return name, _unresolved(name)

        results = await asyncio.gather(*(_one(n) for n in names.values()))
        log.info(
            "resolver.resolved",
            packages=len(results),
            found=sum(1 for _, info in results if info.is_resolved),
        )
        return dict(results)

    async def enrich(self, references: Iterable[PackageReference]) -> list[PackageReference]:
        """Return copies of *references* carrying :class:`RegistryInfo`.

        Packages missing from the primary registry are cross-referenced with
        the scanned projects; packages used below their latest version are
        marked outdated with their oldest straggler.
        """
        references = list(references)
        resolved = await self.resolve_many(r.name for r in references)
        infos = {name.casefold(): info for name, info in resolved.items()}

        catalog = build_catalog(references)
        for key, info in infos.items():
            if info.exists_on_primary_registry:
                continue
            candidate = find_source_project(info.package_name, catalog)
            if candidate is not None:
                infos[key] = dataclasses.replace(info, source_project_candidates=[candidate])

        infos = mark_outdated(infos, references)

        return [
            dataclasses.replace(r, registry_info=infos.get(r.name.casefold())) for r in references
        ]

    # ── cache ──────────────────────────────────────────────────────────────

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _to_registry_info(
        package_name: str,
        metadata: FeedPackageMetadata,
        client: NuGetFeedClient,
        primary: bool,
    ) -> RegistryInfo:
        description = metadata.description
        if description and len(description) > _DESCRIPTION_LIMIT:
            description = description[:_DESCRIPTION_LIMIT] + "..."

        vulnerabilities = detect_vulnerabilities(metadata.description, metadata.published)
        return RegistryInfo(
            package_name=package_name,
            exists_on_primary_registry=primary,
            latest_stable_version=metadata.latest_version,
            available_stable_versions=list(metadata.versions),
            is_deprecated=metadata.is_deprecated,
            is_vulnerable=bool(vulnerabilities),
            feed_name=client.name,
            package_url=client.package_url(package_name),
            description=description,
            vulnerabilities=vulnerabilities,
        )
