"""Async NuGet v3 feed client with service-index discovery and retries."""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import structlog

from nugsentinel.core.errors import FeedError
from nugsentinel.engines.versioning import compare_versions

log = structlog.get_logger("nugsentinel.engine")

NUGET_ORG_NAME = "nuget.org"
NUGET_ORG_URL = "https://api.nuget.org/v3/index.json"

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_REGISTRATIONS_TYPE = "RegistrationsBaseUrl"


@dataclass
class FeedPackageMetadata:
    """Listed stable versions of one package plus catalog data of the newest."""

    package_id: str
    versions: list[str]  # ascending
    description: str | None = None
    authors: str | None = None
    project_url: str | None = None
    published: datetime | None = None
    deprecation_reasons: list[str] = field(default_factory=list)
    is_deprecated: bool = False

    @property
    def latest_version(self) -> str:
        return self.versions[-1]


def _is_prerelease(version: str) -> bool:
    return "-" in version.split("+", 1)[0]


def _parse_published(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _authors(value: Any) -> str | None:
    if isinstance(value, list):
        return ", ".join(str(a) for a in value) or None
    return value or None


class NuGetFeedClient:
    """Thin async wrapper around one NuGet v3 feed.

    The service index is fetched once and its ``RegistrationsBaseUrl``
    resource is used for every package lookup.
    """

    def __init__(
        self,
        name: str,
        url: str = NUGET_ORG_URL,
        username: str | None = None,
        password: str | None = None,
        *,
        timeout: float = 30.0,
        retry_base_delay: float = _RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self.url = url.strip()
        self._retry_base_delay = retry_base_delay
        self._registrations_base: str | None = None
        auth = httpx.BasicAuth(username or "nugsentinel", password) if password else None
        self._client = httpx.AsyncClient(
            headers={"Accept": "application/json"},
            timeout=timeout,
            auth=auth,
            follow_redirects=True,
            transport=transport,
        )

    @property
    def is_nuget_org(self) -> bool:
        return "nuget.org" in self.url.lower()

    def package_url(self, package_id: str) -> str:
        if self.is_nuget_org:
            return f"https://www.nuget.org/packages/{package_id}"
        return self.url

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NuGetFeedClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def registrations_base_url(self) -> str:
        """Discover the registration resource from the service index.

        Raises :class:`FeedError` when the index is unreachable or lacks one.
        """
        if self._registrations_base is not None:
            return self._registrations_base

        try:
            response = await self._request_with_retry(self.url)
            if response.status_code == 404:
                raise FeedError(self.name, f"service index not found at {self.url}")
            index = response.json()
        except httpx.HTTPError as exc:
            raise FeedError(self.name, f"service index unavailable: {exc}") from exc
        except ValueError as exc:
            raise FeedError(self.name, "service index is not valid JSON") from exc

        for resource in index.get("resources", []):
            types = resource.get("@type", [])
            if isinstance(types, str):
                types = [types]
            if any(t.startswith(_REGISTRATIONS_TYPE) for t in types) and resource.get("@id"):
                self._registrations_base = resource["@id"].rstrip("/") + "/"
                return self._registrations_base

        raise FeedError(self.name, "service index has no RegistrationsBaseUrl resource")

    async def get_package(self, package_id: str) -> FeedPackageMetadata | None:
        """Listed, stable versions of *package_id*, or ``None`` if the feed lacks it."""
        base = await self.registrations_base_url()
        response = await self._request_with_retry(f"{base}{package_id.lower()}/index.json")
        if response.status_code == 404:
            return None

        entries: list[dict[str, Any]] = []
        for page in response.json().get("items", []):
            leaves = page.get("items")
            if leaves is None:
                page_response = await self._request_with_retry(page["@id"])
                if page_response.status_code == 404:
                    continue
                leaves = page_response.json().get("items", [])
            entries.extend(leaf.get("catalogEntry", {}) for leaf in leaves)

        stable = [
            e
            for e in entries
            if e.get("version") and e.get("listed", True) and not _is_prerelease(e["version"])
        ]
        if not stable:
            return None

        by_version = {e["version"].split("+", 1)[0]: e for e in stable}
        versions = sorted(by_version, key=functools.cmp_to_key(compare_versions))
        newest = by_version[versions[-1]]
        deprecation = newest.get("deprecation")

        log.debug("feed.package_found", feed=self.name, package=package_id, versions=len(versions))
        return FeedPackageMetadata(
            package_id=newest.get("id") or package_id,
            versions=versions,
            description=newest.get("description") or None,
            authors=_authors(newest.get("authors")),
            project_url=newest.get("projectUrl") or None,
            published=_parse_published(newest.get("published")),
            deprecation_reasons=list(deprecation.get("reasons", [])) if deprecation else [],
            is_deprecated=bool(deprecation),
        )

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(self, url: str) -> httpx.Response:
        """GET with exponential backoff on 5xx and timeout errors.

        404 is returned to the caller; other 4xx raise ``HTTPStatusError``.
        """
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url)

                if resp.status_code == 404:
                    return resp

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                # 5xx: retry
                log.warning(
                    "feed.server_error",
                    feed=self.name,
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "feed.timeout",
                    feed=self.name,
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                delay = self._retry_base_delay * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]
