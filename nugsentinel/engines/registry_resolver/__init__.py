"""Registry resolver: NuGet v3 feed client and multi-feed package resolution."""

from nugsentinel.engines.registry_resolver.client import (
    NUGET_ORG_NAME,
    NUGET_ORG_URL,
    FeedPackageMetadata,
    NuGetFeedClient,
)
from nugsentinel.engines.registry_resolver.resolver import (
    DEFAULT_MAX_CONCURRENCY,
    PackageResolver,
    detect_vulnerabilities,
)

__all__ = [
    "DEFAULT_MAX_CONCURRENCY",
    "NUGET_ORG_NAME",
    "NUGET_ORG_URL",
    "FeedPackageMetadata",
    "NuGetFeedClient",
    "PackageResolver",
    "detect_vulnerabilities",
]
