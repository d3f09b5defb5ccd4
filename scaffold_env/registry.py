"""Package registry metadata client.

Fetches npm-style package documents (`{"versions": {version: manifest}}`).
Network unavailability is expected, so every failure is returned as
`PackageMetadata.error` instead of raised.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from .models import PackageMetadata

logger = logging.getLogger(__name__)


class RegistryClient:
    """Reads package metadata from an npm-compatible registry."""

    def __init__(
        self,
        registry_url: str = "https://registry.npmjs.org",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            registry_url: Registry base URL.
            timeout: Seconds per request.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._cache: dict[str, PackageMetadata] = {}

    def package_url(self, package_hint: str) -> str:
        # Scoped names keep the @ but encode the slash: @scope%2Fname
        return f"{self.registry_url}/{quote(package_hint, safe='@')}"

    async def fetch_all(self, package_hint: str) -> PackageMetadata:
        """Fetch every published version of a package. Never raises."""
        if package_hint in self._cache:
            return self._cache[package_hint]

        url = self.package_url(package_hint)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
            if response.status_code != 200:
                return self._failed(package_hint, f"HTTP {response.status_code} for {url}")
            document = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return self._failed(package_hint, f"{type(e).__name__}: {e}")

        if not isinstance(document, dict):
            return self._failed(package_hint, "Registry document is not an object")
        if document.get("error"):
            return self._failed(package_hint, str(document["error"]))

        metadata = PackageMetadata(name=package_hint, versions=document.get("versions") or {})
        self._cache[package_hint] = metadata
        logger.debug(f"Fetched {len(metadata.versions)} versions of {package_hint}")
        return metadata

    def _failed(self, package_hint: str, error: str) -> PackageMetadata:
        logger.debug(f"Could not fetch registry metadata for {package_hint}: {error}")
        return PackageMetadata(name=package_hint, error=error)
