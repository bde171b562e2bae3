"""Client for the AUR RPC interface (v5).

Only read-only queries are made. Name lookups are split into chunks
that fit into one request and issued concurrently; each request is
retried with exponential backoff before giving up.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from aurctl.aur.models import PackageMetadata
from aurctl.core.config import AurSettings
from aurctl.core.errors import AurNetworkError

logger = logging.getLogger(__name__)

# The RPC rejects URIs longer than ~4400 bytes; 150 names stays well below
MAX_NAMES_PER_REQUEST = 150

RPC_VERSION = 5


@dataclass(frozen=True, slots=True)
class LookupResult:
    """Result of a batched name lookup.

    Attributes:
        found: Name to metadata for every name the AUR knows.
        missing: Requested names the AUR does not know, in request order.
    """

    found: dict[str, PackageMetadata] = field(default_factory=lambda: {})
    missing: tuple[str, ...] = ()


def _chunks(names: Sequence[str], size: int) -> list[list[str]]:
    return [list(names[i : i + size]) for i in range(0, len(names), size)]


class AurClient:
    """Read-only access to AUR package metadata.

    Example:
        >>> with AurClient(AurSettings()) as aur:
        ...     result = aur.lookup(["yay", "paru"])
        ...     print(sorted(result.found), result.missing)
    """

    def __init__(
        self,
        settings: AurSettings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Connection settings. Defaults are used if None.
            transport: Custom httpx transport (used by tests).
        """
        self._settings = settings or AurSettings()
        self._base_url = self._settings.url.rstrip("/")
        self._http = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._settings.timeout_seconds),
            headers={"User-Agent": "aurctl"},
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> AurClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying connection pool."""
        self._http.close()

    def lookup(self, names: Iterable[str]) -> LookupResult:
        """Look up metadata for packages by exact name.

        Unknown names are reported in ``missing`` rather than failing the
        whole lookup.

        Args:
            names: Package names; duplicates are queried once.

        Returns:
            LookupResult with found metadata and missing names.

        Raises:
            AurNetworkError: If the AUR cannot be reached after retries,
                or answers with something that is not a valid RPC response.
        """
        unique = list(dict.fromkeys(names))
        if not unique:
            return LookupResult()

        chunks = _chunks(unique, MAX_NAMES_PER_REQUEST)
        logger.debug("Looking up %d AUR names in %d request(s)", len(unique), len(chunks))

        if len(chunks) == 1:
            responses = [self._info(chunks[0])]
        else:
            workers = min(self._settings.jobs, len(chunks))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                responses = list(pool.map(self._info, chunks))

        found: dict[str, PackageMetadata] = {}
        for packages in responses:
            for package in packages:
                found[package.name] = package

        missing = tuple(name for name in unique if name not in found)
        if missing:
            logger.debug("Not in the AUR: %s", ", ".join(missing))
        return LookupResult(found=found, missing=missing)

    def search(self, terms: Sequence[str], by: str = "name-desc") -> list[PackageMetadata]:
        """Search the AUR.

        The RPC accepts one term per query, so the longest term is sent
        and the results are narrowed to those matching every term in the
        name or description.

        Args:
            terms: Search terms (case-insensitive).
            by: RPC search field (name, name-desc, maintainer, ...).

        Returns:
            Matching packages in RPC order.

        Raises:
            AurNetworkError: On network or protocol failure.
        """
        words = [t for t in terms if t]
        if not words:
            return []

        longest = max(words, key=len)
        payload = self._request(
            f"/rpc/?v={RPC_VERSION}&type=search&by={quote(by)}&arg={quote(longest)}"
        )
        packages = self._parse_results(payload)

        lowered = [w.lower() for w in words]

        def matches(package: PackageMetadata) -> bool:
            haystack = f"{package.name} {package.description or ''}".lower()
            return all(w in haystack for w in lowered)

        return [p for p in packages if matches(p)]

    def pkgbuild(self, package_base: str) -> str:
        """Fetch the current PKGBUILD of a package base for viewing.

        Raises:
            AurNetworkError: On network failure or unknown package base.
        """
        url = f"/cgit/aur.git/plain/PKGBUILD?h={quote(package_base)}"
        response = self._get(url)
        if response.status_code == 404:
            raise AurNetworkError(f"No PKGBUILD found for {package_base}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise AurNetworkError(f"AUR returned HTTP {e.response.status_code}") from e
        return response.text

    def clone_url(self, package_base: str) -> str:
        """Git URL of a package base's build scripts."""
        return f"{self._base_url}/{package_base}.git"

    def _info(self, names: list[str]) -> list[PackageMetadata]:
        query = "&".join(f"arg[]={quote(name)}" for name in names)
        payload = self._request(f"/rpc/?v={RPC_VERSION}&type=info&{query}")
        return self._parse_results(payload)

    def _request(self, url: str) -> dict[str, Any]:
        response = self._get(url)
        try:
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise AurNetworkError(f"AUR returned HTTP {e.response.status_code}") from e
        except ValueError as e:
            raise AurNetworkError(f"AUR returned malformed JSON: {e}") from e

        if not isinstance(payload, dict):
            raise AurNetworkError("AUR returned an unexpected response")
        if payload.get("type") == "error":
            raise AurNetworkError(f"AUR error: {payload.get('error', 'unknown error')}")
        return payload

    def _get(self, url: str) -> httpx.Response:
        """GET with bounded retries and exponential backoff.

        Retries on transport errors and 5xx responses; 4xx are returned.
        """
        attempts = self._settings.retries
        delay = self._settings.backoff_seconds
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = self._http.get(url)
            except httpx.TransportError as e:
                last_error = e
                logger.debug("AUR request failed (attempt %d/%d): %s", attempt, attempts, e)
            else:
                if response.status_code < 500:
                    return response
                last_error = httpx.HTTPStatusError(
                    f"HTTP {response.status_code}", request=response.request, response=response
                )
                logger.debug(
                    "AUR returned HTTP %d (attempt %d/%d)", response.status_code, attempt, attempts
                )

            if attempt < attempts:
                time.sleep(delay)
                delay *= 2

        raise AurNetworkError(f"AUR unreachable after {attempts} attempt(s): {last_error}")

    @staticmethod
    def _parse_results(payload: dict[str, Any]) -> list[PackageMetadata]:
        results = payload.get("results")
        if not isinstance(results, list):
            raise AurNetworkError("AUR response has no result list")
        try:
            return [PackageMetadata.model_validate(item) for item in results]
        except ValidationError as e:
            raise AurNetworkError(f"AUR returned invalid package metadata: {e}") from e


def sort_results(
    packages: Sequence[PackageMetadata],
    *,
    abc: bool = False,
    reverse: bool = False,
    limit: int | None = None,
) -> list[PackageMetadata]:
    """Order search results for display.

    By default the most voted packages come first; with ``abc`` they are
    sorted by name. ``reverse`` flips the order and ``limit`` keeps the
    first N after ordering.
    """
    if abc:
        ordered = sorted(packages, key=lambda p: p.name)
    else:
        ordered = sorted(packages, key=lambda p: (-p.votes, p.name))
    if reverse:
        ordered.reverse()
    if limit is not None:
        ordered = ordered[: max(limit, 0)]
    return ordered
