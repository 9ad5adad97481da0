"""HTTP adapter fetching entity details from a configured platform."""
from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import quote

import httpx

from intelmatch.errors import DetailFetchError, PlatformConfigError, TimeoutExceededError
from intelmatch.reconciliation.models import MultiPlatformResult, PlatformInfo
from intelmatch.reconciliation.platforms import find_platform

logger = logging.getLogger("intelmatch.adapters.http")

TOKEN_ENV_PREFIX = "INTELMATCH_TOKEN_"
_MAX_ATTEMPTS = 2
_ENV_UNSAFE_RE = re.compile(r"[^A-Z0-9]+")


def token_env_var(platform_id: str) -> str:
    """Environment variable holding the bearer token for *platform_id*."""

    return TOKEN_ENV_PREFIX + _ENV_UNSAFE_RE.sub("_", platform_id.upper()).strip("_")


def build_detail_url(platform: PlatformInfo, entity_id: str, entity_type: str) -> str:
    if not platform.detail_url:
        raise PlatformConfigError(
            message=f"Platform '{platform.id}' has no detail_url configured.",
            remediation="Add a detail_url template such as '{url}/api/entities/{entity_id}'.",
        )
    try:
        return platform.detail_url.format(
            url=platform.url,
            entity_id=quote(entity_id, safe=""),
            entity_type=quote(entity_type, safe=""),
        )
    except (KeyError, IndexError, ValueError) as exc:
        raise PlatformConfigError(
            message=f"The detail_url of platform '{platform.id}' is not a valid template.",
            remediation="Only the {url}, {entity_id} and {entity_type} placeholders are supported.",
        ) from exc


def fetch_entity_detail(
    entity_id: str,
    entity_type: str,
    platform: PlatformInfo,
    *,
    timeout_seconds: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, Any]:
    """GET one entity's details from *platform* and return the decoded JSON object."""

    endpoint = build_detail_url(platform, entity_id, entity_type)
    headers = {"Accept": "application/json", "User-Agent": "intelmatch"}
    token = os.getenv(token_env_var(platform.id))
    if token:
        headers["Authorization"] = f"Bearer {token}"

    attempt_timeout = max(1.0, timeout_seconds / _MAX_ATTEMPTS)

    for attempt in range(1, _MAX_ATTEMPTS + 1):
        try:
            start = time.perf_counter()
            with httpx.Client(
                timeout=attempt_timeout,
                transport=transport,
                follow_redirects=True,
                headers=headers,
                trust_env=True,
            ) as client:
                response = client.get(endpoint)
            latency = time.perf_counter() - start
        except httpx.TimeoutException as exc:
            raise TimeoutExceededError(
                message=f"Platform '{platform.id}' did not answer the detail request in time.",
                remediation="Verify network connectivity or raise the fetch timeout.",
            ) from exc
        except httpx.HTTPError as exc:
            if attempt < _MAX_ATTEMPTS:
                logger.debug(
                    "Retrying detail fetch after transport error",
                    extra={"platform_id": platform.id, "attempt": attempt},
                )
                time.sleep(0.5 * attempt)
                continue
            raise DetailFetchError(
                message=f"Unable to reach platform '{platform.id}' for entity details.",
                remediation="Review HTTPS_PROXY/HTTP_PROXY settings or retry with a stable connection.",
            ) from exc

        logger.debug(
            "Detail fetch completed",
            extra={
                "platform_id": platform.id,
                "status_code": response.status_code,
                "latency_seconds": round(latency, 3),
            },
        )
        return _decode_detail(response, platform)

    raise AssertionError("unreachable")  # pragma: no cover


def _decode_detail(response: httpx.Response, platform: PlatformInfo) -> dict[str, Any]:
    if response.status_code in (401, 403):
        raise DetailFetchError(
            message=f"Platform '{platform.id}' rejected the credentials (status {response.status_code}).",
            remediation=f"Set {token_env_var(platform.id)} to a valid API token.",
        )
    if response.status_code >= 400:
        raise DetailFetchError(
            message=f"Platform '{platform.id}' responded with status {response.status_code}.",
            remediation="Check that the entity still exists and that detail_url is correct.",
        )
    try:
        body = response.json()
    except ValueError as exc:
        raise DetailFetchError(
            message=f"Platform '{platform.id}' returned a body that is not JSON.",
            remediation="Point detail_url at the platform's JSON API rather than its web UI.",
        ) from exc
    if not isinstance(body, dict):
        raise DetailFetchError(
            message=f"Platform '{platform.id}' returned JSON that is not an object.",
            remediation="Point detail_url at an endpoint returning a single entity.",
        )
    return body


def make_detail_fetcher(
    known_platforms: Iterable[PlatformInfo],
    *,
    timeout_seconds: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> Callable[[MultiPlatformResult], Mapping[str, Any]]:
    """Adapt :func:`fetch_entity_detail` to the navigator's fetcher signature."""

    platforms = tuple(known_platforms)

    def fetch(result: MultiPlatformResult) -> Mapping[str, Any]:
        platform = find_platform(platforms, result.platform_id, result.entity.platform_type)
        if platform is None:
            raise PlatformConfigError(
                message=f"Platform '{result.platform_id}' is not configured.",
                remediation="Add the platform to the platforms file before fetching details.",
            )
        if not result.entity.entity_id:
            raise DetailFetchError(
                message="The selected result carries no entity id to fetch.",
                remediation="Re-run the scan so the platform match includes its entity id.",
            )
        return fetch_entity_detail(
            result.entity.entity_id,
            result.entity.clean_type,
            platform,
            timeout_seconds=timeout_seconds,
            transport=transport,
        )

    return fetch


__all__ = [
    "TOKEN_ENV_PREFIX",
    "build_detail_url",
    "fetch_entity_detail",
    "make_detail_fetcher",
    "token_env_var",
]
