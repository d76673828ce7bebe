"""
IP geolocation via the IPStack API, with security-module degradation.

The lookup runs as a two-step state machine:

    WITH_SECURITY --(security module unsupported)--> WITHOUT_SECURITY --> done

Every other outcome (success or failure) is terminal. Provider faults are
returned as GeolocationFailure values; nothing is raised to the caller.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from isp_finder.config import PLACEHOLDER_IPSTACK_KEY, settings
from isp_finder.models import (
    GeolocationData,
    GeolocationFailure,
    GeolocationFailureReason,
    GeolocationSuccess,
    SecurityAssessment,
)
from isp_finder.providers.http import provider_client
from isp_finder.utils.cancellation import CancellationToken, check_cancelled

logger = logging.getLogger(__name__)

GeolocationResult = Union[GeolocationSuccess, GeolocationFailure]


class GeolocationAttempt(str, Enum):
    WITH_SECURITY = "with_security"
    WITHOUT_SECURITY = "without_security"


# Next attempt after the provider rejects the security module; None = terminal
NEXT_ATTEMPT: Dict[GeolocationAttempt, Optional[GeolocationAttempt]] = {
    GeolocationAttempt.WITH_SECURITY: GeolocationAttempt.WITHOUT_SECURITY,
    GeolocationAttempt.WITHOUT_SECURITY: None,
}

# IPStack error codes
INVALID_KEY_CODES = {101}
INACTIVE_ACCOUNT_CODES = {102}
QUOTA_EXCEEDED_CODES = {104}
SECURITY_UNSUPPORTED_CODES = {105}

_ERROR_MESSAGES = {
    GeolocationFailureReason.NOT_CONFIGURED: (
        "IPStack API key not configured. Add your API key to IPSTACK_API_KEY to enable geolocation."
    ),
    GeolocationFailureReason.INVALID_KEY: "IPStack rejected the API key. Check IPSTACK_API_KEY.",
    GeolocationFailureReason.INACTIVE_ACCOUNT: "IPStack account is inactive.",
    GeolocationFailureReason.QUOTA_EXCEEDED: "IPStack monthly usage limit reached.",
    GeolocationFailureReason.NETWORK: "Unable to reach the geolocation service. Check your internet connection.",
    GeolocationFailureReason.MALFORMED_RESPONSE: "Geolocation service returned incomplete location data.",
}


class SecurityModuleUnsupported(Exception):
    """Internal signal: the provider plan does not include the security module."""


def _failure(reason: GeolocationFailureReason, message: Optional[str] = None) -> GeolocationFailure:
    return GeolocationFailure(reason=reason, message=message or _ERROR_MESSAGES[reason])


def _classify_error(error: Dict[str, Any], attempt: GeolocationAttempt) -> GeolocationFailure:
    """Map an IPStack error payload to a failure, or signal the security fallback."""
    code = error.get("code")
    info = error.get("info") or error.get("type") or "unknown error"

    if code in SECURITY_UNSUPPORTED_CODES and attempt == GeolocationAttempt.WITH_SECURITY:
        raise SecurityModuleUnsupported(info)
    if code in INVALID_KEY_CODES:
        return _failure(GeolocationFailureReason.INVALID_KEY)
    if code in INACTIVE_ACCOUNT_CODES:
        return _failure(GeolocationFailureReason.INACTIVE_ACCOUNT)
    if code in QUOTA_EXCEEDED_CODES:
        return _failure(GeolocationFailureReason.QUOTA_EXCEEDED)
    return _failure(GeolocationFailureReason.UPSTREAM, f"IPStack API error {code}: {info}")


def parse_geolocation(payload: Dict[str, Any], include_security: bool = True) -> Optional[GeolocationData]:
    """
    Build GeolocationData from an IPStack response body.

    Returns None when ip, city or coordinates are missing or invalid.
    """
    if not isinstance(payload, dict):
        return None
    if not payload.get("ip") or not payload.get("city"):
        return None
    if payload.get("latitude") is None or payload.get("longitude") is None:
        return None

    raw_security = payload.get("security") if include_security else None
    try:
        security = None
        if isinstance(raw_security, dict):
            security = SecurityAssessment(
                is_proxy=bool(raw_security.get("is_proxy")),
                is_tor=bool(raw_security.get("is_tor")),
                threat_level=raw_security.get("threat_level") or "low",
                threat_types=raw_security.get("threat_types") or [],
            )
        return GeolocationData(
            ip=payload["ip"],
            city=payload["city"],
            region=payload.get("region_name") or "",
            country=payload.get("country_name") or "",
            latitude=payload["latitude"],
            longitude=payload["longitude"],
            security=security,
        )
    except ValidationError:
        return None


async def _request_once(
    client: httpx.AsyncClient,
    base_url: str,
    api_key: str,
    attempt: GeolocationAttempt,
) -> GeolocationResult:
    params = {"access_key": api_key}
    if attempt == GeolocationAttempt.WITH_SECURITY:
        params["security"] = "1"

    try:
        response = await client.get(f"{base_url.rstrip('/')}/check", params=params)
    except httpx.TransportError as e:
        logger.warning("Geolocation request failed: %s", e)
        return _failure(GeolocationFailureReason.NETWORK)

    if response.status_code != 200:
        logger.warning("Geolocation service returned HTTP %s", response.status_code)
        return _failure(GeolocationFailureReason.UPSTREAM, f"IPStack API error: HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError:
        return _failure(GeolocationFailureReason.MALFORMED_RESPONSE)

    if isinstance(payload, dict) and (payload.get("success") is False or "error" in payload):
        return _classify_error(payload.get("error") or {}, attempt)

    data = parse_geolocation(payload, include_security=attempt == GeolocationAttempt.WITH_SECURITY)
    if data is None:
        logger.warning("Geolocation response missing required fields")
        return _failure(GeolocationFailureReason.MALFORMED_RESPONSE)

    return GeolocationSuccess(data=data, degraded=attempt == GeolocationAttempt.WITHOUT_SECURITY)


async def fetch_geolocation(
    api_key: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    base_url: Optional[str] = None,
    token: Optional[CancellationToken] = None,
) -> GeolocationResult:
    """
    Look up the caller's location, preferring the security-enriched payload.

    Args:
        api_key: IPStack key, defaults to IPSTACK_API_KEY
        client: Optional shared HTTP client
        base_url: Override for the IPStack endpoint
        token: Optional cancellation token checked around each request

    Returns:
        GeolocationSuccess (degraded=True if fetched without security data)
        or GeolocationFailure with a typed reason

    Raises:
        OperationCancelled: If the token is cancelled
    """
    key = (api_key if api_key is not None else settings.IPSTACK_API_KEY) or ""
    key = key.strip()
    if not key or key == PLACEHOLDER_IPSTACK_KEY:
        logger.warning("IPStack API key not found or using placeholder. Geolocation disabled.")
        return _failure(GeolocationFailureReason.NOT_CONFIGURED)

    base_url = base_url or settings.IPSTACK_BASE_URL
    attempt: Optional[GeolocationAttempt] = GeolocationAttempt.WITH_SECURITY
    result: GeolocationResult = _failure(GeolocationFailureReason.UPSTREAM, "No geolocation attempt made")

    async with provider_client(client) as http:
        while attempt is not None:
            check_cancelled(token)
            try:
                result = await _request_once(http, base_url, key, attempt)
                attempt = None
            except SecurityModuleUnsupported as e:
                logger.info("Security module unavailable (%s), retrying without it", e)
                attempt = NEXT_ATTEMPT[attempt]
            check_cancelled(token)

    if isinstance(result, GeolocationFailure):
        logger.error("Geolocation failed: %s (%s)", result.reason.value, result.message)
    return result
