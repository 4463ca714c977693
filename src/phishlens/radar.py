"""
Cloudflare Radar client for the console's live threat globe.

Radar rows use several naming schemes for the same location fields, so each
lookup walks an ordered list of candidate keys.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from phishlens.config import get_radar_token
from phishlens.errors import MisconfiguredEnvironment, UpstreamUnreachable
from phishlens.scoring import to_number_like


logger = logging.getLogger(__name__)

RADAR_ENDPOINT = "https://api.cloudflare.com/client/v4/radar/attacks/layer7/top/attacks"

CODE_FIELDS = ["location", "location_alpha2", "alpha2", "code", "country", "value"]
NAME_FIELDS = ["name", "location_name", "country", "location"]


@dataclass
class RadarLocation:
    code: str
    name: str


@dataclass
class RadarAttackPair:
    """One origin -> target attack flow"""
    id: str
    origin: RadarLocation
    target: RadarLocation
    magnitude: float


def _first_present(dimension: Any, fields: list[str]) -> Optional[Any]:
    if not isinstance(dimension, dict):
        return None
    for key in fields:
        value = dimension.get(key)
        if value:
            return value
    return None


def extract_location_code(dimension: Any) -> Optional[str]:
    code = _first_present(dimension, CODE_FIELDS)
    return str(code) if code else None


def extract_location_name(dimension: Any) -> str:
    name = _first_present(dimension, NAME_FIELDS)
    return str(name) if name else "Unknown"


def _magnitude(entry: dict) -> float:
    metrics = entry.get("metrics")
    candidates = [
        entry.get("value"),
        entry.get("sum"),
        entry.get("count"),
        metrics.get("requests") if isinstance(metrics, dict) else None,
    ]
    for candidate in candidates:
        if candidate is not None:
            return to_number_like(candidate) or 0.0
    return 0.0


def parse_attack_pairs(payload: Any) -> list[RadarAttackPair]:
    """
    Convert a Radar ``top/attacks`` payload into attack pairs.

    Rows missing either location code are dropped.

    Args:
        payload: Decoded Radar JSON

    Returns:
        List of RadarAttackPair in upstream order
    """
    result = payload.get("result") if isinstance(payload, dict) else None
    rows = result.get("top_0") if isinstance(result, dict) else None
    if not isinstance(rows, list):
        return []

    pairs = []
    for index, entry in enumerate(rows):
        if not isinstance(entry, dict):
            continue
        dimensions = entry.get("dimensions")
        if not isinstance(dimensions, dict):
            dimensions = {}

        origin = dimensions.get("origin") or dimensions.get("source")
        target = dimensions.get("target") or dimensions.get("destination")
        origin_code = extract_location_code(origin)
        target_code = extract_location_code(target)
        if not origin_code or not target_code:
            continue

        pairs.append(RadarAttackPair(
            id=str(entry.get("id") or f"{origin_code}-{target_code}-{index}"),
            origin=RadarLocation(code=origin_code.upper(), name=extract_location_name(origin)),
            target=RadarLocation(code=target_code.upper(), name=extract_location_name(target)),
            magnitude=_magnitude(entry),
        ))

    return pairs


async def fetch_radar_attack_pairs(
    date_range: str = "30m",
    limit: int = 12,
    token: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[RadarAttackPair]:
    """
    Fetch the top layer-7 attack pairs from Cloudflare Radar.

    Args:
        date_range: Radar dateRange window, e.g. "30m" or "1d"
        limit: Maximum number of rows
        token: API token; read from config when omitted
        client: Optional pre-built httpx client

    Returns:
        List of RadarAttackPair

    Raises:
        MisconfiguredEnvironment: If no token is configured
        UpstreamUnreachable: On transport errors or non-2xx replies
    """
    token = token or get_radar_token()
    if not token:
        raise MisconfiguredEnvironment(
            "Set RADAR_API_TOKEN in your environment to enable the live Radar feed."
        )

    params = {
        "dateRange": date_range,
        "limit": str(limit),
        "metric": "REQUESTS",
        "format": "json",
    }
    headers = {"Authorization": f"Bearer {token}"}

    try:
        if client is not None:
            response = await client.get(RADAR_ENDPOINT, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=30) as own_client:
                response = await own_client.get(RADAR_ENDPOINT, params=params, headers=headers)
    except httpx.RequestError as e:
        logger.error("Radar request failed: %s", e)
        raise UpstreamUnreachable(f"Radar API unreachable: {e}")

    if not response.is_success:
        message = response.text or "Unknown error"
        raise UpstreamUnreachable(
            f"Radar API {response.status_code}: {message}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError:
        raise UpstreamUnreachable("Radar API returned a non-JSON response")

    return parse_attack_pairs(payload)
