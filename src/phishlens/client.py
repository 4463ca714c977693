"""
HTTP client for the upstream phishing-analysis service.

One POST per request, no retries. Every transport or HTTP failure surfaces
as UpstreamUnreachable.
"""

import json
import logging
from typing import Any, Optional

import httpx

from phishlens.errors import MisconfiguredEnvironment, UpstreamUnreachable


logger = logging.getLogger(__name__)

ROUTES = {
    "url": "/analyze_url_v2",
    "text": "/analyze_text",
}

USER_AGENT = "PhishLens/0.1 (Analysis Console Adapter)"


def error_message(response: httpx.Response) -> str:
    """
    Best-effort error text for a non-2xx upstream response.

    Prefers a JSON ``detail`` or ``message`` field, then the raw body.

    Args:
        response: Failed upstream response

    Returns:
        Human-readable message, never empty
    """
    message = None
    try:
        data = response.json()
    except ValueError:
        message = response.text
    else:
        if isinstance(data, dict):
            message = data.get("detail") or data.get("message")
            if message is not None and not isinstance(message, str):
                message = json.dumps(message)

    return message or f"Analysis API {response.status_code} error."


async def _send(
    client: httpx.AsyncClient, url: str, body: dict
) -> httpx.Response:
    try:
        return await client.post(url, json=body)
    except httpx.TimeoutException:
        raise UpstreamUnreachable("Analysis service request timed out")
    except httpx.RequestError as e:
        raise UpstreamUnreachable(f"Analysis service unreachable: {e}")


async def post_json(
    base_url: str,
    path: str,
    body: dict,
    timeout: int = 30000,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    POST a JSON body to the analysis service and decode the JSON reply.

    Args:
        base_url: Service base URL (no trailing slash)
        path: Route, e.g. "/analyze_url_v2"
        body: JSON request body
        timeout: Timeout in milliseconds (ignored when client is given)
        client: Optional pre-built client, used as-is and left open

    Returns:
        Decoded JSON payload

    Raises:
        MisconfiguredEnvironment: If base_url is empty
        UpstreamUnreachable: On transport errors, non-2xx or non-JSON replies
    """
    if not base_url:
        raise MisconfiguredEnvironment(
            "Set PHISHLENS_API_BASE_URL to connect to the live analysis service."
        )

    url = f"{base_url}{path}"
    logger.debug("POST %s", url)

    if client is not None:
        response = await _send(client, url, body)
    else:
        async with httpx.AsyncClient(
            timeout=timeout / 1000,
            headers={"User-Agent": USER_AGENT},
        ) as own_client:
            response = await _send(own_client, url, body)

    if not response.is_success:
        raise UpstreamUnreachable(error_message(response), status_code=response.status_code)

    try:
        return response.json()
    except ValueError:
        raise UpstreamUnreachable(
            "Analysis service returned a non-JSON response",
            status_code=response.status_code,
        )
