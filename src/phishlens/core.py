"""
Core analyze() function - main entry point for the analysis adapter.
"""

import logging
import re
from typing import Any, Callable, Optional

import httpx

from phishlens.agent import synthesize_trace
from phishlens.client import ROUTES, post_json
from phishlens.config import get_api_base_url, get_timeout_ms, is_live_required
from phishlens.errors import (
    MisconfiguredEnvironment,
    PhishLensError,
    UnsupportedModeError,
    ValidationError,
)
from phishlens.fusion import (
    build_fusion,
    collect_reasons,
    collect_urls,
    fallback_fusion,
    unique,
)
from phishlens.ids import safe_request_id, utc_timestamp
from phishlens.models import (
    MODES,
    AnalysisRequest,
    AnalyzeResponse,
    FusionSource,
    agent_from_payload,
)
from phishlens.scoring import normalize_score, round_score, top_level_verdict
from phishlens.simulator import simulate_analysis


logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

DEFAULT_URL_MODEL_VERSION = "url_service_v2"
DEFAULT_TEXT_MODEL_VERSION = "text_service_v2"


def validate_request(request: AnalysisRequest) -> AnalysisRequest:
    """
    Check a request before it leaves the process.

    Image mode is rejected separately (see analyze()).

    Returns:
        Copy of the request with the value stripped

    Raises:
        ValidationError: Unknown mode, empty value, or URL without http(s)://
    """
    if request.mode not in MODES:
        raise ValidationError(f"Unknown analysis mode: {request.mode!r}")

    value = request.value.strip() if isinstance(request.value, str) else ""
    if not value:
        raise ValidationError("Provide a URL or payload to analyze.")
    if request.mode == "url" and not URL_PATTERN.match(value):
        raise ValidationError("Enter a valid URL that includes http(s)://")

    return AnalysisRequest(mode=request.mode, value=value)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _string_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def adapt_url_response(
    payload: Any,
    id_factory: Callable[[], str] = safe_request_id,
    clock: Callable[[], str] = utc_timestamp,
) -> AnalyzeResponse:
    """
    Map an ``/analyze_url_v2`` payload onto the canonical response.

    Args:
        payload: Decoded upstream JSON (anything; bad shapes degrade to defaults)
        id_factory: Request id provider, used when upstream sends none
        clock: Timestamp provider, used when upstream sends none

    Returns:
        AnalyzeResponse with fusion, reasons, URLs and an agent trace
    """
    if not isinstance(payload, dict):
        payload = {}

    probability = normalize_score(payload.get("confidence"))
    verdict = top_level_verdict(payload.get("final_verdict"), probability)
    models = payload.get("models")

    fusion = build_fusion(models) or fallback_fusion(verdict, probability)
    agent = agent_from_payload(payload.get("agent")) or synthesize_trace(models, verdict)

    return AnalyzeResponse(
        verdict=verdict,
        phishing_prob=probability,
        fusion=fusion,
        detected_brands=_string_list(payload.get("detected_brands")),
        visual_reasons=_string_list(payload.get("visual_reasons")) + collect_reasons(models),
        extracted_urls=unique(_string_list(payload.get("extracted_urls")) + collect_urls(models)),
        model_version=_string_or(payload.get("model_version"), DEFAULT_URL_MODEL_VERSION),
        request_id=_string_or(payload.get("request_id"), "") or id_factory(),
        timestamp=_string_or(payload.get("timestamp"), "") or clock(),
        agent=agent,
    )


def adapt_text_response(
    payload: Any,
    id_factory: Callable[[], str] = safe_request_id,
    clock: Callable[[], str] = utc_timestamp,
) -> AnalyzeResponse:
    """
    Map an ``/analyze_text`` payload onto the canonical response.

    The text service is a single classifier, so fusion is one ``distilbert``
    entry and there is no agent trace.
    """
    if not isinstance(payload, dict):
        payload = {}

    probability = normalize_score(payload.get("confidence"))
    verdict = top_level_verdict(payload.get("is_phishing"), probability)

    return AnalyzeResponse(
        verdict=verdict,
        phishing_prob=probability,
        fusion={"distilbert": FusionSource(label=verdict, score=round_score(probability))},
        detected_brands=[],
        visual_reasons=_string_list(payload.get("reasons")),
        extracted_urls=unique(_string_list(payload.get("extracted_urls"))),
        model_version=_string_or(payload.get("model_version"), DEFAULT_TEXT_MODEL_VERSION),
        request_id=_string_or(payload.get("request_id"), "") or id_factory(),
        timestamp=_string_or(payload.get("timestamp"), "") or clock(),
    )


async def analyze(
    request: AnalysisRequest,
    base_url: Optional[str] = None,
    require_live: Optional[bool] = None,
    timeout: Optional[int] = None,
    id_factory: Callable[[], str] = safe_request_id,
    clock: Callable[[], str] = utc_timestamp,
    client: Optional[httpx.AsyncClient] = None,
) -> AnalyzeResponse:
    """
    Analyze a URL or text payload and return the canonical response.

    This is the main entry point. It:
    1. Rejects image mode outright
    2. Validates the request
    3. Routes to the simulator when no backend is configured
    4. Calls the live backend and adapts its payload otherwise

    Args:
        request: Mode and value to analyze
        base_url: Backend base URL; None reads config, "" forces the simulator
        require_live: Fail instead of simulating without a backend; None reads config
        timeout: Upstream timeout in milliseconds; None reads config
        id_factory: Request id provider
        clock: Timestamp provider
        client: Optional httpx client for the upstream call

    Returns:
        AnalyzeResponse

    Raises:
        UnsupportedModeError: For image mode
        ValidationError: For malformed requests
        MisconfiguredEnvironment: No backend configured but live mode required
        UpstreamUnreachable: Backend failed or answered with an error
    """
    if request.mode == "image":
        raise UnsupportedModeError(request.mode)

    validated = validate_request(request)

    if base_url is None:
        base_url = get_api_base_url()
    base_url = (base_url or "").rstrip("/")

    if not base_url:
        if require_live is None:
            require_live = is_live_required()
        if require_live:
            raise MisconfiguredEnvironment(
                "No analysis service configured. Set PHISHLENS_API_BASE_URL "
                "or unset PHISHLENS_REQUIRE_LIVE to use the simulator."
            )
        logger.info("No analysis service configured, using simulator")
        # Simulated probability is derived from the value as typed, unstripped
        return await simulate_analysis(request, id_factory=id_factory, clock=clock)

    if timeout is None:
        timeout = get_timeout_ms()

    try:
        if validated.mode == "url":
            payload = await post_json(
                base_url, ROUTES["url"], {"url": validated.value}, timeout, client
            )
            return adapt_url_response(payload, id_factory, clock)

        payload = await post_json(
            base_url, ROUTES["text"], {"text": validated.value}, timeout, client
        )
        return adapt_text_response(payload, id_factory, clock)
    except PhishLensError as e:
        logger.error("Live analysis request failed: %s", e)
        raise
