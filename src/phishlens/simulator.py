"""
Self-contained simulator used when no analysis backend is configured.

Fabricates a full AnalyzeResponse with a scripted five-step agent trace,
after an artificial 0.7-1.2s delay to mimic network latency.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from phishlens.ids import safe_request_id, utc_timestamp
from phishlens.models import (
    AgentGuardrails,
    AgentStep,
    AgentSummary,
    AnalysisRequest,
    AnalyzeResponse,
    FusionSource,
)
from phishlens.scoring import round_score, top_level_verdict


logger = logging.getLogger(__name__)

MIN_DELAY_S = 0.7
MAX_DELAY_S = 1.2

# Simulated upstream flags phishing above this probability
SIMULATED_PHISH_THRESHOLD = 0.7
# Guardrails escalate only for phish verdicts above this probability
ESCALATION_THRESHOLD = 0.85

FALLBACK_STEP_MS = 60
BUDGET_MS = 2000

FUSION_SOURCES = ["DistilBERT", "pipeline", "graph", "otx"]
BRANDS = ["Microsoft 365", "Okta"]

DECISIONS = {
    "phish": "Multiple sources high-risk. Recommend block and auto-quarantine.",
    "suspicious": "Signals mixed. Escalate to analyst queue.",
    "safe": "Low risk. Allow but continue monitoring.",
}


def random_fusion(rng: random.Random) -> dict[str, FusionSource]:
    """Random per-source scores, labelled by thirds."""
    fusion = {}
    for key in FUSION_SOURCES:
        score = rng.random()
        if score > 0.66:
            label = "phish"
        elif score > 0.33:
            label = "suspicious"
        else:
            label = "safe"
        fusion[key] = FusionSource(label=label, score=round_score(score))
    return fusion


def simulated_probability(value: str) -> float:
    """Deterministic pseudo-probability from the input length."""
    return len(value) % 100 / 100


def build_steps(mode: str, verdict: str) -> list[AgentStep]:
    """Scripted plan -> text -> url -> image -> decision trace for a mode."""
    is_text = mode == "text"
    is_image = mode == "image"

    return [
        AgentStep(
            id="plan",
            title="Planner",
            description="Decide which analyzers to run based on provided payload.",
            status="complete",
            action="run",
            output="Need text, URL, and image checks; prioritizing URL since payload includes a link.",
            duration_ms=120,
        ),
        AgentStep(
            id="text",
            title="TextAnalyzer",
            description="DistilBERT ONNX inference on message body.",
            status="complete",
            action="run" if is_text else "skipped",
            reason=None if is_text else "Skipped because payload lacked rich text.",
            output="Detected urgency + credential harvest language." if is_text else "No text payload provided.",
            duration_ms=340 if is_text else None,
        ),
        AgentStep(
            id="url",
            title="UrlScanner",
            description="Scanner + HF + Graph + OTX fusion on submitted domain.",
            status="complete",
            action="skipped" if is_image else "run",
            reason="Skipped until URL artifacts exist." if is_image else None,
            output="Domain observed on OpenPhish and newly registered 3 days ago.",
            duration_ms=270,
        ),
        AgentStep(
            id="image",
            title="ImageVision",
            description="OCR + brand signature verify screenshot attachments.",
            status="running" if is_image else "complete",
            action="run" if is_image else "skipped",
            reason=None if is_image else "Skipped - no screenshots detected.",
            output="Found mismatched bank logo + base64 form." if is_image else "No screenshot supplied.",
            duration_ms=480 if is_image else None,
        ),
        AgentStep(
            id="decision",
            title="Decision Engine",
            description="Fuse tool outputs and apply policy rules.",
            status="complete",
            action="run",
            output=DECISIONS[verdict],
            duration_ms=90,
        ),
    ]


async def simulate_analysis(
    request: AnalysisRequest,
    rng: Optional[random.Random] = None,
    id_factory: Callable[[], str] = safe_request_id,
    clock: Callable[[], str] = utc_timestamp,
    sleep: Callable[[float], Awaitable] = asyncio.sleep,
) -> AnalyzeResponse:
    """
    Fabricate a complete response without touching the network.

    Never raises. Accepts every mode, image included, so demo pages can
    show the running-step state.

    Args:
        request: Mode and value to "analyze"
        rng: Random source for latency and fusion scores
        id_factory: Request id provider
        clock: Timestamp provider
        sleep: Awaitable delay function

    Returns:
        AnalyzeResponse with a simulated agent trace
    """
    rng = rng or random.Random()
    delay = rng.uniform(MIN_DELAY_S, MAX_DELAY_S)
    logger.debug("Simulating %s analysis (%.2fs delay)", request.mode, delay)
    await sleep(delay)

    probability = simulated_probability(request.value)
    verdict = top_level_verdict(probability > SIMULATED_PHISH_THRESHOLD, probability)

    steps = build_steps(request.mode, verdict)
    elapsed = sum(
        step.duration_ms if step.duration_ms is not None else FALLBACK_STEP_MS
        for step in steps
    )

    agent = AgentSummary(
        planner="Orchestrator v0.2 determines modality workflow based on payload metadata.",
        conclusion=steps[-1].output or "Analysis complete.",
        steps=steps,
        elapsed_ms=elapsed,
        guardrails=AgentGuardrails(
            budget_ms=BUDGET_MS,
            consumed_ms=elapsed,
            escalated=verdict == "phish" and probability > ESCALATION_THRESHOLD,
            note="Operating within normal guardrails.",
        ),
    )

    return AnalyzeResponse(
        verdict=verdict,
        phishing_prob=probability,
        fusion=random_fusion(rng),
        detected_brands=BRANDS[: 2 if request.mode == "url" else 1],
        visual_reasons=[
            "Links to mismatched login domains",
            "Form collects credentials over http",
        ],
        extracted_urls=["https://secure.ms-login.help", "https://cdn-ms-assets.com/js/app.js"],
        model_version="analyze_url_v2",
        request_id=id_factory(),
        timestamp=clock(),
        agent=agent,
    )
