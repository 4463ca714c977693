"""
Synthesized agent traces for upstream responses that do not carry one.

The live path only ever sees a finished upstream response, so every
synthesized step is complete. Partial/skipped states exist only in the
simulator.
"""

import re
from typing import Any, Optional

from phishlens.models import (
    BUDGET_MS,
    FALLBACK_STEP_MS,
    AgentGuardrails,
    AgentStep,
    AgentSummary,
)
from phishlens.scoring import normalize_score, to_number_like


STEP_DESCRIPTION = "Live analyzer output from backend fusion service."
PLANNER_TEXT = "Live fusion orchestrator routed analyzers based on payload metadata."
GUARDRAIL_NOTE = "Guardrail summary synthesized from analyzer timings."

DEFAULT_STEP_MS = 180  # Reported when a source has no elapsed_ms

CONCLUSIONS = {
    "phish": "Fusion flagged phishing indicators across multiple analyzers.",
    "suspicious": "Signals mixed; recommend manual review.",
}
DEFAULT_CONCLUSION = "No strong phishing indicators detected."


def title_case_source(name: str) -> str:
    """Turn a source key like ``threat_intel-v2`` into ``Threat Intel V2``."""
    spaced = re.sub(r"[_-]+", " ", name)
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), spaced)


def _step_output(model: dict) -> str:
    reason = model.get("reason")
    if isinstance(reason, str) and reason:
        return reason

    reasons = model.get("reasons")
    if isinstance(reasons, str) and reasons:
        return reasons
    if isinstance(reasons, list) and reasons and isinstance(reasons[0], str):
        return reasons[0]

    raw = model.get("confidence")
    if raw is None:
        raw = model.get("score", 0)
    return f"Confidence {normalize_score(raw) * 100:.1f}%"


def _step_duration(model: dict) -> int:
    elapsed = to_number_like(model.get("elapsed_ms"))
    if elapsed is None:
        return DEFAULT_STEP_MS
    return int(elapsed)


def synthesize_trace(models: Any, verdict: str) -> Optional[AgentSummary]:
    """
    Derive an agent trace from per-source upstream outputs.

    One completed step per source, in the order upstream listed them.

    Args:
        models: Mapping of source name -> upstream output
        verdict: Top-level verdict, picks the conclusion text

    Returns:
        AgentSummary, or None when there are no sources to describe
    """
    if not isinstance(models, dict) or not models:
        return None

    steps = []
    for source, model in models.items():
        if not isinstance(model, dict):
            model = {}
        source = str(source)
        steps.append(AgentStep(
            id=source,
            title=title_case_source(source),
            description=STEP_DESCRIPTION,
            status="complete",
            action="run",
            output=_step_output(model),
            duration_ms=_step_duration(model),
        ))

    elapsed = sum(
        step.duration_ms if step.duration_ms is not None else FALLBACK_STEP_MS
        for step in steps
    )

    return AgentSummary(
        planner=PLANNER_TEXT,
        conclusion=CONCLUSIONS.get(verdict, DEFAULT_CONCLUSION),
        steps=steps,
        elapsed_ms=elapsed,
        guardrails=AgentGuardrails(
            budget_ms=BUDGET_MS,
            consumed_ms=elapsed,
            escalated=verdict == "phish",
            note=GUARDRAIL_NOTE,
        ),
    )
