"""
Dataclasses for analysis requests and the canonical response shape.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional


MODES = ("url", "text", "image")
STEP_STATUSES = ("pending", "running", "complete")
STEP_ACTIONS = ("run", "skipped", "added")

FALLBACK_STEP_MS = 120  # Counted toward elapsed_ms for steps without a duration
BUDGET_MS = 3000


@dataclass
class AnalysisRequest:
    """Request parameters for analyze()"""
    mode: str
    value: str


@dataclass
class FusionSource:
    """One analyzer's opinion: canonical label plus a 0.0-1.0 score"""
    label: str
    score: float


@dataclass
class AgentStep:
    """One stage of the analysis pipeline (plan, analyzers, decision)"""
    id: str
    title: str
    description: str
    status: str = "complete"
    action: str = "run"
    reason: Optional[str] = None
    output: Optional[str] = None
    duration_ms: Optional[int] = None


@dataclass
class AgentGuardrails:
    """Time budget accounting for an agent trace"""
    budget_ms: int
    consumed_ms: int
    escalated: bool
    note: Optional[str] = None


@dataclass
class AgentSummary:
    """Narrative reconstruction of which analyzers ran and why"""
    planner: str
    conclusion: str
    steps: list[AgentStep]
    elapsed_ms: int
    guardrails: AgentGuardrails


@dataclass
class AnalyzeResponse:
    """Canonical response delivered to the presentation layer"""
    verdict: str
    phishing_prob: float
    fusion: dict[str, FusionSource]
    detected_brands: list[str] = field(default_factory=list)
    visual_reasons: list[str] = field(default_factory=list)
    extracted_urls: list[str] = field(default_factory=list)
    model_version: str = ""
    request_id: str = ""
    timestamp: str = ""
    agent: Optional[AgentSummary] = None

    def to_dict(self) -> dict:
        """JSON-ready dict. Unset optional fields are dropped."""
        return _drop_none(asdict(self))


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(item) for item in value]
    return value


def _int_or(value: Any, default: Optional[int]) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return int(value)


def _str_or(value: Any, default: Optional[str]) -> Optional[str]:
    return value if isinstance(value, str) else default


def agent_from_payload(payload: Any) -> Optional[AgentSummary]:
    """
    Build an AgentSummary from an upstream-supplied ``agent`` object.

    Upstream traces are loosely typed. Missing step fields fall back to
    defaults; a payload without a steps list is treated as absent.

    Args:
        payload: Decoded JSON value from the upstream response

    Returns:
        AgentSummary, or None if the payload is not a usable trace
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("steps"), list):
        return None

    steps = []
    for index, raw in enumerate(payload["steps"]):
        if not isinstance(raw, dict):
            continue
        status = raw.get("status")
        action = raw.get("action")
        steps.append(AgentStep(
            id=str(raw.get("id", f"step_{index}")),
            title=_str_or(raw.get("title"), "") or str(raw.get("id", "")),
            description=_str_or(raw.get("description"), ""),
            status=status if status in STEP_STATUSES else "complete",
            action=action if action in STEP_ACTIONS else "run",
            reason=_str_or(raw.get("reason"), None),
            output=_str_or(raw.get("output"), None),
            duration_ms=_int_or(raw.get("duration_ms"), None),
        ))

    elapsed = _int_or(payload.get("elapsed_ms"), None)
    if elapsed is None:
        elapsed = sum(
            step.duration_ms if step.duration_ms is not None else FALLBACK_STEP_MS
            for step in steps
        )

    raw_guardrails = payload.get("guardrails")
    if not isinstance(raw_guardrails, dict):
        raw_guardrails = {}

    return AgentSummary(
        planner=_str_or(payload.get("planner"), ""),
        conclusion=_str_or(payload.get("conclusion"), ""),
        steps=steps,
        elapsed_ms=elapsed,
        guardrails=AgentGuardrails(
            budget_ms=_int_or(raw_guardrails.get("budget_ms"), BUDGET_MS),
            consumed_ms=_int_or(raw_guardrails.get("consumed_ms"), elapsed),
            escalated=bool(raw_guardrails.get("escalated", False)),
            note=_str_or(raw_guardrails.get("note"), None),
        ),
    )
