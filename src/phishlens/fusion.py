"""
Fusion aggregation - one canonical {label, score} per upstream analyzer.
"""

from typing import Any, Iterable, Optional

from phishlens.models import FusionSource
from phishlens.scoring import (
    classify_verdict,
    label_from_value,
    normalize_score,
    round_score,
    to_number_like,
)


# Field names tried, in order, before falling back to a nested search
SCORE_FIELDS = [
    "confidence",
    "score",
    "probability",
    "phishing_prob",
    "risk",
    "threat_score",
    "value",
]

# Timing fields are numbers too, but never a confidence
NON_SCORE_FIELDS = {"elapsed_ms", "duration_ms"}

# Deepest nesting level the fallback search will descend into
MAX_SEARCH_DEPTH = 2


def _children(payload: Any) -> list:
    if isinstance(payload, dict):
        return list(payload.values())
    if isinstance(payload, (list, tuple)):
        return list(payload)
    return []


def _search_number(payload: Any, depth: int = 0) -> Optional[float]:
    """Depth-first search for the first numeric-like value."""
    if depth > MAX_SEARCH_DEPTH:
        return None
    for value in _children(payload):
        if value is None:
            continue
        direct = to_number_like(value)
        if direct is not None:
            return direct
        if isinstance(value, (dict, list, tuple)):
            nested = _search_number(value, depth + 1)
            if nested is not None:
                return nested
    return None


def extract_model_score(model: Any) -> float:
    """
    Pull a raw (un-normalized) score out of one analyzer's output.

    Tries SCORE_FIELDS first, then the first number found anywhere within
    MAX_SEARCH_DEPTH levels of nesting.

    Args:
        model: Decoded per-source output

    Returns:
        Raw score, or 0 if nothing numeric was found
    """
    if not isinstance(model, dict):
        return 0.0

    for key in SCORE_FIELDS:
        candidate = to_number_like(model.get(key))
        if candidate is not None:
            return candidate

    searchable = {k: v for k, v in model.items() if k not in NON_SCORE_FIELDS}
    found = _search_number(searchable)
    return found if found is not None else 0.0


def build_fusion(models: Any) -> dict[str, FusionSource]:
    """
    Build the per-source fusion mapping from upstream model outputs.

    An explicit label/verdict string wins over the boolean/score rules.
    Label-only sources get a score repaired from the label (phish -> 1.0,
    suspicious -> 0.5) so the UI never shows a confident verdict at 0%.

    Args:
        models: Mapping of source name -> upstream output

    Returns:
        Mapping of source name -> FusionSource; empty when there are no
        sources (the caller substitutes a consensus entry)
    """
    if not isinstance(models, dict) or not models:
        return {}

    fusion = {}
    for name, model in models.items():
        if not isinstance(model, dict):
            model = {}

        score = normalize_score(extract_model_score(model))
        label = (
            label_from_value(model.get("label"))
            or label_from_value(model.get("verdict"))
            or classify_verdict(model)
        )

        if not score:
            if label == "phish":
                score = 1.0
            elif label == "suspicious":
                score = 0.5

        fusion[str(name)] = FusionSource(label=label, score=round_score(score))

    return fusion


def fallback_fusion(verdict: str, probability: float) -> dict[str, FusionSource]:
    """Single consensus entry used when upstream reports no sources."""
    return {"consensus": FusionSource(label=verdict, score=round_score(probability))}


def unique(items: Iterable[Any]) -> list:
    """De-duplicate while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def collect_reasons(models: Any) -> list[str]:
    """
    Gather free-text reasons from every source.

    Each source may carry a ``reason`` string and/or ``reasons`` as either a
    string or a list of strings. Blank entries are dropped.
    """
    if not isinstance(models, dict):
        return []

    reasons = []
    for model in models.values():
        if not isinstance(model, dict):
            continue

        reason = model.get("reason")
        if isinstance(reason, str) and reason.strip():
            reasons.append(reason.strip())

        extra = model.get("reasons")
        if isinstance(extra, str):
            extra = [extra]
        if isinstance(extra, list):
            reasons.extend(
                item.strip() for item in extra if isinstance(item, str) and item.strip()
            )

    return reasons


def collect_urls(models: Any) -> list[str]:
    """Unique, non-empty URLs reported by any source."""
    if not isinstance(models, dict):
        return []

    urls = []
    for model in models.values():
        if not isinstance(model, dict):
            continue
        extracted = model.get("extracted_urls")
        if isinstance(extracted, list):
            urls.extend(url for url in extracted if isinstance(url, str) and url)

    return unique(urls)
