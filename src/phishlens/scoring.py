"""
Score normalization and verdict classification for upstream analyzer output.

Upstream analyzers disagree on scales (0-1 vs 0-100) and on how they encode
a verdict (booleans, free-text labels, bare scores). Everything here is a
pure function over decoded JSON values and never raises on bad input.
"""

import math
from typing import Any, Mapping, Optional


# Keyword sets for free-text labels, checked in this order
# Format: (verdict, keywords)
LABEL_KEYWORDS = [
    ("phish", ("phish", "malicious", "block")),
    ("suspicious", ("suspicious", "review")),
    ("safe", ("safe", "benign", "allow")),
]

# Per-source: an analyzer needs this much confidence to call "phish"
SOURCE_PHISH_THRESHOLD = 0.7

# Top-level: probabilities strictly above this escalate to "suspicious"
SUSPICIOUS_THRESHOLD = 0.55

BOOLEAN_VERDICT_FIELDS = ("verdict", "final_verdict", "is_phishing")
TEXT_VERDICT_FIELDS = ("label", "verdict")
NUMERIC_VERDICT_FIELDS = ("score", "confidence")


def to_number_like(value: Any) -> Optional[float]:
    """
    Parse a number or numeric string.

    Booleans are not numbers here, even though Python treats them as ints.

    Returns:
        Finite float, or None if the value is not numeric
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(parsed):
        return None
    return parsed


def normalize_score(raw: Any) -> float:
    """
    Coerce a confidence value into a 0.0-1.0 probability.

    Values above 1 are read as a 0-100 percentage. This misreads scores that
    are not probabilities at all (e.g. logits slightly above 1.0); the
    upstream contract does not say which scale it uses.

    Args:
        raw: Number, numeric string, or anything else

    Returns:
        Probability in [0, 1]; 0.0 for non-numeric input
    """
    parsed = to_number_like(raw)
    if parsed is None:
        return 0.0
    if parsed > 1:
        parsed = parsed / 100
    return min(max(parsed, 0.0), 1.0)


def label_from_value(value: Any) -> Optional[str]:
    """
    Map a single verdict-ish value to a canonical verdict.

    Strings are substring-matched against LABEL_KEYWORDS; booleans map
    True -> phish, False -> safe.

    Returns:
        "phish", "suspicious", "safe", or None if nothing matched
    """
    if isinstance(value, bool):
        return "phish" if value else "safe"
    if isinstance(value, str):
        lowered = value.lower()
        for verdict, keywords in LABEL_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return verdict
    return None


def classify_verdict(model: Any) -> str:
    """
    Classify one analyzer's output. First matching rule wins:

    1. Free-text label/verdict matching a keyword set
    2. Boolean verdict/final_verdict/is_phishing
    3. Numeric score/confidence >= 0.7 -> phish
    4. safe

    Args:
        model: Decoded per-source output (non-mappings classify as safe)

    Returns:
        Canonical verdict string
    """
    if not isinstance(model, Mapping):
        return "safe"

    for key in TEXT_VERDICT_FIELDS:
        value = model.get(key)
        if isinstance(value, str):
            label = label_from_value(value)
            if label:
                return label

    for key in BOOLEAN_VERDICT_FIELDS:
        value = model.get(key)
        if isinstance(value, bool):
            return "phish" if value else "safe"

    for key in NUMERIC_VERDICT_FIELDS:
        if to_number_like(model.get(key)) is not None:
            if normalize_score(model[key]) >= SOURCE_PHISH_THRESHOLD:
                return "phish"
            break

    return "safe"


def top_level_verdict(final_verdict: Any, probability: float) -> str:
    """
    Verdict for the whole response.

    Stricter than classify_verdict on purpose: only an explicit upstream
    True is "phish", and anything above 0.55 is at least "suspicious".
    """
    if final_verdict is True:
        return "phish"
    if probability > SUSPICIOUS_THRESHOLD:
        return "suspicious"
    return "safe"


def round_score(score: float) -> float:
    """Round to 3 decimal places for display."""
    return round(score, 3)
