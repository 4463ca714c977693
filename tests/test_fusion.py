"""
Tests for fusion aggregation.
"""

import pytest

from phishlens import fusion
from phishlens.models import FusionSource


class TestExtractModelScore:
    """Test suite for extract_model_score()."""

    def test_preferred_field_order(self):
        """Test that confidence wins over later candidate fields."""
        model = {"risk": 0.2, "confidence": 0.8, "score": 0.5}
        assert fusion.extract_model_score(model) == 0.8

    def test_later_candidate_fields(self):
        assert fusion.extract_model_score({"threat_score": 40}) == 40
        assert fusion.extract_model_score({"phishing_prob": "0.3"}) == 0.3

    def test_non_numeric_candidate_skipped(self):
        """Test that a non-numeric preferred field falls through to the next."""
        assert fusion.extract_model_score({"confidence": "high", "score": 0.4}) == 0.4

    def test_nested_search(self):
        """Test that nested objects are searched when no candidate field exists."""
        model = {"label": "safe", "details": {"meta": {"p": 0.33}}}
        assert fusion.extract_model_score(model) == 0.33

    def test_nested_search_in_lists(self):
        model = {"signals": [{"weight": "0.6"}]}
        assert fusion.extract_model_score(model) == 0.6

    def test_search_depth_is_bounded(self):
        """Test that values nested deeper than two levels are ignored."""
        model = {"a": {"b": {"c": {"d": 0.9}}}}
        assert fusion.extract_model_score(model) == 0

    def test_timing_fields_ignored(self):
        """Test that elapsed_ms is not mistaken for a score."""
        assert fusion.extract_model_score({"label": "safe", "elapsed_ms": 240}) == 0

    def test_booleans_are_not_scores(self):
        assert fusion.extract_model_score({"flagged": True}) == 0

    @pytest.mark.parametrize("bad", [None, "0.9", 12, []])
    def test_non_mapping(self, bad):
        assert fusion.extract_model_score(bad) == 0


class TestBuildFusion:
    """Test suite for build_fusion()."""

    def test_empty_mapping(self):
        """Test that no sources means an empty mapping, not an error."""
        assert fusion.build_fusion({}) == {}
        assert fusion.build_fusion(None) == {}
        assert fusion.build_fusion(["graph"]) == {}

    def test_label_only_phish_gets_full_score(self):
        """Test that a phish label without a score is repaired to 1.0."""
        result = fusion.build_fusion({"otx": {"label": "phish"}})
        assert result == {"otx": FusionSource(label="phish", score=1.0)}

    def test_label_only_suspicious_gets_half_score(self):
        result = fusion.build_fusion({"graph": {"verdict": "needs review"}})
        assert result["graph"] == FusionSource(label="suspicious", score=0.5)

    def test_label_only_safe_stays_zero(self):
        result = fusion.build_fusion({"graph": {"label": "benign"}})
        assert result["graph"] == FusionSource(label="safe", score=0.0)

    def test_score_normalized_and_rounded(self):
        """Test percentage scores are normalized and rounded to 3 places."""
        result = fusion.build_fusion({"distilbert": {"confidence": 87.65432}})
        assert result["distilbert"].score == 0.877
        assert result["distilbert"].label == "phish"

    def test_explicit_label_beats_score(self):
        result = fusion.build_fusion({"scanner": {"label": "safe", "score": 0.95}})
        assert result["scanner"] == FusionSource(label="safe", score=0.95)

    def test_boolean_verdict(self):
        result = fusion.build_fusion({"hf": {"verdict": False, "confidence": 0.2}})
        assert result["hf"] == FusionSource(label="safe", score=0.2)

    def test_multiple_sources_keep_order(self):
        models = {
            "graph": {"score": 0.1},
            "otx": {"is_phishing": True, "confidence": 0.9},
            "scanner": {"label": "suspicious", "score": 0.6},
        }
        result = fusion.build_fusion(models)
        assert list(result) == ["graph", "otx", "scanner"]
        assert result["graph"].label == "safe"
        assert result["otx"].label == "phish"
        assert result["scanner"].label == "suspicious"

    def test_malformed_source_degrades(self):
        """Test that a non-dict source becomes safe/0 instead of raising."""
        result = fusion.build_fusion({"broken": "oops", "also": None})
        assert result["broken"] == FusionSource(label="safe", score=0.0)
        assert result["also"] == FusionSource(label="safe", score=0.0)


class TestFallbackFusion:
    """Test suite for fallback_fusion()."""

    def test_consensus_entry(self):
        result = fusion.fallback_fusion("suspicious", 0.61234)
        assert result == {"consensus": FusionSource(label="suspicious", score=0.612)}


class TestCollectors:
    """Test suite for reason/URL collection and de-duplication."""

    def test_unique_keeps_first_order(self):
        assert fusion.unique(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]

    def test_collect_reasons(self):
        models = {
            "a": {"reason": "  Lookalike domain  ", "reasons": ["New cert", " ", 3]},
            "b": {"reasons": "Listed on OpenPhish"},
            "c": "not a model",
        }
        assert fusion.collect_reasons(models) == [
            "Lookalike domain",
            "New cert",
            "Listed on OpenPhish",
        ]

    def test_collect_reasons_missing(self):
        assert fusion.collect_reasons(None) == []

    def test_collect_urls_dedupes(self):
        models = {
            "a": {"extracted_urls": ["https://x.test", "", "https://y.test"]},
            "b": {"extracted_urls": ["https://x.test", None]},
            "c": {"extracted_urls": "https://z.test"},
        }
        assert fusion.collect_urls(models) == ["https://x.test", "https://y.test"]
