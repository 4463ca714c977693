"""
Tests for the offline simulator.
"""

import random

import pytest
from unittest.mock import AsyncMock

from phishlens import simulator
from phishlens.models import AnalysisRequest, AnalyzeResponse
from phishlens.scoring import top_level_verdict


def fixed_id():
    return "req-fixed"


def fixed_clock():
    return "2026-01-01T00:00:00+00:00"


async def run(mode, value, seed=7):
    sleep = AsyncMock()
    result = await simulator.simulate_analysis(
        AnalysisRequest(mode=mode, value=value),
        rng=random.Random(seed),
        id_factory=fixed_id,
        clock=fixed_clock,
        sleep=sleep,
    )
    return result, sleep


class TestSimulateAnalysis:
    """Test suite for simulate_analysis()."""

    @pytest.mark.asyncio
    async def test_returns_full_response(self):
        result, _ = await run("url", "https://example.com")

        assert isinstance(result, AnalyzeResponse)
        assert result.request_id == "req-fixed"
        assert result.timestamp == "2026-01-01T00:00:00+00:00"
        assert list(result.fusion) == ["DistilBERT", "pipeline", "graph", "otx"]
        assert result.agent is not None
        assert len(result.agent.steps) == 5

    @pytest.mark.asyncio
    async def test_delay_within_window(self):
        """Test the artificial latency stays in the documented window."""
        for seed in range(20):
            _, sleep = await run("text", "hello", seed=seed)
            sleep.assert_awaited_once()
            delay = sleep.await_args.args[0]
            assert simulator.MIN_DELAY_S <= delay <= simulator.MAX_DELAY_S

    @pytest.mark.asyncio
    async def test_probability_from_length(self):
        """Test the pseudo-probability is input length modulo 100."""
        result, _ = await run("text", "x" * 142)
        assert result.phishing_prob == 0.42

    @pytest.mark.asyncio
    @pytest.mark.parametrize("length", [0, 30, 45, 55, 56, 70, 71, 90, 99])
    async def test_verdict_consistent_with_probability(self, length):
        """Test that the simulated verdict follows the response-level rule."""
        result, _ = await run("text", "y" * length)
        prob = result.phishing_prob
        assert result.verdict == top_level_verdict(prob > 0.7, prob)
        assert 0 <= prob <= 1

    @pytest.mark.asyncio
    async def test_fusion_scores_in_range(self):
        result, _ = await run("url", "https://example.com", seed=3)
        for source in result.fusion.values():
            assert 0 <= source.score <= 1
            assert source.label in ("phish", "suspicious", "safe")

    @pytest.mark.asyncio
    async def test_text_mode_runs_text_analyzer(self):
        result, _ = await run("text", "urgent: verify your account")
        steps = {step.id: step for step in result.agent.steps}

        assert steps["text"].action == "run"
        assert steps["text"].duration_ms == 340
        assert steps["image"].action == "skipped"
        assert result.detected_brands == ["Microsoft 365"]

    @pytest.mark.asyncio
    async def test_url_mode_skips_text(self):
        result, _ = await run("url", "https://example.com")
        steps = {step.id: step for step in result.agent.steps}

        assert steps["text"].action == "skipped"
        assert steps["text"].reason == "Skipped because payload lacked rich text."
        assert steps["url"].action == "run"
        assert result.detected_brands == ["Microsoft 365", "Okta"]

    @pytest.mark.asyncio
    async def test_image_mode_shows_running_step(self):
        result, _ = await run("image", "screenshot.png")
        steps = {step.id: step for step in result.agent.steps}

        assert steps["image"].status == "running"
        assert steps["url"].action == "skipped"

    @pytest.mark.asyncio
    async def test_elapsed_uses_sixty_ms_fallback(self):
        """Test that steps without a duration count 60ms toward elapsed."""
        result, _ = await run("url", "https://example.com")
        # plan 120 + text 60 + url 270 + image 60 + decision 90
        assert result.agent.elapsed_ms == 600
        assert result.agent.guardrails.consumed_ms == 600
        assert result.agent.guardrails.budget_ms == 2000

    @pytest.mark.asyncio
    async def test_conclusion_is_decision_output(self):
        result, _ = await run("text", "z" * 90)
        assert result.verdict == "phish"
        assert result.agent.conclusion == simulator.DECISIONS["phish"]
        assert result.agent.guardrails.escalated is True

    @pytest.mark.asyncio
    async def test_phish_below_escalation_threshold(self):
        result, _ = await run("text", "z" * 80)
        assert result.verdict == "phish"
        assert result.agent.guardrails.escalated is False
