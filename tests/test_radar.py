"""
Tests for the Cloudflare Radar client.
"""

import httpx
import pytest

from phishlens import config
from phishlens import radar
from phishlens.errors import MisconfiguredEnvironment, UpstreamUnreachable


SAMPLE = {
    "result": {
        "top_0": [
            {
                "dimensions": {
                    "origin": {"location": "us", "name": "United States"},
                    "target": {"alpha2": "de", "location_name": "Germany"},
                },
                "value": "12.5",
            },
            {
                "id": "pair-7",
                "dimensions": {
                    "source": {"code": "BR"},
                    "destination": {"country": "JP"},
                },
                "metrics": {"requests": 40},
            },
            {
                "dimensions": {"origin": {"name": "Nowhere"}, "target": {"location": "FR"}},
                "value": 3,
            },
            "garbage",
        ]
    }
}


class TestParseAttackPairs:
    """Test suite for parse_attack_pairs()."""

    def test_parses_rows(self):
        pairs = radar.parse_attack_pairs(SAMPLE)

        assert len(pairs) == 2
        first, second = pairs

        assert first.id == "US-DE-0"
        assert first.origin == radar.RadarLocation(code="US", name="United States")
        assert first.target == radar.RadarLocation(code="DE", name="Germany")
        assert first.magnitude == 12.5

        assert second.id == "pair-7"
        assert second.origin.code == "BR"
        assert second.origin.name == "Unknown"
        assert second.target.name == "JP"
        assert second.magnitude == 40

    def test_rows_without_codes_dropped(self):
        """Test that a row missing an origin code is skipped."""
        pairs = radar.parse_attack_pairs(SAMPLE)
        assert all(pair.target.code != "FR" for pair in pairs)

    @pytest.mark.parametrize("payload", [None, {}, {"result": None}, {"result": {"top_0": "x"}}])
    def test_malformed_payload(self, payload):
        assert radar.parse_attack_pairs(payload) == []

    def test_non_numeric_magnitude(self):
        payload = {"result": {"top_0": [{
            "dimensions": {"origin": {"code": "us"}, "target": {"code": "gb"}},
            "value": "lots",
        }]}}
        assert radar.parse_attack_pairs(payload)[0].magnitude == 0


class TestFetchRadarAttackPairs:
    """Test suite for fetch_radar_attack_pairs()."""

    @pytest.mark.asyncio
    async def test_missing_token(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RADAR_API_TOKEN", raising=False)
        monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.toml")
        monkeypatch.setattr(config, "SECRETS_PATH", tmp_path / "secrets.json")

        with pytest.raises(MisconfiguredEnvironment):
            await radar.fetch_radar_attack_pairs()

    @pytest.mark.asyncio
    async def test_sends_token_and_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=SAMPLE)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            pairs = await radar.fetch_radar_attack_pairs(
                date_range="1d", limit=5, token="tok", client=http
            )

        assert len(pairs) == 2
        request = seen[0]
        assert request.headers["authorization"] == "Bearer tok"
        assert request.url.params["dateRange"] == "1d"
        assert request.url.params["limit"] == "5"
        assert request.url.params["metric"] == "REQUESTS"

    @pytest.mark.asyncio
    async def test_error_status(self):
        def handler(request):
            return httpx.Response(403, text="forbidden")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(UpstreamUnreachable, match="Radar API 403: forbidden"):
                await radar.fetch_radar_attack_pairs(token="tok", client=http)

    @pytest.mark.asyncio
    async def test_error_status_empty_body(self):
        def handler(request):
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(UpstreamUnreachable, match="Unknown error"):
                await radar.fetch_radar_attack_pairs(token="tok", client=http)
