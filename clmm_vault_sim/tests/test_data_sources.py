#!/usr/bin/env python3
"""
Market Data Source Test Suite

Covers the synthetic generator, the CSV loader and The Graph loader (with a
fake HTTP session standing in for the gateway).
"""

import math
import pytest
import requests

from clmm_vault_sim.data.csv_loader import load_csv_series
from clmm_vault_sim.data.loader import load_series
from clmm_vault_sim.data.market_data import MarketPoint, is_finite_number
from clmm_vault_sim.data.sample_series import LcgRandom, generate_sample_series
from clmm_vault_sim.data.thegraph import (
    TheGraphError, build_url, load_thegraph_series, resample_series, sqrt_price_x96_to_price
)
from clmm_vault_sim.engine.config import BacktestConfig, TheGraphConfig

HOUR_MS = 60 * 60 * 1000


class TestSampleSeries:
    """Seeded synthetic series"""

    def setup_method(self):
        self.config = BacktestConfig()

    def test_lcg_first_value(self):
        rng = LcgRandom(42)

        assert rng.next() == pytest.approx(1_083_814_273 / 0xFFFFFFFF)

    def test_normal_is_finite(self):
        rng = LcgRandom(7)
        draws = [rng.normal() for _ in range(1_000)]

        assert all(math.isfinite(draw) for draw in draws)
        assert abs(sum(draws) / len(draws)) < 0.2

    def test_series_length_and_spacing(self):
        series = generate_sample_series(self.config)

        assert len(series) == 30 * 24
        assert series[0].ts == self.config.sample.start_ms
        assert all(b.ts - a.ts == HOUR_MS for a, b in zip(series, series[1:]))

    def test_series_is_deterministic(self):
        assert generate_sample_series(self.config) == generate_sample_series(self.config)

    def test_seed_changes_series(self):
        first = generate_sample_series(self.config)
        self.config.sample.seed = 43
        second = generate_sample_series(self.config)

        assert [p.price for p in first] != [p.price for p in second]

    def test_points_are_well_formed(self):
        for point in generate_sample_series(self.config):
            assert point.price > 0
            assert 0 <= point.fees_apr <= 2.0
            assert 0 <= point.emissions_apr <= 2.0
            assert point.gas_usd > 0
            assert point.volume_usd > 0
            assert point.fee_tier == 0.003

    def test_short_lookback_still_yields_a_point(self):
        self.config.lookback_days = 0.01

        assert len(generate_sample_series(self.config)) == 1


class TestMarketPoint:
    """Point helpers"""

    def test_to_dict_uses_camel_case(self):
        raw = MarketPoint(ts=1, price=2.0, fees_apr=0.1).to_dict()

        assert raw["timestamp"] == 1
        assert raw["feesApr"] == 0.1
        assert raw["volumeUsd"] is None

    @pytest.mark.parametrize("value,expected", [
        (1.0, True), (0, True), (None, False), (float("nan"), False),
        (float("inf"), False), (True, False), ("1.0", False),
    ])
    def test_is_finite_number(self, value, expected):
        assert is_finite_number(value) is expected


class TestCsvLoader:
    """CSV series loading"""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_csv_series(tmp_path / "missing.csv")

    def test_missing_required_column(self, tmp_path):
        path = tmp_path / "series.csv"
        path.write_text("timestamp,feesApr\n1,0.2\n")

        with pytest.raises(ValueError, match="timestamp and price"):
            load_csv_series(path)

    def test_loads_points_and_drops_bad_rows(self, tmp_path):
        path = tmp_path / "series.csv"
        path.write_text(
            "timestamp,price,feesApr,gasUsd\n"
            "1000,2000.5,0.25,0.7\n"
            "2000,abc,0.25,0.7\n"
            "3000,2010,,0.8\n"
            ",2020,0.3,0.8\n"
        )

        points = load_csv_series(path)

        assert [p.ts for p in points] == [1000, 3000]
        assert points[0].price == 2000.5
        assert points[0].fees_apr == 0.25
        assert points[1].fees_apr is None
        assert points[1].gas_usd == 0.8
        assert points[0].volume_usd is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "series.csv"
        path.write_text("")

        assert load_csv_series(path) == []

    def test_loader_dispatches_on_data_source(self, tmp_path):
        path = tmp_path / "series.csv"
        path.write_text("timestamp,price\n1000,1\n2000,2\n")
        config = BacktestConfig()
        config.data_source = "csv"
        config.csv_path = str(path)

        assert [p.price for p in load_series(config)] == [1.0, 2.0]


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = "OK" if self.ok else "Bad Request"

    def json(self):
        return self.payload


class FakeGraphSession:
    """Answers the pool and pool-hour-data queries from canned data"""

    def __init__(self, hours, pool=None, errors=None):
        self.hours = hours
        self.pool = pool
        self.errors = errors
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append((url, json))
        if self.errors:
            return FakeResponse({"errors": [{"message": message} for message in self.errors]})
        if "GetPoolHourData" in json["query"]:
            skip = json["variables"]["skip"]
            first = json["variables"]["first"]
            return FakeResponse({"data": {"poolHourDatas": self.hours[skip:skip + first]}})
        return FakeResponse({"data": {"pool": self.pool}})


def make_hour(hour_index, close, fees="100", tvl="1000000", volume="50000"):
    return {
        "periodStartUnix": str(1_700_000_000 + hour_index * 3600),
        "close": str(close),
        "feesUSD": fees,
        "tvlUSD": tvl,
        "volumeUSD": volume,
    }


POOL = {
    "id": "0xpool",
    "token0": {"symbol": "WETH", "decimals": "18"},
    "token1": {"symbol": "USDC", "decimals": "6"},
    "feeTier": "500",
    "totalValueLockedUSD": "2000000",
}


class TestTheGraphLoader:
    """The Graph gateway loader"""

    def setup_method(self):
        self.config = BacktestConfig()
        self.config.data_source = "thegraph"
        self.config.the_graph = TheGraphConfig()
        self.config.the_graph.api_key = "test-key"
        self.config.the_graph.pool_address = "0xPOOL"
        self.config.the_graph.start_timestamp = 1_700_000_000
        self.config.the_graph.end_timestamp = 1_700_036_000

    def test_build_url(self):
        url = build_url("abc", "sub")

        assert url.endswith("/api/abc/subgraphs/id/sub")
        assert "/subgraphs/id/" in build_url("abc")

    def test_sqrt_price_conversion(self):
        assert sqrt_price_x96_to_price(str(2 ** 96), 0, 0) == 1.0
        assert sqrt_price_x96_to_price(str(2 ** 97), 0, 0) == 4.0

    def test_loads_hourly_points(self):
        hours = [make_hour(i, 2_000 + i) for i in range(5)]
        session = FakeGraphSession(hours, POOL)

        series = load_thegraph_series(self.config, session=session)

        assert len(series) == 5
        assert series[0].ts == 1_700_000_000 * 1000
        assert series[2].price == 2_002.0
        assert series[0].fee_tier == pytest.approx(0.0005)
        assert series[0].fees_apr == pytest.approx(100 / 1_000_000 * 24 * 365)
        assert series[0].liquidity_usd == 1_000_000.0
        assert series[0].gas_usd == self.config.gas_usd
        # Pool address is lower-cased in query variables
        assert session.calls[0][1]["variables"]["id"] == "0xpool"

    def test_fees_apr_is_capped(self):
        session = FakeGraphSession([make_hour(0, 2_000, fees="1000000")], POOL)

        assert load_thegraph_series(self.config, session=session)[0].fees_apr == 5.0

    def test_missing_pool(self):
        with pytest.raises(TheGraphError, match="Pool not found"):
            load_thegraph_series(self.config, session=FakeGraphSession([], None))

    def test_no_hourly_data(self):
        with pytest.raises(TheGraphError, match="No hourly data"):
            load_thegraph_series(self.config, session=FakeGraphSession([], POOL))

    def test_graphql_errors(self):
        session = FakeGraphSession([], POOL, errors=["bad query"])

        with pytest.raises(TheGraphError, match="bad query"):
            load_thegraph_series(self.config, session=session)

    def test_http_failure(self):
        class FailingSession:
            def post(self, *args, **kwargs):
                raise requests.exceptions.ConnectionError("gateway down")

        with pytest.raises(TheGraphError, match="gateway down"):
            load_thegraph_series(self.config, session=FailingSession())

    def test_requires_configuration(self):
        self.config.the_graph = None

        with pytest.raises(ValueError):
            load_thegraph_series(self.config)

    def test_resampled_to_configured_step(self):
        self.config.time_step_minutes = 120
        session = FakeGraphSession([make_hour(i, 2_000 + i) for i in range(4)], POOL)

        series = load_thegraph_series(self.config, session=session)

        assert len(series) == 2
        assert series[1].price == 2_003.0


class TestResample:
    """Hourly series resampling"""

    def setup_method(self):
        self.hourly = [
            MarketPoint(ts=i * HOUR_MS, price=100.0 + 10 * i, fees_apr=0.1 * (i + 1), emissions_apr=0.2,
                        liquidity_usd=1_000.0, gas_usd=1.0, volume_usd=60.0, fee_tier=0.003)
            for i in range(4)
        ]

    def test_aggregate_to_longer_step(self):
        series = resample_series(self.hourly, 120)

        assert [p.ts for p in series] == [0, 2 * HOUR_MS]
        assert [p.price for p in series] == [110.0, 130.0]
        assert series[0].fees_apr == pytest.approx(0.15)
        assert series[0].volume_usd == 120.0

    def test_interpolate_to_shorter_step(self):
        series = resample_series(self.hourly, 30)

        assert len(series) == 7
        assert series[1].ts == 30 * 60 * 1000
        assert series[1].price == pytest.approx(105.0)
        assert series[1].volume_usd == 30.0
        assert series[-1] == self.hourly[-1]

    def test_hourly_is_unchanged(self):
        assert resample_series(self.hourly, 60) == self.hourly
        assert resample_series([], 30) == []
