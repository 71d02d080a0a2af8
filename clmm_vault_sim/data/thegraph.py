#!/usr/bin/env python3
"""
The Graph Market Data Loader

Pulls hourly pool data for a Uniswap v3 style pool from The Graph gateway
and converts it into MarketPoints at the configured time step.
"""

import time
from typing import Any, Dict, List, Optional

import requests

from .market_data import MarketPoint

DEFAULT_SUBGRAPH_ID = "GENunSHWLBXm59mBSgPzQ8metBEp9YDfdqwFr91Av1UM"
GATEWAY_URL = "https://gateway-arbitrum.network.thegraph.com/api/{api_key}/subgraphs/id/{subgraph_id}"
BATCH_SIZE = 1000
DEFAULT_HISTORY_DAYS = 60
MAX_FEES_APR = 5.0
REQUEST_TIMEOUT = 30

POOL_QUERY = """
query GetPool($id: ID!) {
  pool(id: $id) {
    id
    token0 { symbol decimals }
    token1 { symbol decimals }
    liquidity
    sqrtPrice
    tick
    feeTier
    totalValueLockedUSD
  }
}
"""

POOL_HOUR_DATA_QUERY = """
query GetPoolHourData($poolId: String!, $startTs: Int!, $endTs: Int!, $first: Int!, $skip: Int!) {
  poolHourDatas(
    where: {
      pool: $poolId
      periodStartUnix_gte: $startTs
      periodStartUnix_lte: $endTs
    }
    orderBy: periodStartUnix
    orderDirection: asc
    first: $first
    skip: $skip
  ) {
    periodStartUnix
    open
    high
    low
    close
    liquidity
    volumeUSD
    feesUSD
    tvlUSD
    txCount
  }
}
"""


class TheGraphError(RuntimeError):
    """Raised when The Graph returns an error or no usable data"""


def build_url(api_key: str, subgraph_id: Optional[str] = None) -> str:
    return GATEWAY_URL.format(api_key=api_key, subgraph_id=subgraph_id or DEFAULT_SUBGRAPH_ID)


def graphql_query(graph_config, query: str, variables: Optional[Dict[str, Any]] = None,
                  session: Optional[requests.Session] = None) -> Dict[str, Any]:
    """POST a GraphQL query and return its `data` payload"""
    url = build_url(graph_config.api_key, graph_config.subgraph_id)
    http = session or requests
    try:
        response = http.post(
            url,
            json={"query": query, "variables": variables or {}},
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        raise TheGraphError(f"GraphQL request failed: {e}") from e

    if not response.ok:
        raise TheGraphError(f"GraphQL request failed: {response.status_code} {response.reason}")

    payload = response.json()
    errors = payload.get("errors") or []
    if errors:
        messages = ", ".join(str(error.get("message", error)) for error in errors)
        raise TheGraphError(f"GraphQL errors: {messages}")

    data = payload.get("data")
    if not data:
        raise TheGraphError("No data returned from GraphQL query")
    return data


def _time_range(graph_config):
    now = int(time.time())
    start_ts = graph_config.start_timestamp or now - DEFAULT_HISTORY_DAYS * 24 * 3600
    end_ts = graph_config.end_timestamp or now
    return int(start_ts), int(end_ts)


def fetch_pool_info(graph_config, session: Optional[requests.Session] = None) -> Optional[Dict[str, Any]]:
    data = graphql_query(graph_config, POOL_QUERY, {"id": graph_config.pool_address.lower()}, session)
    return data.get("pool")


def fetch_pool_hour_data(graph_config, limit: int = BATCH_SIZE, skip: int = 0,
                         session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    start_ts, end_ts = _time_range(graph_config)
    data = graphql_query(graph_config, POOL_HOUR_DATA_QUERY, {
        "poolId": graph_config.pool_address.lower(),
        "startTs": start_ts,
        "endTs": end_ts,
        "first": limit,
        "skip": skip,
    }, session)
    return data.get("poolHourDatas") or []


def fetch_all_pool_hour_data(graph_config, session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    """Page through poolHourDatas in batches of BATCH_SIZE"""
    all_data: List[Dict[str, Any]] = []
    skip = 0
    while True:
        batch = fetch_pool_hour_data(graph_config, BATCH_SIZE, skip, session)
        if not batch:
            break
        all_data.extend(batch)
        if len(batch) < BATCH_SIZE:
            break
        skip += BATCH_SIZE
    return all_data


def sqrt_price_x96_to_price(sqrt_price_x96: str, decimals0: int, decimals1: int) -> float:
    """Convert a pool's sqrtPriceX96 into a token1-per-token0 price"""
    sqrt_price = int(sqrt_price_x96)
    q192 = 2 ** 192
    return (sqrt_price * sqrt_price * 10 ** int(decimals0)) // q192 / 10 ** int(decimals1)


def hour_to_point(hour: Dict[str, Any], pool_tvl: float, fee_tier: float, config) -> MarketPoint:
    price = float(hour["close"])
    fees_usd = float(hour["feesUSD"])
    tvl_usd = float(hour["tvlUSD"])
    volume_usd = float(hour["volumeUSD"])

    liquidity_usd = tvl_usd if tvl_usd > 0 else pool_tvl
    if liquidity_usd > 0:
        fees_apr = fees_usd / liquidity_usd * 24 * 365
    else:
        fees_apr = config.fees_apr

    return MarketPoint(
        ts=int(hour["periodStartUnix"]) * 1000,
        price=price if price > 0 else 1.0,
        fees_apr=min(fees_apr, MAX_FEES_APR),
        emissions_apr=config.emissions_apr,
        liquidity_usd=liquidity_usd if liquidity_usd > 0 else config.liquidity_usd,
        gas_usd=config.gas_usd,
        volume_usd=volume_usd if volume_usd > 0 else 0.0,
        fee_tier=fee_tier,
    )


def resample_series(series: List[MarketPoint], target_step_minutes: float) -> List[MarketPoint]:
    """
    Resample hourly points to another step.

    Longer steps aggregate whole-hour buckets (last price, mean APRs and
    liquidity, summed volume). Shorter steps interpolate price linearly and
    spread volume evenly across the sub-steps.
    """
    if not series:
        return []

    if target_step_minutes > 60:
        bucket_size = max(1, int(target_step_minutes // 60))
        resampled = []
        for start in range(0, len(series), bucket_size):
            bucket = series[start:start + bucket_size]
            last = bucket[-1]
            size = len(bucket)
            resampled.append(MarketPoint(
                ts=bucket[0].ts,
                price=last.price,
                fees_apr=sum(p.fees_apr for p in bucket) / size,
                emissions_apr=sum(p.emissions_apr for p in bucket) / size,
                liquidity_usd=sum(p.liquidity_usd for p in bucket) / size,
                gas_usd=last.gas_usd,
                volume_usd=sum(p.volume_usd for p in bucket),
                fee_tier=last.fee_tier,
            ))
        return resampled

    if target_step_minutes < 60:
        steps_per_hour = max(1, int(60 // target_step_minutes))
        target_step_ms = int(target_step_minutes * 60 * 1000)
        interpolated = []
        for current, nxt in zip(series, series[1:]):
            for j in range(steps_per_hour):
                t = j / steps_per_hour
                interpolated.append(MarketPoint(
                    ts=current.ts + j * target_step_ms,
                    price=current.price + (nxt.price - current.price) * t,
                    fees_apr=current.fees_apr,
                    emissions_apr=current.emissions_apr,
                    liquidity_usd=current.liquidity_usd,
                    gas_usd=current.gas_usd,
                    volume_usd=current.volume_usd / steps_per_hour,
                    fee_tier=current.fee_tier,
                ))
        interpolated.append(series[-1])
        return interpolated

    return series


def load_thegraph_series(config, session: Optional[requests.Session] = None) -> List[MarketPoint]:
    """Fetch pool hour data and convert it to the configured time step"""
    graph_config = config.the_graph
    if graph_config is None:
        raise ValueError("theGraph configuration is required when dataSource is 'thegraph'")

    if config.verbose:
        print("🌐 Fetching pool info...")
    pool_info = fetch_pool_info(graph_config, session)
    if not pool_info:
        raise TheGraphError(f"Pool not found: {graph_config.pool_address}")

    fee_tier = int(pool_info["feeTier"]) / 1_000_000
    pool_tvl = float(pool_info.get("totalValueLockedUSD") or 0)

    if config.verbose:
        print(f"   Pool: {pool_info['token0']['symbol']}/{pool_info['token1']['symbol']}")
        print(f"   TVL: ${pool_tvl:,.0f}")
        print(f"   Fee Tier: {fee_tier * 100:.2f}%")
        print("🌐 Fetching hourly data...")

    hourly_data = fetch_all_pool_hour_data(graph_config, session)
    if config.verbose:
        print(f"   Fetched {len(hourly_data)} hourly data points")

    if not hourly_data:
        raise TheGraphError("No hourly data available for the specified time range")

    series = [hour_to_point(hour, pool_tvl, fee_tier, config) for hour in hourly_data]

    if config.time_step_minutes != 60:
        return resample_series(series, config.time_step_minutes)
    return series
