"""Prometheus metrics for Dragon Hunt searches.

The search keeps plain integer counters while it recurses and publishes
them here once per completed search, so the hot path never touches a
metric lock.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Gauge, Histogram


SEARCHES_TOTAL: Final[Counter] = Counter(
    "dragonhunt_searches_total",
    "Total number of completed outcome searches.",
)

SEARCH_NODES: Final[Counter] = Counter(
    "dragonhunt_search_nodes_total",
    "Turn-function evaluations that missed the cache, labeled by phase.",
    labelnames=("phase",),
)

SEARCH_CACHE_LOOKUPS: Final[Counter] = Counter(
    "dragonhunt_search_cache_lookups_total",
    "Transposition table lookups, labeled by outcome (hit or miss).",
    labelnames=("outcome",),
)

SEARCH_LATENCY: Final[Histogram] = Histogram(
    "dragonhunt_search_latency_seconds",
    "Wall-clock duration of a full outcome search in seconds.",
    buckets=(
        0.01,
        0.05,
        0.1,
        0.5,
        1.0,
        5.0,
        30.0,
        120.0,
    ),
)

SEARCH_CACHE_SIZE: Final[Gauge] = Gauge(
    "dragonhunt_search_cache_size",
    "Transposition table entries held at the end of the last search.",
)


def observe_search(
    duration_seconds: float,
    nodes_by_phase: dict[str, int],
    cache_hits: int,
    cache_misses: int,
    cache_size: int,
) -> None:
    """Publish the counters of one completed search."""
    SEARCHES_TOTAL.inc()
    SEARCH_LATENCY.observe(duration_seconds)
    for phase, nodes in nodes_by_phase.items():
        SEARCH_NODES.labels(phase=phase).inc(nodes)
    SEARCH_CACHE_LOOKUPS.labels(outcome="hit").inc(cache_hits)
    SEARCH_CACHE_LOOKUPS.labels(outcome="miss").inc(cache_misses)
    SEARCH_CACHE_SIZE.set(cache_size)
