"""Latency-based region selection.

Measures round-trip time to each candidate region's DynamoDB ping endpoint
and picks the fastest one that answered. Only used when the operator asks
for it with --auto-region.
"""
import logging
import time
from typing import Callable, Dict, Iterable, Optional

import requests

from nginx_deployer.exceptions import PreconditionFailure

logger = logging.getLogger(__name__)

PING_URL = "https://dynamodb.{region}.amazonaws.com/ping"
PROBE_TIMEOUT_SECONDS = 3.0
PROBE_SAMPLES = 3


def probe_latency(region: str, samples: int = PROBE_SAMPLES,
                  timeout: float = PROBE_TIMEOUT_SECONDS) -> Optional[float]:
    """Return the best observed round-trip time in seconds, or None if unreachable."""
    url = PING_URL.format(region=region)
    best = None
    with requests.Session() as session:
        for _ in range(samples):
            start = time.perf_counter()
            try:
                response = session.get(url, timeout=timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.debug(f"Latency probe to {region} failed: {e}")
                continue
            elapsed = time.perf_counter() - start
            best = elapsed if best is None else min(best, elapsed)
    return best


def select_region_by_latency(candidates: Iterable[str],
                             probe: Callable[[str], Optional[float]] = probe_latency) -> str:
    """Pick the candidate region with the lowest measured latency.

    Raises:
        PreconditionFailure: If no candidate could be reached
    """
    latencies: Dict[str, float] = {}
    for region in candidates:
        latency = probe(region)
        if latency is None:
            logger.warning(f"Region {region} did not answer the latency probe")
            continue
        latencies[region] = latency
        logger.debug(f"Region {region}: {latency * 1000:.1f} ms")

    if not latencies:
        raise PreconditionFailure("No candidate region answered the latency probe", stage="region-selection")

    chosen = min(latencies, key=latencies.get)
    logger.info(f"Selected region {chosen} ({latencies[chosen] * 1000:.1f} ms)")
    return chosen
