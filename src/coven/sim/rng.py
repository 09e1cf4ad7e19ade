from __future__ import annotations

import hashlib

RNG_WEATHER_STREAM_NAME = "weather"
RNG_GARDEN_STREAM_NAME = "garden"
RNG_MARKET_STREAM_NAME = "market"
RNG_RUMORS_STREAM_NAME = "rumors"
RNG_REQUESTS_STREAM_NAME = "requests"
RNG_ACTIONS_STREAM_NAME = "actions"
RNG_BREWING_STREAM_NAME = "brewing"

RNG_STREAM_NAMES = (
    RNG_WEATHER_STREAM_NAME,
    RNG_GARDEN_STREAM_NAME,
    RNG_MARKET_STREAM_NAME,
    RNG_RUMORS_STREAM_NAME,
    RNG_REQUESTS_STREAM_NAME,
    RNG_ACTIONS_STREAM_NAME,
    RNG_BREWING_STREAM_NAME,
)


def derive_stream_seed(master_seed: int, stream_name: str) -> int:
    """Derive a deterministic child RNG seed from (master_seed, stream_name)."""
    digest = hashlib.sha256(f"{master_seed}:{stream_name}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)
