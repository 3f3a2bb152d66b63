from __future__ import annotations

import hashlib
import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def sha256_bytes(value: bytes) -> str:
    return hashlib.sha256(value).hexdigest()


def stable_json_dumps(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def stable_hash(payload: Any) -> str:
    return sha256_bytes(stable_json_dumps(payload).encode("utf-8"))


def seed_from_text(text: str) -> int:
    digest = stable_hash({"seed": text})
    return int(digest[:16], 16)


@contextmanager
def timed(name: str, limit_s: float | None = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if limit_s is not None and elapsed > limit_s:
            logger.warning("%s: time limit (%.3fs) exceeded: %.3fs", name, limit_s, elapsed)
        else:
            logger.debug("%s: %.3fs", name, elapsed)


def row_blocks(count: int, block_rows: int) -> Iterator[slice]:
    if block_rows < 1:
        raise ValueError(f"block_rows must be positive, got {block_rows}")
    for start in range(0, count, block_rows):
        yield slice(start, min(start + block_rows, count))
