"""
Upstream Client - typed statistic fetches from the node/data source

Responsibilities:
- One fetch per statistic kind (tip info, recent blocks, hash rate, mempool, miners)
- Normalize raw JSON payloads into typed values
- Never raise for upstream problems: return StatFailure with a reason instead

Architecture invariant: the client is only ever called from the updater's
execution context, never from a request handler.
"""
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Union

import requests

from explorer_updater.snapshot import BlockHeaderDTO, MempoolDTO, MinerStatDTO
from explorer_updater.updater_config import UpstreamConfig


logger = logging.getLogger(__name__)


class StatKind(str, Enum):
    """Statistics refreshed every cycle."""
    TIP_INFO = "TIP_INFO"
    RECENT_BLOCKS = "RECENT_BLOCKS"
    HASH_RATE = "HASH_RATE"
    MEMPOOL = "MEMPOOL"
    MINERS = "MINERS"


class FailureReason(str, Enum):
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    MALFORMED = "MALFORMED"


@dataclass(frozen=True)
class TipInfo:
    height: int
    timestamp_unix_s: int = 0


@dataclass(frozen=True)
class HashRate:
    """Estimated network hash rate in H/s."""
    value: float


@dataclass(frozen=True)
class StatOk:
    kind: StatKind
    value: Any


@dataclass(frozen=True)
class StatFailure:
    kind: StatKind
    reason: FailureReason
    detail: str = ""


StatResult = Union[StatOk, StatFailure]


class MalformedResponse(ValueError):
    """Upstream payload did not match the expected shape."""


class UpstreamClient(Protocol):
    """Anything the updater can pull statistics from."""

    def fetch_stat(self, kind: StatKind) -> StatResult:
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Payload parsers (pure, raise MalformedResponse)
# ---------------------------------------------------------------------------

def _require(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict) or key not in payload:
        raise MalformedResponse(f"missing field '{key}'")
    return payload[key]


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise MalformedResponse(f"'{name}' must be an integer, got bool")
    if isinstance(value, float) and not value.is_integer():
        raise MalformedResponse(f"'{name}' must be an integer, got {value!r}")
    try:
        result = int(value)
    except (TypeError, ValueError, OverflowError):
        raise MalformedResponse(f"'{name}' must be an integer, got {value!r}") from None
    if result < 0:
        raise MalformedResponse(f"'{name}' must be >= 0, got {result}")
    return result


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise MalformedResponse(f"'{name}' must be a number, got bool")
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        raise MalformedResponse(f"'{name}' must be a number, got {value!r}") from None


def parse_tip_info(payload: Any) -> TipInfo:
    metadata = _require(payload, "metadata")
    return TipInfo(
        height=_as_int(_require(metadata, "best_block_height"), "best_block_height"),
        timestamp_unix_s=_as_int(metadata.get("timestamp", 0), "timestamp"),
    )


def parse_recent_blocks(payload: Any) -> tuple[BlockHeaderDTO, ...]:
    headers = _require(payload, "headers")
    if not isinstance(headers, list):
        raise MalformedResponse("'headers' must be a list")

    blocks = []
    for raw in headers:
        blocks.append(
            BlockHeaderDTO(
                height=_as_int(_require(raw, "height"), "height"),
                hash_hex=str(_require(raw, "hash")),
                timestamp_unix_s=_as_int(_require(raw, "timestamp"), "timestamp"),
                pow_algo=str(raw.get("pow_algo", "")),
                tx_count=_as_int(raw.get("tx_count", 0), "tx_count"),
            )
        )
    # Newest first, as the index page lists them
    blocks.sort(key=lambda b: b.height, reverse=True)
    return tuple(blocks)


def parse_hash_rate(payload: Any) -> HashRate:
    value = _as_float(_require(payload, "hash_rate"), "hash_rate")
    if not math.isfinite(value) or value < 0:
        raise MalformedResponse(f"'hash_rate' must be a finite number >= 0, got {value}")
    return HashRate(value=value)


def parse_mempool(payload: Any) -> MempoolDTO:
    return MempoolDTO(
        tx_count=_as_int(_require(payload, "tx_count"), "tx_count"),
        total_weight=_as_int(payload.get("total_weight", 0), "total_weight"),
    )


def parse_miners(payload: Any) -> tuple[MinerStatDTO, ...]:
    miners = _require(payload, "miners")
    if not isinstance(miners, list):
        raise MalformedResponse("'miners' must be a list")

    counts = [
        (str(_require(m, "miner_id")), _as_int(_require(m, "blocks_found"), "blocks_found"))
        for m in miners
    ]
    total = sum(count for _, count in counts)
    leaderboard = [
        MinerStatDTO(
            miner_id=miner_id,
            blocks_found=count,
            share_pct=(count / total * 100.0) if total else 0.0,
        )
        for miner_id, count in counts
    ]
    leaderboard.sort(key=lambda m: (-m.blocks_found, m.miner_id))
    return tuple(leaderboard)


_PARSERS = {
    StatKind.TIP_INFO: parse_tip_info,
    StatKind.RECENT_BLOCKS: parse_recent_blocks,
    StatKind.HASH_RATE: parse_hash_rate,
    StatKind.MEMPOOL: parse_mempool,
    StatKind.MINERS: parse_miners,
}


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class HttpUpstreamClient:
    """
    JSON-over-HTTP upstream client.

    Endpoints (relative to base_url):
    - GET /tip                       -> {"metadata": {"best_block_height", "timestamp"}}
    - GET /blocks?from=0&limit=N     -> {"headers": [...]}
    - GET /hash_rate                 -> {"hash_rate": float}
    - GET /mempool                   -> {"tx_count", "total_weight"}
    - GET /miners                    -> {"miners": [{"miner_id", "blocks_found"}]}
    """

    ENDPOINTS = {
        StatKind.TIP_INFO: "/tip",
        StatKind.RECENT_BLOCKS: "/blocks",
        StatKind.HASH_RATE: "/hash_rate",
        StatKind.MEMPOOL: "/mempool",
        StatKind.MINERS: "/miners",
    }

    def __init__(
        self,
        config: UpstreamConfig,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.timeout_s = timeout_s
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": config.user_agent})

    def _url(self, kind: StatKind) -> str:
        return f"{self.config.base_url}{self.ENDPOINTS[kind]}"

    def _params(self, kind: StatKind) -> dict:
        if kind is StatKind.RECENT_BLOCKS:
            return {"from": 0, "limit": self.config.blocks_limit}
        return {}

    def fetch_stat(self, kind: StatKind) -> StatResult:
        try:
            r = self._session.get(
                self._url(kind), params=self._params(kind), timeout=self.timeout_s
            )
            r.raise_for_status()
            payload = r.json()
        except requests.Timeout as e:
            return StatFailure(kind, FailureReason.TIMEOUT, str(e))
        except requests.JSONDecodeError as e:
            return StatFailure(kind, FailureReason.MALFORMED, f"invalid JSON: {e}")
        except requests.RequestException as e:
            return StatFailure(kind, FailureReason.NETWORK, str(e))

        try:
            value = _PARSERS[kind](payload)
        except MalformedResponse as e:
            return StatFailure(kind, FailureReason.MALFORMED, str(e))

        return StatOk(kind, value)

    def close(self) -> None:
        self._session.close()


# ---------------------------------------------------------------------------
# Mock client
# ---------------------------------------------------------------------------

class MockUpstreamClient:
    """
    Deterministic upstream for local runs and tests.

    The chain grows by one block per TIP_INFO fetch; the hash rate
    oscillates around base_hash_rate. Failures and latency can be injected
    per kind.
    """

    def __init__(
        self,
        start_height: int = 1000,
        base_hash_rate: float = 1.5e15,
        fail_kinds: Optional[set] = None,
        delay_s: float = 0.0,
    ):
        self.start_height = start_height
        self.base_hash_rate = base_hash_rate
        self.fail_kinds: set = set(fail_kinds or ())
        self.delay_s = delay_s
        self.calls: dict[StatKind, int] = {kind: 0 for kind in StatKind}
        self._height = start_height

        logger.info(
            f"MockUpstreamClient initialized: start_height={start_height}, "
            f"fail_kinds={sorted(k.value for k in self.fail_kinds)}, delay={delay_s}s"
        )

    def fetch_stat(self, kind: StatKind) -> StatResult:
        self.calls[kind] += 1
        if self.delay_s > 0:
            time.sleep(self.delay_s)

        if kind in self.fail_kinds:
            return StatFailure(kind, FailureReason.NETWORK, "injected failure")

        n = self.calls[kind]
        if kind is StatKind.TIP_INFO:
            self._height += 1
            return StatOk(kind, TipInfo(height=self._height, timestamp_unix_s=1_700_000_000 + n * 120))
        if kind is StatKind.RECENT_BLOCKS:
            blocks = tuple(
                BlockHeaderDTO(
                    height=self._height - i,
                    hash_hex=f"{self._height - i:064x}",
                    timestamp_unix_s=1_700_000_000 + (self._height - i) * 120,
                    pow_algo="SHA3X" if (self._height - i) % 2 else "RANDOMX",
                    tx_count=(self._height - i) % 7,
                )
                for i in range(5)
            )
            return StatOk(kind, blocks)
        if kind is StatKind.HASH_RATE:
            wobble = ((n % 10) - 5) / 100.0
            return StatOk(kind, HashRate(value=self.base_hash_rate * (1.0 + wobble)))
        if kind is StatKind.MEMPOOL:
            return StatOk(kind, MempoolDTO(tx_count=10 + n % 25, total_weight=(10 + n % 25) * 1200))
        return StatOk(
            kind,
            parse_miners({"miners": [
                {"miner_id": "pool-a", "blocks_found": 12 + n % 3},
                {"miner_id": "pool-b", "blocks_found": 7},
                {"miner_id": "solo-1", "blocks_found": 1},
            ]}),
        )

    def close(self) -> None:
        pass
