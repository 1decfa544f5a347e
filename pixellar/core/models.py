from __future__ import annotations

from dataclasses import dataclass, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

Cell = Tuple[int, int]


class Chain(str, Enum):
    """Supported chain tags, as stored in the ``blockchain`` column."""

    SUI = "sui"
    STELLAR = "stellar"
    STARKNET = "starknet"

    @classmethod
    def parse(cls, value) -> Chain:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown chain: {value!r}") from None

    @property
    def label(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class PaintRecord:

    color: int
    owner: Optional[str]
    chain: Chain
    confirmed: bool = False
    tx_hash: Optional[str] = None

    def confirm(self, tx_hash: Optional[str] = None) -> PaintRecord:
        return replace(self, confirmed=True, tx_hash=tx_hash or self.tx_hash)


# What an empty cell reads as: background color, nobody painted it
DEFAULT_RECORD = PaintRecord(color=0, owner=None, chain=Chain.SUI, confirmed=True)


@dataclass(frozen=True)
class PixelRow:
    """One row of the mirrored ``pixels`` table."""

    x: int
    y: int
    color: int
    last_painter: Optional[str] = None
    blockchain: Chain = Chain.SUI
    tx_hash: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def cell(self) -> Cell:
        return (self.x, self.y)

    @classmethod
    def from_dict(cls, data: dict) -> PixelRow:
        """
        Parses a row as returned by the REST API or carried by a realtime event.

        Rows written by the chain indexer have no ``blockchain`` column and
        default to Sui.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        try:
            return cls(
                x=int(data["x"]),
                y=int(data["y"]),
                color=int(data["color"]),
                last_painter=data.get("last_painter"),
                blockchain=Chain.parse(data.get("blockchain") or Chain.SUI),
                tx_hash=data.get("tx_hash"),
                updated_at=data.get("updated_at"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed pixel row: {data!r}") from e

    @classmethod
    def from_record(cls, cell: Cell, record: PaintRecord) -> PixelRow:
        return cls(
            x=cell[0],
            y=cell[1],
            color=record.color,
            last_painter=record.owner,
            blockchain=record.chain,
            tx_hash=record.tx_hash,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["blockchain"] = self.blockchain.value
        return data

    def to_record(self) -> PaintRecord:
        return PaintRecord(
            color=self.color,
            owner=self.last_painter,
            chain=self.blockchain,
            confirmed=True,
            tx_hash=self.tx_hash,
        )


class DispatchOutcome(str, Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchResult:
    """Terminal outcome of one sign-and-submit flow."""

    outcome: DispatchOutcome
    chain: Chain
    tx_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.outcome is DispatchOutcome.CONFIRMED


class AttemptState(str, Enum):
    IDLE = "idle"
    COOLDOWN_CHECK = "cooldown_check"
    WALLET_CHECK = "wallet_check"
    OPTIMISTIC_APPLY = "optimistic_apply"
    DISPATCHING = "dispatching"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    ABORTED = "aborted"


@dataclass
class PlacementAttempt:
    """Bookkeeping for a single placement, from click to terminal state."""

    cell: Cell
    color: int
    chain: Chain
    owner: Optional[str] = None
    state: AttemptState = AttemptState.IDLE
    prior: Optional[PaintRecord] = None
    applied: Optional[PaintRecord] = None
    tx_id: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def finished(self) -> bool:
        return self.state in (AttemptState.CONFIRMED, AttemptState.REVERTED, AttemptState.ABORTED)


@dataclass(frozen=True)
class Notice:
    """Transient message shown to the user."""

    kind: str  # "error" or "success"
    text: str
