"""Encounter buff helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Dict, List, Sequence

TRAVEL_TICK = "travel"


@dataclass(slots=True)
class Buff:
    """Time-limited modifier on travel estimates and hazard rolls.

    ``tick == "travel"`` decrements ``remaining`` after every completed trip;
    any other tick value leaves expiry to whoever consumes the buff.
    """

    id: str
    kind: str
    amount: float = 0
    remaining: int = 1
    tick: str = TRAVEL_TICK
    label: str | None = None
    meta: Dict[str, object] = field(default_factory=dict)


def upsert_buff(buffs: List[Buff], buff: Buff) -> None:
    """Insert the buff, replacing any entry that shares its id in place."""
    for index, existing in enumerate(buffs):
        if existing.id == buff.id:
            buffs[index] = buff
            return
    buffs.append(buff)


def remove_buff(buffs: List[Buff], buff_id: str) -> bool:
    for index, existing in enumerate(buffs):
        if existing.id == buff_id:
            del buffs[index]
            return True
    return False


def sum_buff_amount(buffs: Sequence[Buff], kind: str) -> float:
    return sum(buff.amount for buff in buffs if buff.kind == kind and buff.remaining > 0)


def has_active_buff(buffs: Sequence[Buff], kind: str) -> bool:
    return any(buff.kind == kind and buff.remaining > 0 for buff in buffs)


def consume_buff(buffs: List[Buff], kind: str) -> Buff | None:
    """Spend one charge of the first active buff of ``kind``."""
    for index, buff in enumerate(buffs):
        if buff.kind != kind or buff.remaining <= 0:
            continue
        buff.remaining -= 1
        if buff.remaining <= 0:
            del buffs[index]
        return buff
    return None


def tick_travel_buffs(buffs: List[Buff], skip: Collection[str] = ()) -> List[Buff]:
    """Decrement travel-scoped buffs and return the ones that expired.

    Buffs whose id is in ``skip`` already paid for this trip and keep their charges.
    """
    expired: List[Buff] = []
    kept: List[Buff] = []
    for buff in buffs:
        if buff.tick == TRAVEL_TICK and buff.id not in skip:
            buff.remaining -= 1
        if buff.remaining <= 0:
            expired.append(buff)
        else:
            kept.append(buff)
    buffs[:] = kept
    return expired
