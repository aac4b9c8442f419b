"""Deterministic xorshift32 RNG with seed derivation for sub-streams."""
from __future__ import annotations

import math
from typing import Sequence, TypedDict, TypeVar

T_co = TypeVar("T_co")

UINT32_MASK = 0xFFFFFFFF
ZERO_SEED_SUBSTITUTE = 0x1A2B3C4D
_UINT32_SPAN = 2**32


class RNGStatePayload(TypedDict):
    seed: int
    state: int


def coerce_seed(value: object) -> int:
    """Coerce an integer-like value to uint32, remapping zero to a fixed constant."""
    if isinstance(value, bool):
        raise ValueError("Seed must be an integer-like value, not a boolean.")
    if isinstance(value, int):
        raw = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Seed must be finite, got {value!r}.")
        raw = math.floor(value)
    elif isinstance(value, str):
        try:
            raw = math.floor(float(value.strip()))
        except ValueError as exc:
            raise ValueError(f"Seed must be integer-like, got {value!r}.") from exc
    else:
        raise ValueError(f"Seed must be integer-like, got {type(value).__name__}.")
    seed = raw & UINT32_MASK
    return seed or ZERO_SEED_SUBSTITUTE


def _part_to_text(part: object) -> str:
    if isinstance(part, bool):
        return "true" if part else "false"
    if part is None:
        return "null"
    if isinstance(part, float) and part.is_integer():
        return str(int(part))
    return str(part)


def _code_units(text: str) -> Sequence[int]:
    encoded = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(encoded[index : index + 2], "little") for index in range(0, len(encoded), 2)]


def derive_seed(base_seed: object, *parts: object) -> int:
    """Fold the ordered salt parts into the base seed.

    Each part is stringified and folded one UTF-16 code unit at a time with
    ``hash ^= (hash << 5) + (hash >>> 2) + code``. Part order is significant.
    """
    value = coerce_seed(base_seed)
    for part in parts:
        for code in _code_units(_part_to_text(part)):
            value = (value ^ (((value << 5) + (value >> 2) + code) & UINT32_MASK)) & UINT32_MASK
    return value or ZERO_SEED_SUBSTITUTE


class RNG:
    """xorshift32 generator whose full state is a single uint32."""

    def __init__(self, seed: object, state: int | None = None) -> None:
        self._seed = coerce_seed(seed)
        if state is None:
            self._state = self._seed
        else:
            self._state = (int(state) & UINT32_MASK) or ZERO_SEED_SUBSTITUTE

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def state(self) -> int:
        return self._state

    def next_uint(self) -> int:
        """Advance the register and return it."""
        x = self._state
        x ^= (x << 13) & UINT32_MASK
        x ^= x >> 17
        x ^= (x << 5) & UINT32_MASK
        self._state = x & UINT32_MASK
        return self._state

    def next_float(self) -> float:
        """Return a float in [0.0, 1.0)."""
        return self.next_uint() / _UINT32_SPAN

    def next_range(self, minimum: float, maximum: float) -> float:
        """Return a float in [minimum, maximum), or minimum when the span is empty."""
        if maximum <= minimum:
            return minimum
        return minimum + self.next_float() * (maximum - minimum)

    def next_int(self, minimum: int | float, maximum: int | float) -> int:
        """Return an integer N such that minimum <= N <= maximum."""
        low = self._require_integer(minimum, "minimum")
        high = self._require_integer(maximum, "maximum")
        if high < low:
            low, high = high, low
        span = high - low + 1
        return low + math.floor(self.next_float() * span)

    def pick(self, seq: Sequence[T_co]) -> T_co:
        """Return a uniformly chosen element from the non-empty sequence."""
        if not seq:
            raise ValueError("Cannot pick from an empty sequence.")
        return seq[self.next_int(0, len(seq) - 1)]

    def serialize(self) -> RNGStatePayload:
        return {"seed": self._seed, "state": self._state}

    def restore_state(self, payload: RNGStatePayload) -> None:
        """Restore a payload produced by serialize()."""
        self._seed = coerce_seed(payload["seed"])
        self._state = (int(payload["state"]) & UINT32_MASK) or ZERO_SEED_SUBSTITUTE

    def clone(self) -> "RNG":
        return RNG(self._seed, self._state)

    @staticmethod
    def _require_integer(value: object, context: str) -> int:
        if isinstance(value, bool):
            raise ValueError(f"next_int {context} must be an integer.")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise ValueError(f"next_int {context} must be an integer, got {value!r}.")


def create_derived_rng(base_seed: object, *parts: object) -> RNG:
    """Return a fresh generator seeded from derive_seed(base_seed, *parts)."""
    return RNG(derive_seed(base_seed, *parts))
