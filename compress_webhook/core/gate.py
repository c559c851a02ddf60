"""Skip/process decision based on object size."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class Process:
    size: Optional[int] = None

    @property
    def skipped(self) -> bool:
        return False


@dataclass(frozen=True)
class Skip:
    reason: str
    size: int

    @property
    def skipped(self) -> bool:
        return True


Decision = Union[Process, Skip]


def decide(size: Optional[int], threshold: int) -> Decision:
    """Return ``Skip`` only for a known size at or under ``threshold``.

    Unknown size always processes: skipping it could leave an oversized
    document uncompressed.
    """
    if size is None:
        return Process(size=None)
    if size <= threshold:
        return Skip(reason=f"size {size} <= threshold {threshold}", size=size)
    return Process(size=size)


def coerce_size(value: Any) -> Optional[int]:
    """Interpret a size hint; anything non-numeric or negative is unknown."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return None
        return int(value)
    if isinstance(value, str):
        try:
            parsed = int(float(value.strip()))
        except (ValueError, OverflowError):
            return None
        return parsed if parsed >= 0 else None
    return None


def size_hint(record: Mapping[str, Any]) -> Optional[int]:
    """Read ``metadata.size`` falling back to ``size``."""
    metadata = record.get("metadata")
    if isinstance(metadata, Mapping):
        size = coerce_size(metadata.get("size"))
        if size is not None:
            return size
    return coerce_size(record.get("size"))
