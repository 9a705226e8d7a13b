from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from decision_graph.config import DEFAULT_STAT_NAMES

STAT_MIN = 0
STAT_MAX = 100

Timestamp = str | int | float


@dataclass(slots=True)
class MemoryRecord:
    id: str
    description: str | None
    timestamp: Timestamp

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "description": self.description, "timestamp": self.timestamp}


@dataclass(slots=True)
class HistoryEntry:
    decision_id: str
    option_id: str
    timestamp: Timestamp
    tape: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision_id": self.decision_id,
            "option_id": self.option_id,
            "timestamp": self.timestamp,
            "tape": self.tape,
        }


@dataclass(slots=True)
class PlayerState:
    stats: dict[str, int] = field(default_factory=dict)
    active_flags: set[str] = field(default_factory=set)
    memories: list[MemoryRecord] = field(default_factory=list)
    arc_flags: set[str] = field(default_factory=set)
    history: list[HistoryEntry] = field(default_factory=list)


def clamp_stat(value: int, *, lower: int = STAT_MIN, upper: int = STAT_MAX) -> int:
    return max(lower, min(upper, value))


def default_player_state(stat_names: Iterable[str] = DEFAULT_STAT_NAMES) -> PlayerState:
    return PlayerState(stats={name: 0 for name in stat_names})


def state_to_snapshot(state: PlayerState) -> dict[str, Any]:
    """Canonical persisted form: flat lists, sorted flag ids, records in application order."""
    return {
        "stats": dict(state.stats),
        "flags": sorted(state.active_flags),
        "memories": [memory.to_dict() for memory in state.memories],
        "arcs": sorted(state.arc_flags),
        "history": [entry.to_dict() for entry in state.history],
    }


def _unique_non_empty_strings(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for item in values:
        text = str(item or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
    return out


def _normalize_timestamp(value: Any) -> Timestamp:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return value
    return str(value)


def _first_present(raw: dict, *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _normalize_stats(raw: Any, stat_names: Iterable[str], *, lower: int, upper: int) -> dict[str, int]:
    stats = {name: 0 for name in stat_names}
    if not isinstance(raw, dict):
        return stats
    for raw_name, raw_value in raw.items():
        name = str(raw_name or "").strip()
        if not name:
            continue
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
            continue
        stats[name] = clamp_stat(int(raw_value), lower=lower, upper=upper)
    return stats


def _normalize_memories(raw: Any) -> list[MemoryRecord]:
    if not isinstance(raw, list):
        return []
    out: list[MemoryRecord] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        memory_id = str(item.get("id") or "").strip()
        if not memory_id:
            continue
        description = item.get("description")
        out.append(
            MemoryRecord(
                id=memory_id,
                description=str(description) if description is not None else None,
                timestamp=_normalize_timestamp(item.get("timestamp")),
            )
        )
    return out


def _normalize_history(raw: Any) -> list[HistoryEntry]:
    if not isinstance(raw, list):
        return []
    out: list[HistoryEntry] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        decision_id = str(_first_present(item, "decision_id", "decisionId") or "").strip()
        option_id = str(_first_present(item, "option_id", "optionId") or "").strip()
        if not decision_id or not option_id:
            continue
        tape = item.get("tape")
        out.append(
            HistoryEntry(
                decision_id=decision_id,
                option_id=option_id,
                timestamp=_normalize_timestamp(item.get("timestamp")),
                tape=str(tape) if tape is not None else None,
            )
        )
    return out


def normalize_snapshot(
    raw: Any,
    *,
    stat_names: Iterable[str] = DEFAULT_STAT_NAMES,
    lower: int = STAT_MIN,
    upper: int = STAT_MAX,
) -> PlayerState:
    """Rebuild a PlayerState from a saved document.

    Each field is merged with its default independently, so a partial or
    corrupted save keeps whatever fields are still readable.
    """
    data = raw if isinstance(raw, dict) else {}
    return PlayerState(
        stats=_normalize_stats(data.get("stats"), stat_names, lower=lower, upper=upper),
        active_flags=set(_unique_non_empty_strings(data.get("flags"))),
        memories=_normalize_memories(data.get("memories")),
        arc_flags=set(_unique_non_empty_strings(data.get("arcs"))),
        history=_normalize_history(data.get("history")),
    )
