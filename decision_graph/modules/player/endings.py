from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

DEFAULT_ENDING_ID = "default"
DEFAULT_ENDING_DESCRIPTION = "The story continues..."


@dataclass(frozen=True, slots=True)
class EndingRecord:
    id: str
    description: str | None = None
    definition: dict[str, Any] = field(default_factory=dict)

    @property
    def is_default(self) -> bool:
        return not self.definition and self.id == DEFAULT_ENDING_ID


def default_ending() -> EndingRecord:
    return EndingRecord(id=DEFAULT_ENDING_ID, description=DEFAULT_ENDING_DESCRIPTION)


def _as_threshold(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _requirement_ids(requires: Any) -> list[str] | None:
    if requires is None:
        return []
    if isinstance(requires, str):
        requires = [requires]
    elif isinstance(requires, (set, frozenset)):
        requires = sorted(requires, key=str)
    elif not isinstance(requires, Sequence):
        return None
    return [str(item) for item in requires if str(item or "").strip()]


def _normalize_endings(endings: Sequence[Mapping[str, Any]] | Mapping[str, Mapping[str, Any]] | None) -> list[dict]:
    if not endings:
        return []
    if isinstance(endings, Mapping):
        items = [{**dict(raw), "id": str(ending_id)} for ending_id, raw in endings.items() if isinstance(raw, Mapping)]
    else:
        items = [dict(raw) for raw in endings if isinstance(raw, Mapping)]

    normalized: list[dict] = []
    for raw in items:
        ending_id = str(raw.get("id") or "").strip()
        if not ending_id:
            continue
        requires = _requirement_ids(raw.get("requires"))
        if requires is None:
            continue
        raw["id"] = ending_id
        raw["requires"] = requires
        normalized.append(raw)
    return normalized


def _matches(ending: dict, *, flags: set[str], arcs: set[str], trust: int, guard: int) -> bool:
    for required in ending["requires"]:
        if required not in flags and required not in arcs:
            return False

    min_trust = _as_threshold(ending.get("min_trust"))
    if min_trust is not None and trust < min_trust:
        return False

    min_guard = _as_threshold(ending.get("min_guard"))
    if min_guard is not None and guard < min_guard:
        return False

    return True


def resolve_ending(
    endings: Sequence[Mapping[str, Any]] | Mapping[str, Mapping[str, Any]] | None,
    *,
    flags: set[str],
    arcs: set[str],
    trust: int,
    guard: int,
) -> EndingRecord:
    """Return the first ending, in authored order, whose conditions all hold."""
    for ending in _normalize_endings(endings):
        if not _matches(ending, flags=flags, arcs=arcs, trust=trust, guard=guard):
            continue
        description = ending.get("description")
        return EndingRecord(
            id=ending["id"],
            description=str(description) if description is not None else None,
            definition=ending,
        )
    return default_ending()
