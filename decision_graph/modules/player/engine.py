from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, assert_never

from decision_graph.config import settings
from decision_graph.modules.catalog.schemas import (
    ArcEffect,
    Consumer,
    Decision,
    DecisionDataset,
    FlagEffect,
    MemoryEffect,
    Option,
    StatEffect,
)
from decision_graph.modules.graph.indexer import GraphIndex, build_graph_index
from decision_graph.modules.player.endings import EndingRecord, resolve_ending
from decision_graph.modules.player.errors import UnknownDecisionError, UnknownOptionError
from decision_graph.modules.player.persistence import NullSaveStore, PersistResult, SaveStore
from decision_graph.modules.player.state import (
    HistoryEntry,
    MemoryRecord,
    PlayerState,
    clamp_stat,
    default_player_state,
    normalize_snapshot,
    state_to_snapshot,
)
from decision_graph.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

OBSERVATION_UNKNOWN_EFFECT = "unknown_effect"
OBSERVATION_UNKNOWN_STAT = "unknown_stat"
OBSERVATION_PERSIST_FAILED = "persist_failed"
OBSERVATION_RESTORE_FAILED = "restore_failed"
OBSERVATION_IMPORT_FAILED = "import_failed"


@dataclass(frozen=True, slots=True)
class Observation:
    kind: str
    subject: str
    message: str


@dataclass(frozen=True, slots=True)
class AppliedEffect:
    id: str
    type: str
    stat: str | None = None
    delta: int | None = None
    new_value: int | None = None


@dataclass(slots=True)
class ChoiceResult:
    decision: Decision
    option: Option
    applied_effects: list[AppliedEffect]
    state: dict[str, Any]


@dataclass(frozen=True, slots=True)
class TapeDecision:
    decision: Decision
    chosen: str | None


@dataclass(frozen=True, slots=True)
class TapeEffect:
    effect_id: str
    is_active: bool
    consumers: list[Consumer] = field(default_factory=list)


class PlayerStateEngine:
    """Applies choices to one player's state and answers read-only queries about it.

    One instance per player or save slot. Calls to ``apply_choice`` must be
    serialized by the caller.
    """

    def __init__(
        self,
        dataset: DecisionDataset,
        index: GraphIndex | None = None,
        *,
        store: SaveStore | None = None,
        save_key: str | None = None,
        stat_names: Iterable[str] | None = None,
        stat_min: int | None = None,
        stat_max: int | None = None,
        clock: Callable[[], Any] = utc_now_iso,
    ) -> None:
        self._dataset = dataset
        self._index = index if index is not None else build_graph_index(dataset)
        self._store: SaveStore = store if store is not None else NullSaveStore()
        self._save_key = save_key or settings.save_key
        self._stat_names = tuple(stat_names if stat_names is not None else settings.stat_names)
        self._stat_min = settings.stat_min if stat_min is None else int(stat_min)
        self._stat_max = settings.stat_max if stat_max is None else int(stat_max)
        self._clock = clock
        self._state: PlayerState | None = None
        self._observations: list[Observation] = []

    @property
    def is_active(self) -> bool:
        return self._state is not None

    @property
    def save_key(self) -> str:
        return self._save_key

    @property
    def index(self) -> GraphIndex:
        return self._index

    def load(self) -> PlayerStateEngine:
        self._state = self._restore()
        return self

    def _restore(self) -> PlayerState:
        result = self._safe_store_call(lambda: self._store.load(self._save_key))
        if not result.ok:
            self._observe(OBSERVATION_RESTORE_FAILED, self._save_key, f"Failed to restore state: {result.error}")
            logger.warning("Failed to restore state for %s: %s", self._save_key, result.error)
            return self._fresh_state()
        if result.payload is None:
            return self._fresh_state()

        state = self._normalize(result.payload)
        logger.info(
            "Restored state for %s: %d choices, %d flags",
            self._save_key,
            len(state.history),
            len(state.active_flags),
        )
        return state

    def reset_state(self) -> None:
        self._state = self._fresh_state()
        result = self._safe_store_call(lambda: self._store.delete(self._save_key))
        if not result.ok:
            self._observe(OBSERVATION_PERSIST_FAILED, self._save_key, f"Failed to erase save: {result.error}")
            logger.warning("Failed to erase save %s: %s", self._save_key, result.error)

    def apply_choice(self, decision_id: str, option_id: str) -> ChoiceResult:
        decision = self._dataset.decisions.get(decision_id)
        if decision is None:
            raise UnknownDecisionError(decision_id)
        option = decision.option(option_id)
        if option is None:
            raise UnknownOptionError(decision_id, option_id)

        state = self._active_state()
        timestamp = self._clock()
        state.history.append(
            HistoryEntry(
                decision_id=decision_id,
                option_id=option_id,
                timestamp=timestamp,
                tape=decision.tape,
            )
        )

        applied: list[AppliedEffect] = []
        for effect_id in option.effects:
            outcome = self._apply_effect(state, effect_id, timestamp=timestamp)
            if outcome is not None:
                applied.append(outcome)

        self._persist()
        return ChoiceResult(decision=decision, option=option, applied_effects=applied, state=self.get_state())

    def _apply_effect(self, state: PlayerState, effect_id: str, *, timestamp: Any) -> AppliedEffect | None:
        effect = self._dataset.effects.get(effect_id)
        if effect is None:
            self._observe(OBSERVATION_UNKNOWN_EFFECT, effect_id, f"Unknown effect: {effect_id}")
            logger.warning("Unknown effect: %s", effect_id)
            return None

        if isinstance(effect, StatEffect):
            if effect.stat not in state.stats:
                self._observe(OBSERVATION_UNKNOWN_STAT, effect_id, f"Effect {effect_id} targets unknown stat {effect.stat}")
                logger.warning("Effect %s targets unknown stat %s", effect_id, effect.stat)
                return None
            new_value = clamp_stat(state.stats[effect.stat] + effect.delta, lower=self._stat_min, upper=self._stat_max)
            state.stats[effect.stat] = new_value
            return AppliedEffect(id=effect_id, type="stat", stat=effect.stat, delta=effect.delta, new_value=new_value)
        elif isinstance(effect, FlagEffect):
            state.active_flags.add(effect_id)
            return AppliedEffect(id=effect_id, type="flag")
        elif isinstance(effect, MemoryEffect):
            state.memories.append(MemoryRecord(id=effect_id, description=effect.description, timestamp=timestamp))
            return AppliedEffect(id=effect_id, type="memory")
        elif isinstance(effect, ArcEffect):
            state.arc_flags.add(effect_id)
            return AppliedEffect(id=effect_id, type="arc")
        else:
            assert_never(effect)

    def get_stat(self, name: str) -> int:
        return int(self._active_state().stats.get(name, 0))

    def has_flag(self, flag_id: str) -> bool:
        return flag_id in self._active_state().active_flags

    def has_any_flag(self, *flag_ids: str) -> bool:
        flags = self._active_state().active_flags
        return any(flag_id in flags for flag_id in flag_ids)

    def has_all_flags(self, *flag_ids: str) -> bool:
        flags = self._active_state().active_flags
        return all(flag_id in flags for flag_id in flag_ids)

    def has_arc(self, arc_id: str) -> bool:
        return arc_id in self._active_state().arc_flags

    def has_memory(self, memory_id: str) -> bool:
        return any(memory.id == memory_id for memory in self._active_state().memories)

    def get_memories(self) -> list[MemoryRecord]:
        return copy.deepcopy(self._active_state().memories)

    def get_history(self) -> list[HistoryEntry]:
        return copy.deepcopy(self._active_state().history)

    def get_last_choice(self, decision_id: str) -> HistoryEntry | None:
        for entry in reversed(self._active_state().history):
            if entry.decision_id == decision_id:
                return copy.copy(entry)
        return None

    def was_choice_made(self, decision_id: str, option_id: str) -> bool:
        return any(
            entry.decision_id == decision_id and entry.option_id == option_id
            for entry in self._active_state().history
        )

    def get_state(self) -> dict[str, Any]:
        return state_to_snapshot(self._active_state())

    @property
    def observations(self) -> list[Observation]:
        return list(self._observations)

    def clear_observations(self) -> None:
        self._observations.clear()

    def get_decisions_for_tape(self, tape: str) -> list[TapeDecision]:
        out: list[TapeDecision] = []
        for decision_id, decision in self._dataset.decisions.items():
            if decision.tape != tape:
                continue
            last = self.get_last_choice(decision_id)
            out.append(TapeDecision(decision=decision, chosen=last.option_id if last is not None else None))
        return out

    def get_pending_decisions(self, tape: str) -> list[Decision]:
        return [item.decision for item in self.get_decisions_for_tape(tape) if item.chosen is None]

    def get_effects_for_tape(self, tape: str) -> list[TapeEffect]:
        state = self._active_state()
        out: list[TapeEffect] = []
        for effect_id, consumers in self._index.consumers_in_tape(tape).items():
            is_active = (
                effect_id in state.active_flags
                or effect_id in state.arc_flags
                or self.has_memory(effect_id)
            )
            out.append(TapeEffect(effect_id=effect_id, is_active=is_active, consumers=consumers))
        return out

    def determine_ending(
        self,
        endings: Sequence[Mapping[str, Any]] | Mapping[str, Mapping[str, Any]] | None,
    ) -> EndingRecord:
        state = self._active_state()
        return resolve_ending(
            endings,
            flags=set(state.active_flags),
            arcs=set(state.arc_flags),
            trust=self.get_stat("trust"),
            guard=self.get_stat("guard"),
        )

    def export_state(self) -> str:
        return json.dumps(self.get_state(), ensure_ascii=False, indent=2)

    def import_state(self, payload: str) -> bool:
        try:
            raw = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as exc:
            self._observe(OBSERVATION_IMPORT_FAILED, self._save_key, f"Failed to import state: {exc}")
            logger.warning("Failed to import state for %s: %s", self._save_key, exc)
            return False
        if not isinstance(raw, dict):
            self._observe(OBSERVATION_IMPORT_FAILED, self._save_key, "Failed to import state: not a JSON object")
            logger.warning("Failed to import state for %s: not a JSON object", self._save_key)
            return False

        self._state = self._normalize(raw)
        self._persist()
        return True

    def _fresh_state(self) -> PlayerState:
        return default_player_state(self._stat_names)

    def _normalize(self, raw: Any) -> PlayerState:
        return normalize_snapshot(raw, stat_names=self._stat_names, lower=self._stat_min, upper=self._stat_max)

    def _active_state(self) -> PlayerState:
        if self._state is None:
            self._state = self._restore()
        return self._state

    def _observe(self, kind: str, subject: str, message: str) -> None:
        self._observations.append(Observation(kind=kind, subject=subject, message=message))

    @staticmethod
    def _safe_store_call(call: Callable[[], PersistResult]) -> PersistResult:
        try:
            return call()
        except Exception as exc:  # noqa: BLE001
            return PersistResult.failure(str(exc))

    def _persist(self) -> PersistResult:
        snapshot = state_to_snapshot(self._active_state())
        result = self._safe_store_call(lambda: self._store.save(self._save_key, snapshot))
        if not result.ok:
            self._observe(OBSERVATION_PERSIST_FAILED, self._save_key, f"Failed to save state: {result.error}")
            logger.warning("Failed to save state for %s: %s", self._save_key, result.error)
        return result
