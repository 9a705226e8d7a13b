from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EffectType = Literal["stat", "flag", "memory", "arc"]


class _EffectBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    description: str | None = None
    consumed_by: tuple[str, ...] = ()


class StatEffect(_EffectBase):
    type: Literal["stat"]
    stat: str = Field(min_length=1)
    delta: int

    @field_validator("delta", mode="before")
    @classmethod
    def validate_delta(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("delta cannot be bool")
        return value


class FlagEffect(_EffectBase):
    type: Literal["flag"]


class MemoryEffect(_EffectBase):
    type: Literal["memory"]


class ArcEffect(_EffectBase):
    type: Literal["arc"]


Effect = Annotated[Union[StatEffect, FlagEffect, MemoryEffect, ArcEffect], Field(discriminator="type")]

# Effects of these types feed numeric checks and ending conditions, so they are
# consumed without an explicit Consumer entry.
IMPLICITLY_CONSUMED_TYPES: frozenset[str] = frozenset({"stat", "arc"})


class Option(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(min_length=1)
    effects: tuple[str, ...] = ()
    text: str | None = None


class Decision(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    tape: str
    options: tuple[Option, ...] = Field(min_length=1)
    prompt: str | None = None

    def option(self, option_id: str) -> Option | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Consumer(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    tape: str
    checks: tuple[str, ...] = ()
    description: str | None = None


class DatasetMeta(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    tapes: tuple[str, ...] = ()
    version: str | None = None
    title: str | None = None


def _inject_ids(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    out: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, dict):
            value = {**value, "id": str(key)}
        out[str(key)] = value
    return out


class DecisionDataset(BaseModel):
    """The authored decision graph: every catalog keyed by id plus the tape order."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    decisions: dict[str, Decision] = Field(default_factory=dict)
    effects: dict[str, Effect] = Field(default_factory=dict)
    consumers: dict[str, Consumer] = Field(default_factory=dict)
    meta: DatasetMeta = Field(default_factory=DatasetMeta)

    @model_validator(mode="before")
    @classmethod
    def inject_catalog_ids(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        patched = dict(data)
        for collection in ("decisions", "effects", "consumers"):
            if patched.get(collection) is None:
                patched.pop(collection, None)
                continue
            patched[collection] = _inject_ids(patched[collection])
        if patched.get("meta") is None:
            patched.pop("meta", None)
        return patched

    @property
    def tape_order(self) -> tuple[str, ...]:
        return self.meta.tapes

    def tape_index(self) -> dict[str, int]:
        index: dict[str, int] = {}
        for position, tape in enumerate(self.meta.tapes):
            index.setdefault(tape, position)
        return index

    def option_count(self) -> int:
        return sum(len(decision.options) for decision in self.decisions.values())
