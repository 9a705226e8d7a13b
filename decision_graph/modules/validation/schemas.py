from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

IssueSeverity = Literal["error", "warning"]
Verdict = Literal["clean", "warnings", "fail"]

BROKEN_EFFECT_REFERENCE = "BROKEN_EFFECT_REFERENCE"
BROKEN_CONSUMER_REFERENCE = "BROKEN_CONSUMER_REFERENCE"
GHOST_EFFECT = "GHOST_EFFECT"
UNUSED_EFFECT = "UNUSED_EFFECT"
GHOST_DECISION = "GHOST_DECISION"
BACKWARD_DEPENDENCY = "BACKWARD_DEPENDENCY"
UNKNOWN_TAPE = "UNKNOWN_TAPE"
DATASET_SCHEMA_INVALID = "DATASET_SCHEMA_INVALID"


class ValidationIssue(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    severity: IssueSeverity
    path: str
    message: str
    effect_id: str | None = None
    decision_id: str | None = None
    option_id: str | None = None
    consumer_id: str | None = None
    consumer_tape: str | None = None
    producer_tape: str | None = None
    producers: list[str] = Field(default_factory=list)


class ValidationStats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    decisions: int = 0
    options: int = 0
    effects: int = 0
    consumers: int = 0
    broken: int = 0
    ghosts: int = 0
    unused: int = 0


class ValidationReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    stats: ValidationStats = Field(default_factory=ValidationStats)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def verdict(self) -> Verdict:
        if self.errors:
            return "fail"
        if self.warnings:
            return "warnings"
        return "clean"

    def issues_with_code(self, code: str) -> list[ValidationIssue]:
        return [issue for issue in [*self.errors, *self.warnings] if issue.code == code]
