from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from decision_graph.modules.catalog.schemas import IMPLICITLY_CONSUMED_TYPES, DecisionDataset
from decision_graph.modules.graph.indexer import GraphIndex, build_graph_index
from decision_graph.modules.validation.schemas import (
    BACKWARD_DEPENDENCY,
    BROKEN_CONSUMER_REFERENCE,
    BROKEN_EFFECT_REFERENCE,
    DATASET_SCHEMA_INVALID,
    GHOST_DECISION,
    GHOST_EFFECT,
    UNKNOWN_TAPE,
    UNUSED_EFFECT,
    IssueSeverity,
    ValidationIssue,
    ValidationReport,
    ValidationStats,
)


def _issue(*, code: str, severity: IssueSeverity, path: str, message: str, **refs: Any) -> ValidationIssue:
    return ValidationIssue(code=code, severity=severity, path=path, message=message, **refs)


def _check_broken_references(dataset: DecisionDataset, report: ValidationReport) -> None:
    for decision_id, decision in dataset.decisions.items():
        for option in decision.options:
            for position, effect_id in enumerate(option.effects):
                if effect_id in dataset.effects:
                    continue
                report.errors.append(
                    _issue(
                        code=BROKEN_EFFECT_REFERENCE,
                        severity="error",
                        path=f"decisions[{decision_id}].options[{option.id}].effects[{position}]",
                        message=(
                            f'Decision "{decision_id}" option "{option.id}" '
                            f'references non-existent effect "{effect_id}"'
                        ),
                        effect_id=effect_id,
                        decision_id=decision_id,
                        option_id=option.id,
                    )
                )
                report.stats.broken += 1

    for consumer_id, consumer in dataset.consumers.items():
        for position, effect_id in enumerate(consumer.checks):
            if effect_id in dataset.effects:
                continue
            report.errors.append(
                _issue(
                    code=BROKEN_CONSUMER_REFERENCE,
                    severity="error",
                    path=f"consumers[{consumer_id}].checks[{position}]",
                    message=f'Consumer "{consumer_id}" checks non-existent effect "{effect_id}"',
                    effect_id=effect_id,
                    consumer_id=consumer_id,
                )
            )
            report.stats.broken += 1


def _check_ghost_effects(dataset: DecisionDataset, index: GraphIndex, report: ValidationReport) -> None:
    for effect_id, producers in index.producers_of.items():
        effect = dataset.effects.get(effect_id)
        if effect is None:
            # Already reported as a broken reference.
            continue
        if effect.type in IMPLICITLY_CONSUMED_TYPES:
            continue
        if index.consumers_of.get(effect_id) or effect.consumed_by:
            continue
        description = f" {effect.description}" if effect.description else ""
        report.warnings.append(
            _issue(
                code=GHOST_EFFECT,
                severity="warning",
                path=f"effects[{effect_id}]",
                message=(
                    f'Effect "{effect_id}" is produced by [{", ".join(producers)}] '
                    f"but has no consumers.{description}"
                ),
                effect_id=effect_id,
                producers=list(producers),
            )
        )
        report.stats.ghosts += 1


def _check_unused_effects(dataset: DecisionDataset, index: GraphIndex, report: ValidationReport) -> None:
    for effect_id in dataset.effects:
        if effect_id in index.producers_of:
            continue
        report.warnings.append(
            _issue(
                code=UNUSED_EFFECT,
                severity="warning",
                path=f"effects[{effect_id}]",
                message=f'Effect "{effect_id}" is defined but never produced by any decision',
                effect_id=effect_id,
            )
        )
        report.stats.unused += 1


def _check_ghost_decisions(dataset: DecisionDataset, report: ValidationReport) -> None:
    for decision_id, decision in dataset.decisions.items():
        if len(decision.options) < 2:
            continue
        effect_sets = [frozenset(option.effects) for option in decision.options]
        first = effect_sets[0]
        if any(effect_set != first for effect_set in effect_sets[1:]):
            continue
        report.errors.append(
            _issue(
                code=GHOST_DECISION,
                severity="error",
                path=f"decisions[{decision_id}].options",
                message=f'Decision "{decision_id}" has all identical effect sets. This choice changes nothing.',
                decision_id=decision_id,
            )
        )


def _check_tape_ordering(dataset: DecisionDataset, index: GraphIndex, report: ValidationReport) -> None:
    tape_index = dataset.tape_index()

    for consumer_id, consumer in dataset.consumers.items():
        consumer_position = tape_index.get(consumer.tape)
        if consumer_position is None:
            report.warnings.append(
                _issue(
                    code=UNKNOWN_TAPE,
                    severity="warning",
                    path=f"consumers[{consumer_id}].tape",
                    message=f'Consumer "{consumer_id}" references unknown tape "{consumer.tape}"',
                    consumer_id=consumer_id,
                    consumer_tape=consumer.tape,
                )
            )
            continue

        for effect_id in dict.fromkeys(consumer.checks):
            for producer_id in index.producers_of.get(effect_id, []):
                producer = dataset.decisions.get(producer_id)
                if producer is None:
                    continue
                producer_tape = producer.tape
                producer_position = tape_index.get(producer_tape)
                if producer_position is None or producer_position <= consumer_position:
                    continue
                report.errors.append(
                    _issue(
                        code=BACKWARD_DEPENDENCY,
                        severity="error",
                        path=f"consumers[{consumer_id}].checks",
                        message=(
                            f'Consumer in "{consumer.tape}" depends on effect from later tape '
                            f'"{producer_tape}" ({effect_id})'
                        ),
                        effect_id=effect_id,
                        decision_id=producer_id,
                        consumer_id=consumer_id,
                        consumer_tape=consumer.tape,
                        producer_tape=producer_tape,
                    )
                )


def validate_dataset(
    dataset: DecisionDataset | Mapping[str, Any],
    index: GraphIndex | None = None,
) -> ValidationReport:
    """Run every consistency check over the authored dataset.

    Broken references, ghost decisions and backward dependencies are errors;
    ghost effects, unused effects and unknown tapes are warnings. Player state is
    never consulted.
    """
    if not isinstance(dataset, DecisionDataset):
        try:
            dataset = DecisionDataset.model_validate(dict(dataset))
        except ValidationError as exc:
            report = ValidationReport()
            report.errors.append(
                _issue(
                    code=DATASET_SCHEMA_INVALID,
                    severity="error",
                    path="$",
                    message=str(exc),
                )
            )
            return report

    if index is None:
        index = build_graph_index(dataset)

    report = ValidationReport(
        stats=ValidationStats(
            decisions=len(dataset.decisions),
            options=dataset.option_count(),
            effects=len(dataset.effects),
            consumers=len(dataset.consumers),
        )
    )
    _check_broken_references(dataset, report)
    _check_ghost_effects(dataset, index, report)
    _check_unused_effects(dataset, index, report)
    _check_ghost_decisions(dataset, report)
    _check_tape_ordering(dataset, index, report)
    return report
