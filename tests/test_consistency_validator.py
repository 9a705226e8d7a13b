from __future__ import annotations

from decision_graph.modules.graph.indexer import build_graph_index
from decision_graph.modules.validation.schemas import (
    BACKWARD_DEPENDENCY,
    BROKEN_CONSUMER_REFERENCE,
    BROKEN_EFFECT_REFERENCE,
    DATASET_SCHEMA_INVALID,
    GHOST_DECISION,
    GHOST_EFFECT,
    UNKNOWN_TAPE,
    UNUSED_EFFECT,
)
from decision_graph.modules.validation.validator import validate_dataset
from tests.support.dataset_seed import base_payload, build_dataset


def _codes(issues) -> list[str]:
    return [issue.code for issue in issues]


def test_clean_dataset_passes_without_findings() -> None:
    report = validate_dataset(build_dataset())

    assert report.errors == []
    assert report.warnings == []
    assert report.verdict == "clean"
    assert report.ok is True
    assert report.stats.decisions == 2
    assert report.stats.options == 4
    assert report.stats.effects == 8
    assert report.stats.consumers == 2


def test_broken_references_from_options_and_consumers() -> None:
    payload = base_payload()
    payload["decisions"]["d1"]["options"][0]["effects"].append("flag_typo")
    payload["consumers"]["c_tape3_cold"]["checks"].append("flag_gone")

    report = validate_dataset(build_dataset(payload))

    assert _codes(report.errors) == [BROKEN_EFFECT_REFERENCE, BROKEN_CONSUMER_REFERENCE]
    assert report.errors[0].effect_id == "flag_typo"
    assert report.errors[0].path == "decisions[d1].options[optA].effects[2]"
    assert report.errors[1].consumer_id == "c_tape3_cold"
    assert report.stats.broken == 2
    assert report.verdict == "fail"


def test_ghost_effect_flagged_iff_no_consumers() -> None:
    payload = base_payload()
    payload["consumers"]["c_tape3_cold"]["checks"] = []

    report = validate_dataset(build_dataset(payload))

    ghosts = report.issues_with_code(GHOST_EFFECT)
    assert [issue.effect_id for issue in ghosts] == ["flag_cold"]
    assert ghosts[0].producers == ["d2"]
    assert ghosts[0].severity == "warning"
    assert report.stats.ghosts == 1
    assert report.verdict == "warnings"
    assert report.ok is True


def test_stat_and_arc_effects_never_count_as_ghosts() -> None:
    report = validate_dataset(build_dataset())

    assert report.issues_with_code(GHOST_EFFECT) == []


def test_inline_consumed_by_suppresses_ghost_warning() -> None:
    payload = base_payload()
    payload["consumers"]["c_tape3_cold"]["checks"] = []
    payload["effects"]["flag_cold"]["consumed_by"] = ["ending_conditions"]

    report = validate_dataset(build_dataset(payload))

    assert report.issues_with_code(GHOST_EFFECT) == []


def test_unused_effect_warning() -> None:
    payload = base_payload()
    payload["effects"]["flag_orphan"] = {"type": "flag"}
    payload["consumers"]["c_tape3_cold"]["checks"].append("flag_orphan")

    report = validate_dataset(build_dataset(payload))

    unused = report.issues_with_code(UNUSED_EFFECT)
    assert [issue.effect_id for issue in unused] == ["flag_orphan"]
    assert report.stats.unused == 1
    assert report.errors == []


def test_ghost_decision_when_all_options_share_one_effect_set() -> None:
    payload = base_payload()
    payload["decisions"]["d3"] = {
        "tape": "tape2",
        "options": [
            {"id": "left", "effects": ["stat_trust_+5", "flag_seen"]},
            {"id": "right", "effects": ["flag_seen", "stat_trust_+5", "flag_seen"]},
        ],
    }

    report = validate_dataset(build_dataset(payload))

    ghost_decisions = report.issues_with_code(GHOST_DECISION)
    assert [issue.decision_id for issue in ghost_decisions] == ["d3"]
    assert ghost_decisions[0].severity == "error"


def test_single_option_or_distinct_option_is_not_a_ghost_decision() -> None:
    payload = base_payload()
    payload["decisions"]["d_single"] = {"tape": "tape1", "options": [{"id": "only", "effects": []}]}
    payload["decisions"]["d_mixed"] = {
        "tape": "tape1",
        "options": [
            {"id": "a", "effects": ["flag_seen"]},
            {"id": "b", "effects": ["flag_seen"]},
            {"id": "c", "effects": ["flag_seen", "stat_trust_+5"]},
        ],
    }

    report = validate_dataset(build_dataset(payload))

    assert report.issues_with_code(GHOST_DECISION) == []


def test_backward_dependency_scenario() -> None:
    payload = {
        "meta": {"tapes": ["tape1", "tape2"]},
        "decisions": {
            "d_late": {
                "tape": "tape2",
                "options": [
                    {"id": "yes", "effects": ["e_foo"]},
                    {"id": "no", "effects": []},
                ],
            }
        },
        "effects": {"e_foo": {"type": "flag"}},
        "consumers": {"c_early": {"tape": "tape1", "checks": ["e_foo"]}},
    }

    report = validate_dataset(build_dataset(payload))

    backward = report.issues_with_code(BACKWARD_DEPENDENCY)
    assert len(backward) == 1
    issue = backward[0]
    assert issue.consumer_tape == "tape1"
    assert issue.producer_tape == "tape2"
    assert issue.effect_id == "e_foo"
    assert issue.decision_id == "d_late"
    assert "tape1" in issue.message and "tape2" in issue.message and "e_foo" in issue.message
    assert report.verdict == "fail"


def test_same_tape_dependency_is_allowed() -> None:
    payload = base_payload()
    payload["consumers"]["c_tape2_cold"] = {"tape": "tape2", "checks": ["flag_cold"]}

    report = validate_dataset(build_dataset(payload))

    assert report.issues_with_code(BACKWARD_DEPENDENCY) == []


def test_unknown_consumer_tape_skips_ordering_check() -> None:
    payload = base_payload()
    payload["consumers"]["c_bonus"] = {"tape": "tape_bonus", "checks": ["flag_cold"]}
    payload["consumers"]["c_tape3_cold"]["tape"] = "tape1"

    report = validate_dataset(build_dataset(payload))

    unknown = report.issues_with_code(UNKNOWN_TAPE)
    assert [issue.consumer_id for issue in unknown] == ["c_bonus"]
    backward = report.issues_with_code(BACKWARD_DEPENDENCY)
    assert [issue.consumer_id for issue in backward] == ["c_tape3_cold"]


def test_raw_mapping_is_validated_first() -> None:
    report = validate_dataset(base_payload())
    assert report.verdict == "clean"

    broken = base_payload()
    broken["decisions"]["d1"]["options"] = "nope"
    report = validate_dataset(broken)

    assert _codes(report.errors) == [DATASET_SCHEMA_INVALID]
    assert report.ok is False


def test_reports_are_independent_of_player_state() -> None:
    dataset = build_dataset()

    first = validate_dataset(dataset)
    second = validate_dataset(dataset)

    assert first.model_dump() == second.model_dump()


def test_backward_dependency_only_for_later_producers() -> None:
    payload = base_payload()
    payload["decisions"]["d3"] = {
        "tape": "tape3",
        "options": [
            {"id": "late", "effects": ["flag_seen"]},
            {"id": "skip", "effects": []},
        ],
    }

    report = validate_dataset(build_dataset(payload))

    backward = report.issues_with_code(BACKWARD_DEPENDENCY)
    assert [(issue.decision_id, issue.producer_tape) for issue in backward] == [("d3", "tape3")]
    assert backward[0].consumer_id == "c_tape2_seen"
    assert backward[0].effect_id == "flag_seen"


def test_producer_on_unlisted_tape_is_skipped_by_ordering() -> None:
    payload = base_payload()
    payload["decisions"]["d_bonus"] = {
        "tape": "tape_bonus",
        "options": [
            {"id": "take", "effects": ["flag_seen"]},
            {"id": "leave", "effects": []},
        ],
    }

    report = validate_dataset(build_dataset(payload))

    assert report.issues_with_code(BACKWARD_DEPENDENCY) == []
    assert report.issues_with_code(UNKNOWN_TAPE) == []
    assert report.verdict == "clean"


def test_index_from_another_dataset_skips_missing_producers() -> None:
    payload = base_payload()
    payload["decisions"]["d_late"] = {
        "tape": "tape3",
        "options": [
            {"id": "late", "effects": ["flag_seen"]},
            {"id": "skip", "effects": []},
        ],
    }
    foreign_index = build_graph_index(build_dataset(payload))

    report = validate_dataset(build_dataset(), foreign_index)

    assert report.issues_with_code(BACKWARD_DEPENDENCY) == []
