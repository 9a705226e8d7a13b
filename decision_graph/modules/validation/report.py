from __future__ import annotations

from decision_graph.modules.validation.schemas import ValidationIssue, ValidationReport

HEAVY_RULE = "=" * 62
LIGHT_RULE = "-" * 64

VERDICT_LINES = {
    "clean": "  PASS: validation passed, no ghost decisions",
    "warnings": "  PASS: validation passed (with warnings)",
    "fail": "  FAIL: validation failed",
}


def _section(title: str, issues: list[ValidationIssue]) -> list[str]:
    lines = [LIGHT_RULE, f"  {title}", LIGHT_RULE]
    for position, issue in enumerate(issues, start=1):
        lines.append(f"  {position}. [{issue.code}] {issue.message}")
    lines.append("")
    return lines


def render_report(report: ValidationReport, *, source: str | None = None) -> str:
    stats = report.stats
    lines = [HEAVY_RULE, "  DECISION GRAPH VALIDATOR", HEAVY_RULE]
    if source:
        lines.append(f"  Dataset: {source}")
    lines.extend(
        [
            "",
            LIGHT_RULE,
            "  STATISTICS",
            LIGHT_RULE,
            f"  Decisions:      {stats.decisions}",
            f"  Options:        {stats.options}",
            f"  Effects:        {stats.effects}",
            f"  Consumers:      {stats.consumers}",
            f"  Broken refs:    {stats.broken}",
            f"  Ghost effects:  {stats.ghosts}",
            f"  Unused effects: {stats.unused}",
            LIGHT_RULE,
            "",
        ]
    )
    if report.errors:
        lines.extend(_section("ERRORS", report.errors))
    if report.warnings:
        lines.extend(_section("WARNINGS", report.warnings))

    lines.extend([HEAVY_RULE, VERDICT_LINES[report.verdict], HEAVY_RULE])
    return "\n".join(lines)
