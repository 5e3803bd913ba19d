# === sql_review_agent/sql_review/aggregator.py ===

from datetime import datetime
from typing import Iterable, List, Sequence

from sql_review.models import CheckResult, Engine, Issue, Severity, Summary

ERROR_ADVICE = "High-risk statements found: block automatic execution and review them manually"
WARNING_ADVICE = "Medium-risk items found: prepare an execution plan and a rollback plan"
CLEAN_ADVICE = "No high-risk pattern found; a sample review of the business semantics is still recommended"
ROUTINE_ADVICE = ("Stored procedure/function definitions found: check routine permissions, "
                  "error handling and audit logging")
EMPTY_ADVICE = "Provide a script to review and try again"


def sort_issues(issues: Iterable[Issue]) -> List[Issue]:
    """
    Stable sort: statement index ascending, then error > warning > info.
    """
    return sorted(issues, key=lambda issue: (issue.statement_index, -issue.severity.weight))


def summarize(statement_count: int, issues: Sequence[Issue]) -> Summary:
    counts = {severity: 0 for severity in Severity}
    for issue in issues:
        counts[issue.severity] += 1
    return Summary(
        statement_count=statement_count,
        error_count=counts[Severity.ERROR],
        warning_count=counts[Severity.WARNING],
        info_count=counts[Severity.INFO],
    )


def build_advice(summary: Summary, contains_routine: bool = False) -> List[str]:
    advice: List[str] = []
    if summary.error_count:
        advice.append(ERROR_ADVICE)
    if summary.warning_count:
        advice.append(WARNING_ADVICE)
    if not summary.error_count and not summary.warning_count:
        advice.append(CLEAN_ADVICE)
    if contains_routine:
        advice.append(ROUTINE_ADVICE)
    return advice


def checked_at() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def assemble_report(
    engine: Engine,
    rules_version: str,
    statement_count: int,
    issues: Iterable[Issue],
    disabled_rules: Sequence[str] = (),
    forced_enabled_rules: Sequence[str] = (),
    contains_routine: bool = False,
) -> CheckResult:
    ordered = sort_issues(issues)
    summary = summarize(statement_count, ordered)
    return CheckResult(
        engine=engine,
        rules_version=rules_version,
        checked_at=checked_at(),
        summary=summary,
        issues=tuple(ordered),
        advice=tuple(build_advice(summary, contains_routine)),
        disabled_rules=tuple(disabled_rules),
        forced_enabled_rules=tuple(forced_enabled_rules),
    )


def assemble_empty_report(
    engine: Engine,
    rules_version: str,
    empty_issue: Issue,
    disabled_rules: Sequence[str] = (),
    forced_enabled_rules: Sequence[str] = (),
) -> CheckResult:
    return CheckResult(
        engine=engine,
        rules_version=rules_version,
        checked_at=checked_at(),
        summary=summarize(0, [empty_issue]),
        issues=(empty_issue,),
        advice=(EMPTY_ADVICE,),
        disabled_rules=tuple(disabled_rules),
        forced_enabled_rules=tuple(forced_enabled_rules),
    )
