"""
evaluator.py

Shared machinery for the per-engine rule evaluators in sql_review/rule_checks/.

Every engine module owns an ordered table of StatementCheck entries. Each entry is
an independent, named predicate over one statement's normalized text; the engine's
evaluate() runs the table over every statement and adds the few script-level
findings (terminators, statement count, transaction boundaries) with the helpers
below. Severities always come from the engine's catalog.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from sql_review.catalog import ALWAYS_ENABLED_RULES, RuleCatalog
from sql_review.models import Issue, Statement
from sql_review.terminators import (
    TerminatorFinding,
    build_fullwidth_message,
    build_missing_message,
    build_snippet,
)

logger = logging.getLogger(__name__)

RISKY_WRITE_RE = re.compile(r"^\s*(UPDATE|DELETE|INSERT|ALTER|DROP|TRUNCATE)\b", flags=re.IGNORECASE)
BEGIN_TX_RE = re.compile(r"^\s*(BEGIN|START\s+TRANSACTION)\b", flags=re.IGNORECASE)
COMMIT_TX_RE = re.compile(r"^\s*COMMIT\b", flags=re.IGNORECASE)

FULLWIDTH_SUGGESTION = "Replace the full-width terminator (；) with an ASCII semicolon (;) to avoid ambiguous parsing"


@dataclass(frozen=True)
class StatementCheck:
    """
    One named rule predicate. `matches` receives the statement text already
    normalized by the owning engine (upper-cased SQL, compacted Mongo calls).
    """
    code: str
    message: str
    suggestion: str
    matches: Callable[[str], bool]


@dataclass(frozen=True)
class Evaluation:
    issues: Tuple[Issue, ...]
    statement_count: int
    contains_routine: bool = False


@dataclass
class TransactionFacts:
    """Script-level aggregates behind risky_writes_without_transaction."""
    risky_write: bool = False
    has_begin: bool = False
    has_commit: bool = False

    def observe(self, text: str):
        if RISKY_WRITE_RE.match(text):
            self.risky_write = True
        if BEGIN_TX_RE.match(text):
            self.has_begin = True
        if COMMIT_TX_RE.match(text):
            self.has_commit = True

    def needs_warning(self, statement_count: int) -> bool:
        return self.risky_write and statement_count > 1 and not (self.has_begin and self.has_commit)


def make_issue(
    catalog: RuleCatalog,
    code: str,
    statement_index: int,
    message: str,
    suggestion: str,
    statement: str = "",
) -> Issue:
    return Issue(
        statement_index=statement_index,
        severity=catalog.severity_of(code),
        rule_code=code,
        message=message,
        suggestion=suggestion,
        statement=statement,
    )


def run_checks(
    checks: Sequence[StatementCheck],
    catalog: RuleCatalog,
    statement: Statement,
    normalized: str,
) -> List[Issue]:
    issues: List[Issue] = []
    for check in checks:
        if check.matches(normalized):
            issues.append(make_issue(
                catalog, check.code, statement.index, check.message, check.suggestion, statement.text.strip()
            ))
    return issues


def _clamp_index(index: int, statement_count: int) -> int:
    return max(1, min(index, statement_count))


def terminator_issues(
    catalog: RuleCatalog,
    fullwidth: List[TerminatorFinding],
    missing: List[TerminatorFinding],
    statement_count: int,
    missing_code: str = "missing_statement_terminator",
    missing_suggestion: str = "Terminate every statement explicitly so review and execution split the script correctly",
    subject: str = "SQL",
) -> List[Issue]:
    """
    At most one issue per terminator problem. Each issue points at its first
    finding and carries every offending statement in its snippet.
    """
    issues: List[Issue] = []
    fullwidth_index = None
    if fullwidth:
        # line-start re-splits can outnumber the segmented statements
        fullwidth_index = _clamp_index(fullwidth[0].index, statement_count)
        issues.append(make_issue(
            catalog,
            "fullwidth_statement_terminator",
            fullwidth_index,
            build_fullwidth_message(fullwidth, subject),
            FULLWIDTH_SUGGESTION,
            build_snippet(fullwidth),
        ))
    if missing:
        index = _clamp_index(missing[0].index, statement_count)
        if index == fullwidth_index:
            # both problems landed on one segmented statement; the message keeps the real numbers
            index = 0
        issues.append(make_issue(
            catalog,
            missing_code,
            index,
            build_missing_message(missing, subject),
            missing_suggestion,
            build_snippet(missing),
        ))
    return issues


def too_many_statements(
    catalog: RuleCatalog,
    statement_count: int,
    limit: int,
    suggestion: str,
) -> Optional[Issue]:
    if statement_count <= limit:
        return None
    return make_issue(
        catalog,
        "too_many_statements",
        0,
        f"Script contains many statements ({statement_count})",
        suggestion,
    )


def transaction_issue(catalog: RuleCatalog, facts: TransactionFacts, statement_count: int) -> Optional[Issue]:
    if not facts.needs_warning(statement_count):
        return None
    return make_issue(
        catalog,
        "risky_writes_without_transaction",
        0,
        "Several write statements found without a complete transaction boundary",
        "Wrap the batch in BEGIN/COMMIT so the change applies consistently",
    )


def normalize_rule_codes(codes: Union[None, str, Iterable[str]]) -> List[str]:
    """A plain string is read as a comma-separated list of codes."""
    if not codes:
        return []
    if isinstance(codes, str):
        codes = codes.split(",")
    cleaned = {str(code).strip() for code in codes}
    return sorted(code for code in cleaned if code)


def enforce_always_enabled(disabled: Optional[Iterable[str]]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """
    Split a caller's disabled-rule codes into (effective_disabled, forced_enabled).

    Codes from ALWAYS_ENABLED_RULES are removed from the disabled set and returned
    separately so the caller can be told they were switched back on.
    """
    requested = normalize_rule_codes(disabled)
    effective = tuple(code for code in requested if code not in ALWAYS_ENABLED_RULES)
    forced = tuple(code for code in requested if code in ALWAYS_ENABLED_RULES)
    return effective, forced


def filter_disabled(issues: Iterable[Issue], disabled: Iterable[str]) -> List[Issue]:
    disabled_set = set(disabled) - ALWAYS_ENABLED_RULES
    kept = [issue for issue in issues if issue.rule_code not in disabled_set]
    logger.debug(f"Disabled-rule filter kept {len(kept)} issue(s)")
    return kept


@dataclass
class IssueCollector:
    """Accumulates issues for one evaluation, skipping the None a helper returns."""
    issues: List[Issue] = field(default_factory=list)

    def add(self, issue: Optional[Issue]):
        if issue is not None:
            self.issues.append(issue)

    def extend(self, issues: Iterable[Issue]):
        self.issues.extend(issues)

    def finish(self, statement_count: int, contains_routine: bool = False) -> Evaluation:
        return Evaluation(
            issues=tuple(self.issues),
            statement_count=statement_count,
            contains_routine=contains_routine,
        )
