"""
terminators.py

Heuristics for statements that end badly:
  - a full-width terminator (；) used instead of `;`
  - a terminator that is missing, either between two statements that were merged
    into one fragment or after the last statement of the script

A statement is reported for at most one of the two problems; full-width wins.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from sql_review.models import Statement
from sql_review.segmenter import (
    FULLWIDTH_SEMICOLON,
    HARD_STATEMENT_START_RE,
    STATEMENT_START_RE,
    split_by_line_start,
    strip_comments_and_strings,
)

DELIMITER_DIRECTIVE_RE = re.compile(r"^\s*DELIMITER\s+\S+", flags=re.IGNORECASE | re.MULTILINE)


@dataclass(frozen=True)
class TerminatorFinding:
    index: int
    statement: str


def _findings(statements: Iterable[Statement]) -> List[TerminatorFinding]:
    return [TerminatorFinding(st.index, st.text.strip()) for st in statements if st.text.strip()]


def detect_fullwidth_terminators(statements: List[Statement]) -> List[TerminatorFinding]:
    return _findings(st for st in statements if st.fullwidth_terminator)


def has_likely_merged_statements(statements: List[Statement]) -> bool:
    """
    True if any fragment starts two independent statements on separate lines:
    two "hard" starts (INSERT, UPDATE, COMMIT, …), or one hard start plus a
    SELECT/WITH. A fragment led by WITH and followed by SELECT is a CTE and
    does not count.
    """
    for st in statements:
        normalized = strip_comments_and_strings(st.text).strip()
        if not normalized:
            continue
        all_starts = len(STATEMENT_START_RE.findall(normalized))
        hard_starts = len(HARD_STATEMENT_START_RE.findall(normalized))
        if hard_starts >= 2:
            return True
        if hard_starts >= 1 and all_starts >= 2:
            return True
    return False


def line_start_resplit(
    script: str,
    statements: List[Statement],
    contains_routine: bool = False,
) -> Optional[List[Statement]]:
    """
    The line-start re-split of the script when its fragments look merged, else None.

    Scripts with a routine definition or a DELIMITER directive never qualify, and
    neither does a re-split that yields a single piece.
    """
    if contains_routine:
        return None
    normalized = strip_comments_and_strings(script).strip()
    if not normalized or DELIMITER_DIRECTIVE_RE.search(normalized):
        return None
    if not has_likely_merged_statements(statements):
        return None
    detailed = split_by_line_start(script)
    if len(detailed) <= 1:
        return None
    return detailed


def detect_missing_terminators(
    script: str,
    statements: List[Statement],
    contains_routine: bool = False,
) -> List[TerminatorFinding]:
    """
    Find SQL statements that look like they lost their terminator.

    Scripts with a routine definition or a DELIMITER directive are skipped.
    When fragments look merged, every unterminated piece of the line-start
    re-split is reported (indices then refer to that re-split). Otherwise only
    the last statement is reported, and only when the script (without comments
    and strings) does not end with `;` or `；`.
    """
    if contains_routine:
        return []

    normalized = strip_comments_and_strings(script).strip()
    if not normalized:
        return []
    if DELIMITER_DIRECTIVE_RE.search(normalized):
        return []

    if has_likely_merged_statements(statements):
        detailed = line_start_resplit(script, statements) or []
        return _findings(st for st in detailed if not st.terminated)

    if statements and not normalized.endswith((";", FULLWIDTH_SEMICOLON)):
        return _findings(statements[-1:])

    return []


def detect_terminator_problems(
    script: str,
    statements: List[Statement],
    contains_routine: bool = False,
) -> Tuple[List[TerminatorFinding], List[TerminatorFinding]]:
    """
    Returns (fullwidth, missing) findings numbered in one index space: the
    line-start re-split when fragments look merged, the segmented statements
    otherwise. Full-width statements are removed from the missing list.
    """
    detailed = line_start_resplit(script, statements, contains_routine)
    if detailed is not None:
        # re-split pieces keep their closing ；
        fullwidth = [
            TerminatorFinding(item.index, item.statement.rstrip(FULLWIDTH_SEMICOLON).rstrip())
            for item in detect_fullwidth_terminators(detailed)
        ]
        missing = _findings(st for st in detailed if not st.terminated)
    else:
        fullwidth = detect_fullwidth_terminators(statements)
        missing = detect_missing_terminators(script, statements, contains_routine)
    return fullwidth, exclude_findings(missing, fullwidth)


def detect_unterminated_operations(operations: List[Statement]) -> List[TerminatorFinding]:
    """
    Mongo variant: every unterminated operation, as long as there is more than one.
    """
    if len(operations) <= 1:
        return []
    return _findings(op for op in operations if not op.terminated)


def exclude_findings(
    missing: List[TerminatorFinding],
    excludes: List[TerminatorFinding],
) -> List[TerminatorFinding]:
    excluded = {item.index for item in excludes}
    return [item for item in missing if item.index not in excluded]


def _index_list(findings: List[TerminatorFinding]) -> str:
    return ", ".join(str(item.index) for item in findings)


def build_missing_message(findings: List[TerminatorFinding], subject: str = "SQL") -> str:
    if not findings:
        return f"Multiple {subject} statements appear to be missing a terminator (;)"
    if len(findings) == 1:
        return f"{subject} statement {findings[0].index} appears to be missing a terminator (;)"
    return f"{subject} statements {_index_list(findings)} appear to be missing a terminator (;)"


def build_fullwidth_message(findings: List[TerminatorFinding], subject: str = "SQL") -> str:
    if not findings:
        return "Full-width terminator (；) detected, use the ASCII semicolon (;) instead"
    if len(findings) == 1:
        return f"{subject} statement {findings[0].index} ends with a full-width terminator (；)"
    return f"{subject} statements {_index_list(findings)} end with a full-width terminator (；)"


def build_snippet(findings: List[TerminatorFinding]) -> str:
    return "\n".join(item.statement for item in findings if item.statement)
