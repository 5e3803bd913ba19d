"""
mysql_checks.py

MySQL rule table and evaluator.

Statement checks run on the upper-cased statement text, in table order. Script-level
findings come first: routine definitions (CREATE PROCEDURE/FUNCTION/TRIGGER/EVENT),
full-width and missing terminators, and an oversized script. The transaction
boundary warning is added after every statement has been seen.
"""

import logging
import re
from typing import List

from sql_review.catalog import MYSQL_CATALOG
from sql_review.evaluator import (
    Evaluation,
    IssueCollector,
    StatementCheck,
    TransactionFacts,
    make_issue,
    run_checks,
    terminator_issues,
    too_many_statements,
    transaction_issue,
)
from sql_review.models import Statement
from sql_review.segmenter import strip_comments_and_strings
from sql_review.terminators import detect_terminator_problems

logger = logging.getLogger(__name__)

# More statements than this triggers too_many_statements.
statement_limit = 60

_FLAGS = re.IGNORECASE | re.DOTALL

ROUTINE_RE = re.compile(
    r"\bCREATE\s+(?:DEFINER\s*=\s*[^\s]+\s+)?(?:PROCEDURE|FUNCTION|TRIGGER|EVENT)\b", flags=_FLAGS
)

UPDATE_RE = re.compile(r"^\s*UPDATE\s+.+?\s+SET\s+.+$", flags=_FLAGS)
DELETE_RE = re.compile(r"^\s*DELETE\s+FROM\s+.+$", flags=_FLAGS)
WHERE_RE = re.compile(r"\bWHERE\b", flags=_FLAGS)
SELECT_STAR_RE = re.compile(r"^\s*SELECT\s+\*\s+FROM\s+", flags=_FLAGS)
SELECT_RE = re.compile(r"^\s*SELECT\s+", flags=_FLAGS)
LIMIT_RE = re.compile(r"\s+LIMIT\s+\d+", flags=_FLAGS)
DROP_RE = re.compile(r"^\s*DROP\s+(TABLE|DATABASE|VIEW|INDEX)\b", flags=_FLAGS)
TRUNCATE_RE = re.compile(r"^\s*TRUNCATE\s+TABLE\b", flags=_FLAGS)
ALTER_DROP_COLUMN_RE = re.compile(r"^\s*ALTER\s+TABLE\s+.+\s+DROP\s+COLUMN\b", flags=_FLAGS)
INTO_OUTFILE_RE = re.compile(r"\bINTO\s+OUTFILE\b", flags=_FLAGS)
LIKE_LEADING_WILDCARD_RE = re.compile(r"LIKE\s+['\"]%[^'\"]*['\"]", flags=_FLAGS)
ORDER_BY_RAND_RE = re.compile(r"ORDER\s+BY\s+RAND\s*\(", flags=_FLAGS)
WHERE_ONE_EQ_ONE_RE = re.compile(r"\bWHERE\s+1\s*=\s*1\b", flags=_FLAGS)
INSERT_NO_COLUMNS_RE = re.compile(r"^\s*INSERT\s+INTO\s+[\w.]+\s+VALUES\s*\(", flags=_FLAGS)
CREATE_TABLE_RE = re.compile(r"^\s*CREATE\s+TABLE\s+", flags=_FLAGS)
CREATE_TABLE_IF_NOT_EXISTS_RE = re.compile(r"^\s*CREATE\s+TABLE\s+IF\s+NOT\s+EXISTS\s+", flags=_FLAGS)


def has_where(text: str) -> bool:
    # a WHERE inside a string literal does not count
    return bool(WHERE_RE.search(strip_comments_and_strings(text)))


def _update_without_where(text: str) -> bool:
    return bool(UPDATE_RE.match(text)) and not has_where(text)


def _delete_without_where(text: str) -> bool:
    return bool(DELETE_RE.match(text)) and not has_where(text)


def _select_without_limit(text: str) -> bool:
    return bool(SELECT_RE.match(text)) and not LIMIT_RE.search(text)


def _create_table_without_if_not_exists(text: str) -> bool:
    return bool(CREATE_TABLE_RE.match(text)) and not CREATE_TABLE_IF_NOT_EXISTS_RE.match(text)


CHECKS: List[StatementCheck] = [
    StatementCheck(
        "dangerous_drop",
        "High-risk DROP statement",
        "Avoid DROP in production; take a full backup and get approval before running it",
        lambda text: bool(DROP_RE.match(text)),
    ),
    StatementCheck(
        "dangerous_truncate",
        "TRUNCATE statement",
        "TRUNCATE is expensive to roll back; confirm the change window and the recovery plan",
        lambda text: bool(TRUNCATE_RE.match(text)),
    ),
    StatementCheck(
        "alter_drop_column",
        "ALTER TABLE ... DROP COLUMN",
        "Confirm upstream and downstream code is compatible and archive the column data first",
        lambda text: bool(ALTER_DROP_COLUMN_RE.match(text)),
    ),
    StatementCheck(
        "update_without_where",
        "UPDATE without a WHERE clause",
        "Add a precise WHERE condition to avoid updating the whole table",
        _update_without_where,
    ),
    StatementCheck(
        "delete_without_where",
        "DELETE without a WHERE clause",
        "Add a WHERE condition, or delete in batches and keep a rollback point",
        _delete_without_where,
    ),
    StatementCheck(
        "where_1_eq_1",
        "WHERE 1=1 found, the condition may be ineffective",
        "Check the dynamic SQL assembly so it cannot update or delete by mistake",
        lambda text: bool(WHERE_ONE_EQ_ONE_RE.search(text)),
    ),
    StatementCheck(
        "select_star",
        "SELECT * carries performance and compatibility risk",
        "List the columns explicitly to cut I/O and survive schema changes",
        lambda text: bool(SELECT_STAR_RE.match(text)),
    ),
    StatementCheck(
        "select_without_limit",
        "SELECT without LIMIT",
        "Online queries should add a LIMIT so large result sets do not slow the instance",
        _select_without_limit,
    ),
    StatementCheck(
        "like_leading_wildcard",
        "LIKE with a leading wildcard may defeat indexes",
        "Consider full-text search, an inverted index or a different matching strategy",
        lambda text: bool(LIKE_LEADING_WILDCARD_RE.search(text)),
    ),
    StatementCheck(
        "order_by_rand",
        "ORDER BY RAND() performs poorly on large tables",
        "Sample by random primary-key ranges or a pre-generated random pool instead",
        lambda text: bool(ORDER_BY_RAND_RE.search(text)),
    ),
    StatementCheck(
        "into_outfile",
        "INTO OUTFILE found, data may leave the database",
        "Confirm export compliance, audit records and least-privilege database accounts",
        lambda text: bool(INTO_OUTFILE_RE.search(text)),
    ),
    StatementCheck(
        "insert_without_column_list",
        "INSERT without an explicit column list",
        "Prefer INSERT INTO t(col1, col2, ...) VALUES(...) for maintainability",
        lambda text: bool(INSERT_NO_COLUMNS_RE.match(text)),
    ),
    StatementCheck(
        "create_table_without_if_not_exists",
        "CREATE TABLE without IF NOT EXISTS",
        "Add IF NOT EXISTS so the script can be replayed safely",
        _create_table_without_if_not_exists,
    ),
]


def contains_routine(script: str) -> bool:
    return bool(ROUTINE_RE.search(script))


def evaluate(script: str, statements: List[Statement]) -> Evaluation:
    catalog = MYSQL_CATALOG
    collector = IssueCollector()

    routine = contains_routine(script)
    if routine:
        collector.add(make_issue(
            catalog,
            "routine_definition_detected",
            0,
            "Stored procedure/function/trigger definition detected",
            "Parsed with DELIMITER syntax; review the writes and permission handling inside the routine body",
        ))

    fullwidth, missing = detect_terminator_problems(script, statements, routine)
    collector.extend(terminator_issues(catalog, fullwidth, missing, len(statements)))

    collector.add(too_many_statements(
        catalog,
        len(statements),
        statement_limit,
        "Split the change by business module and review it in batches to ease rollback",
    ))

    facts = TransactionFacts()
    for statement in statements:
        upper = statement.text.strip().upper()
        if not upper:
            continue
        facts.observe(upper)
        collector.extend(run_checks(CHECKS, catalog, statement, upper))

    collector.add(transaction_issue(catalog, facts, len(statements)))

    logger.debug(f"MySQL evaluation: {len(statements)} statement(s), {len(collector.issues)} issue(s)")
    return collector.finish(len(statements), contains_routine=routine)
