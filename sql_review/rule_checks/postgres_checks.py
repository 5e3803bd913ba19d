"""
postgres_checks.py

PostgreSQL rule table and evaluator. Same segmentation as MySQL (DELIMITER
directives included); adds ILIKE to the leading-wildcard check and flags
CREATE INDEX without CONCURRENTLY. Routine definitions are not detected here.
"""

import logging
import re
from typing import List

from sql_review.catalog import POSTGRES_CATALOG
from sql_review.evaluator import (
    Evaluation,
    IssueCollector,
    StatementCheck,
    TransactionFacts,
    run_checks,
    terminator_issues,
    too_many_statements,
    transaction_issue,
)
from sql_review.models import Statement
from sql_review.rule_checks.mysql_checks import (
    DELETE_RE,
    DROP_RE,
    LIMIT_RE,
    SELECT_RE,
    SELECT_STAR_RE,
    TRUNCATE_RE,
    UPDATE_RE,
    has_where,
)
from sql_review.terminators import detect_terminator_problems

logger = logging.getLogger(__name__)

statement_limit = 80

LIKE_LEADING_WILDCARD_RE = re.compile(r"(LIKE|ILIKE)\s+['\"]%[^'\"]*['\"]", flags=re.IGNORECASE | re.DOTALL)
CREATE_INDEX_RE = re.compile(r"^\s*CREATE\s+(UNIQUE\s+)?INDEX\b", flags=re.IGNORECASE)
CONCURRENTLY_RE = re.compile(r"\bCONCURRENTLY\b", flags=re.IGNORECASE)


CHECKS: List[StatementCheck] = [
    StatementCheck(
        "pg_dangerous_drop",
        "High-risk DROP statement",
        "Avoid DROP in production; back up and get approval before running it",
        lambda text: bool(DROP_RE.match(text)),
    ),
    StatementCheck(
        "pg_dangerous_truncate",
        "TRUNCATE statement",
        "TRUNCATE is high risk; confirm the recovery plan",
        lambda text: bool(TRUNCATE_RE.match(text)),
    ),
    StatementCheck(
        "pg_update_without_where",
        "UPDATE without a WHERE clause",
        "Add a precise WHERE condition to avoid updating the whole table",
        lambda text: bool(UPDATE_RE.match(text)) and not has_where(text),
    ),
    StatementCheck(
        "pg_delete_without_where",
        "DELETE without a WHERE clause",
        "Add a WHERE condition, or delete in batches",
        lambda text: bool(DELETE_RE.match(text)) and not has_where(text),
    ),
    StatementCheck(
        "pg_select_star",
        "SELECT * carries performance and compatibility risk",
        "List the columns explicitly",
        lambda text: bool(SELECT_STAR_RE.match(text)),
    ),
    StatementCheck(
        "pg_select_without_limit",
        "SELECT without LIMIT",
        "Online queries should add a LIMIT",
        lambda text: bool(SELECT_RE.match(text)) and not LIMIT_RE.search(text),
    ),
    StatementCheck(
        "pg_like_leading_wildcard",
        "LIKE/ILIKE with a leading wildcard may defeat indexes",
        "Consider full-text search or a different matching strategy",
        lambda text: bool(LIKE_LEADING_WILDCARD_RE.search(text)),
    ),
    StatementCheck(
        "pg_create_index_without_concurrently",
        "CREATE INDEX without CONCURRENTLY",
        "Use CREATE INDEX CONCURRENTLY for online changes to limit locking",
        lambda text: bool(CREATE_INDEX_RE.match(text)) and not CONCURRENTLY_RE.search(text),
    ),
]


def evaluate(script: str, statements: List[Statement]) -> Evaluation:
    catalog = POSTGRES_CATALOG
    collector = IssueCollector()

    fullwidth, missing = detect_terminator_problems(script, statements)
    collector.extend(terminator_issues(catalog, fullwidth, missing, len(statements)))

    collector.add(too_many_statements(
        catalog,
        len(statements),
        statement_limit,
        "Review and run the change in batches to reduce release risk",
    ))

    facts = TransactionFacts()
    for statement in statements:
        upper = statement.text.strip().upper()
        if not upper:
            continue
        facts.observe(upper)
        collector.extend(run_checks(CHECKS, catalog, statement, upper))

    collector.add(transaction_issue(catalog, facts, len(statements)))

    logger.debug(f"PostgreSQL evaluation: {len(statements)} statement(s), {len(collector.issues)} issue(s)")
    return collector.finish(len(statements))
