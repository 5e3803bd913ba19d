"""
mongo_checks.py

MongoDB rule table and evaluator for call-shaped shell scripts
(`db.users.find({...}).limit(10);`).

Checks match on the compact form of an operation: lower-cased with every
whitespace character removed, so `updateMany( {} ,` and `updatemany({},` look alike.
"""

import logging
from typing import List

from sql_review.catalog import MONGO_CATALOG
from sql_review.evaluator import (
    Evaluation,
    IssueCollector,
    StatementCheck,
    run_checks,
    terminator_issues,
)
from sql_review.models import Statement
from sql_review.terminators import (
    detect_fullwidth_terminators,
    detect_unterminated_operations,
    exclude_findings,
)

logger = logging.getLogger(__name__)


def compact(text: str) -> str:
    return "".join(text.lower().split())


CHECKS: List[StatementCheck] = [
    StatementCheck(
        "mongo_update_many_without_filter",
        "updateMany with an empty filter may update every document",
        "Add an explicit filter",
        lambda text: ".updatemany({}," in text,
    ),
    StatementCheck(
        "mongo_delete_many_without_filter",
        "deleteMany with an empty filter may delete every document",
        "Add an explicit filter",
        lambda text: ".deletemany({})" in text,
    ),
    StatementCheck(
        "mongo_find_without_limit",
        "find() without limit()",
        "Online queries should add limit() to avoid huge result sets",
        lambda text: ".find(" in text and ".limit(" not in text,
    ),
    StatementCheck(
        "mongo_where_operator",
        "$where found, it brings execution and security risk",
        "Prefer structured query conditions over JavaScript expressions",
        lambda text: "$where" in text,
    ),
    StatementCheck(
        "mongo_aggregate_out_merge",
        "$out/$merge in an aggregation may overwrite data",
        "Confirm the target collection, the idempotency strategy and the rollback plan",
        lambda text: ".aggregate(" in text and ("$out" in text or "$merge" in text),
    ),
]


def evaluate(script: str, operations: List[Statement]) -> Evaluation:
    catalog = MONGO_CATALOG
    collector = IssueCollector()

    fullwidth = detect_fullwidth_terminators(operations)
    missing = exclude_findings(detect_unterminated_operations(operations), fullwidth)
    collector.extend(terminator_issues(
        catalog,
        fullwidth,
        missing,
        len(operations),
        missing_code="mongo_missing_statement_terminator",
        missing_suggestion="Terminate every Mongo operation with ; so the script is not split incorrectly",
        subject="Mongo",
    ))

    for operation in operations:
        text = compact(operation.text)
        if not text:
            continue
        collector.extend(run_checks(CHECKS, catalog, operation, text))

    logger.debug(f"MongoDB evaluation: {len(operations)} operation(s), {len(collector.issues)} issue(s)")
    return collector.finish(len(operations))
