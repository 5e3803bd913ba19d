# === sql_review_agent/sql_review/catalog.py ===

from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from sql_review.models import Engine, RuleDefinition, Severity

# Rules a caller can never switch off.
ALWAYS_ENABLED_RULES: FrozenSet[str] = frozenset({
    "empty_input",
    "missing_statement_terminator",
    "mongo_missing_statement_terminator",
    "fullwidth_statement_terminator",
})

MYSQL_RULES_VERSION = "v1.3"
POSTGRES_RULES_VERSION = "pg-v0.1"
MONGO_RULES_VERSION = "mongo-v0.1"


@dataclass(frozen=True)
class RuleCatalog:
    """
    Versioned, read-only rule table for one engine.
    """
    engine: Engine
    version: str
    rules: Tuple[RuleDefinition, ...]

    def get(self, code: str) -> Optional[RuleDefinition]:
        for rule in self.rules:
            if rule.code == code:
                return rule
        return None

    def severity_of(self, code: str) -> Severity:
        rule = self.get(code)
        if rule is None:
            raise KeyError(f"Rule '{code}' is not part of the {self.engine.value} catalog")
        return rule.severity

    def codes(self) -> Tuple[str, ...]:
        return tuple(rule.code for rule in self.rules)


def _rule(code: str, severity: Severity, category: str, description: str) -> RuleDefinition:
    return RuleDefinition(code=code, severity=severity, category=category, description=description)


ERROR, WARNING, INFO = Severity.ERROR, Severity.WARNING, Severity.INFO

MYSQL_CATALOG = RuleCatalog(
    engine=Engine.MYSQL,
    version=MYSQL_RULES_VERSION,
    rules=(
        _rule("empty_input", ERROR, "input", "Script is empty"),
        _rule("too_many_statements", WARNING, "change-size", "Too many statements, split the change into batches"),
        _rule("missing_statement_terminator", ERROR, "syntax", "Statement appears to be missing its terminator"),
        _rule("fullwidth_statement_terminator", ERROR, "syntax", "Full-width terminator (；) detected"),
        _rule("routine_definition_detected", INFO, "syntax",
              "Stored procedure/function/trigger definition parsed with DELIMITER syntax"),
        _rule("dangerous_drop", ERROR, "destructive-ddl", "DROP of a table, database, view or index"),
        _rule("dangerous_truncate", ERROR, "destructive-ddl", "TRUNCATE TABLE wipes every row"),
        _rule("alter_drop_column", WARNING, "ddl-compatibility", "ALTER TABLE … DROP COLUMN is a breaking change"),
        _rule("update_without_where", ERROR, "dml-safety", "UPDATE without WHERE"),
        _rule("delete_without_where", ERROR, "dml-safety", "DELETE without WHERE"),
        _rule("where_1_eq_1", WARNING, "condition-validity", "WHERE 1=1 may hide a missing condition"),
        _rule("select_star", WARNING, "query-hygiene", "SELECT * hurts maintainability and performance"),
        _rule("select_without_limit", INFO, "query-hygiene", "SELECT without LIMIT"),
        _rule("like_leading_wildcard", WARNING, "query-performance", "LIKE with a leading % defeats indexes"),
        _rule("order_by_rand", WARNING, "query-performance", "ORDER BY RAND() is expensive on large tables"),
        _rule("into_outfile", ERROR, "data-security", "INTO OUTFILE can exfiltrate data"),
        _rule("insert_without_column_list", INFO, "maintainability", "INSERT without an explicit column list"),
        _rule("create_table_without_if_not_exists", INFO, "idempotency", "CREATE TABLE without IF NOT EXISTS"),
        _rule("risky_writes_without_transaction", WARNING, "transaction-consistency",
              "Several write statements without an explicit transaction"),
    ),
)

POSTGRES_CATALOG = RuleCatalog(
    engine=Engine.POSTGRESQL,
    version=POSTGRES_RULES_VERSION,
    rules=(
        _rule("empty_input", ERROR, "input", "Script is empty"),
        _rule("too_many_statements", WARNING, "change-size", "Too many statements, split the change into batches"),
        _rule("missing_statement_terminator", ERROR, "syntax", "Statement appears to be missing its terminator"),
        _rule("fullwidth_statement_terminator", ERROR, "syntax", "Full-width terminator (；) detected"),
        _rule("pg_dangerous_drop", ERROR, "destructive-ddl", "DROP of a table, database, view or index"),
        _rule("pg_dangerous_truncate", ERROR, "destructive-ddl", "TRUNCATE TABLE wipes every row"),
        _rule("pg_update_without_where", ERROR, "dml-safety", "UPDATE without WHERE"),
        _rule("pg_delete_without_where", ERROR, "dml-safety", "DELETE without WHERE"),
        _rule("pg_select_star", WARNING, "query-hygiene", "SELECT * hurts maintainability and performance"),
        _rule("pg_select_without_limit", INFO, "query-hygiene", "SELECT without LIMIT"),
        _rule("pg_like_leading_wildcard", WARNING, "query-performance", "LIKE/ILIKE with a leading % defeats indexes"),
        _rule("pg_create_index_without_concurrently", WARNING, "ddl-concurrency",
              "CREATE INDEX without CONCURRENTLY blocks writes"),
        _rule("risky_writes_without_transaction", WARNING, "transaction-consistency",
              "Several write statements without an explicit transaction"),
    ),
)

MONGO_CATALOG = RuleCatalog(
    engine=Engine.MONGODB,
    version=MONGO_RULES_VERSION,
    rules=(
        _rule("empty_input", ERROR, "input", "Script is empty"),
        _rule("mongo_update_many_without_filter", ERROR, "write-safety", "updateMany with an empty filter"),
        _rule("mongo_delete_many_without_filter", ERROR, "write-safety", "deleteMany with an empty filter"),
        _rule("mongo_missing_statement_terminator", ERROR, "syntax",
              "Mongo operation appears to be missing its terminator ;"),
        _rule("fullwidth_statement_terminator", ERROR, "syntax", "Full-width terminator (；) detected"),
        _rule("mongo_find_without_limit", INFO, "query-hygiene", "find() without limit()"),
        _rule("mongo_where_operator", WARNING, "query-security", "$where runs JavaScript on the server"),
        _rule("mongo_aggregate_out_merge", WARNING, "data-flow", "$out/$merge in an aggregation overwrites a collection"),
    ),
)

CATALOGS: Mapping[Engine, RuleCatalog] = MappingProxyType({
    Engine.MYSQL: MYSQL_CATALOG,
    Engine.POSTGRESQL: POSTGRES_CATALOG,
    Engine.MONGODB: MONGO_CATALOG,
})
