# === sql_review_agent/sql_review/models.py ===

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Engine(str, Enum):
    """
    Target database dialect. Selects the rule catalog, the segmenter and the evaluator.
    """
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    MONGODB = "mongodb"


ENGINE_ALIASES: Dict[str, Engine] = {
    "pg": Engine.POSTGRESQL,
    "postgres": Engine.POSTGRESQL,
    "postgresql": Engine.POSTGRESQL,
    "mongo": Engine.MONGODB,
    "mongodb": Engine.MONGODB,
    "mysql": Engine.MYSQL,
}


def normalize_engine(raw: Optional[str]) -> Engine:
    """
    Map a free-form engine selector ("pg", " MongoDB ", …) onto an Engine.
    Unknown or empty selectors fall back to MySQL.
    """
    if isinstance(raw, Engine):
        return raw
    key = (raw or "").strip().lower()
    return ENGINE_ALIASES.get(key, Engine.MYSQL)


def supported_engines() -> List[Engine]:
    return [Engine.MYSQL, Engine.POSTGRESQL, Engine.MONGODB]


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def weight(self) -> int:
        # error > warning > info when ordering issues of the same statement
        return {"error": 3, "warning": 2}.get(self.value, 1)


@dataclass(frozen=True)
class Statement:
    """
    One segmented fragment of a script. `index` is 1-based.
    """
    index: int
    text: str
    terminated: bool = False
    fullwidth_terminator: bool = False


@dataclass(frozen=True)
class RuleDefinition:
    code: str
    severity: Severity
    category: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "category": self.category,
            "description": self.description,
        }


@dataclass(frozen=True)
class Issue:
    """
    A single finding. statement_index 0 means the finding is about the whole script.
    """
    statement_index: int
    severity: Severity
    rule_code: str
    message: str
    suggestion: str
    statement: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statementIndex": self.statement_index,
            "severity": self.severity.value,
            "ruleCode": self.rule_code,
            "message": self.message,
            "suggestion": self.suggestion,
            "statement": self.statement,
        }


@dataclass(frozen=True)
class Summary:
    statement_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "statementCount": self.statement_count,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "infoCount": self.info_count,
        }


@dataclass(frozen=True)
class CheckResult:
    """
    The report produced by one analysis call. Persisting it is up to the caller.
    """
    engine: Engine
    rules_version: str
    checked_at: str
    summary: Summary
    issues: Tuple[Issue, ...] = ()
    advice: Tuple[str, ...] = ()
    disabled_rules: Tuple[str, ...] = ()
    forced_enabled_rules: Tuple[str, ...] = ()

    def issues_for(self, rule_code: str) -> List[Issue]:
        return [issue for issue in self.issues if issue.rule_code == rule_code]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine": self.engine.value,
            "rulesVersion": self.rules_version,
            "checkedAt": self.checked_at,
            "summary": self.summary.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
            "advice": list(self.advice),
            "disabledRules": list(self.disabled_rules),
            "forcedEnabledRules": list(self.forced_enabled_rules),
        }


@dataclass(frozen=True)
class RuleListing:
    """
    Catalog view for one engine, with the enabled/disabled state of every rule.
    """
    engine: Engine
    rules_version: str
    rules: Tuple[RuleDefinition, ...]
    disabled_rules: Tuple[str, ...] = ()
    always_enabled: Tuple[str, ...] = ()
    engines: Tuple[Engine, ...] = field(default_factory=lambda: tuple(supported_engines()))

    def to_dict(self) -> Dict[str, Any]:
        rules = []
        for rule in self.rules:
            item = rule.to_dict()
            item["enabled"] = rule.code not in self.disabled_rules
            item["alwaysEnabled"] = rule.code in self.always_enabled
            rules.append(item)
        return {
            "engine": self.engine.value,
            "engines": [engine.value for engine in self.engines],
            "rulesVersion": self.rules_version,
            "rules": rules,
        }
