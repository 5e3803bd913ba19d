"""
engines.py

Closed engine dispatch table. Each Engine maps to exactly one profile holding its
catalog, its segmenter and its evaluator; unknown selectors resolve to MySQL
through normalize_engine.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Union

from sql_review.catalog import CATALOGS, RuleCatalog
from sql_review.evaluator import Evaluation
from sql_review.models import Engine, Statement, normalize_engine
from sql_review.rule_checks import mongo_checks, mysql_checks, postgres_checks
from sql_review.segmenter import split_mongo_operations, split_sql_statements


@dataclass(frozen=True)
class EngineProfile:
    engine: Engine
    catalog: RuleCatalog
    segment: Callable[[str], List[Statement]]
    evaluate: Callable[[str, List[Statement]], Evaluation]


PROFILES: Mapping[Engine, EngineProfile] = MappingProxyType({
    Engine.MYSQL: EngineProfile(
        engine=Engine.MYSQL,
        catalog=CATALOGS[Engine.MYSQL],
        segment=split_sql_statements,
        evaluate=mysql_checks.evaluate,
    ),
    Engine.POSTGRESQL: EngineProfile(
        engine=Engine.POSTGRESQL,
        catalog=CATALOGS[Engine.POSTGRESQL],
        segment=split_sql_statements,
        evaluate=postgres_checks.evaluate,
    ),
    Engine.MONGODB: EngineProfile(
        engine=Engine.MONGODB,
        catalog=CATALOGS[Engine.MONGODB],
        segment=split_mongo_operations,
        evaluate=mongo_checks.evaluate,
    ),
})


def profile_for(selector: Optional[Union[str, Engine]]) -> EngineProfile:
    return PROFILES[normalize_engine(selector)]
