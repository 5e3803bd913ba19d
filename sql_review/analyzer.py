"""
analyzer.py

Public entry points of the review pipeline:

  analyze(engine, script, disabled_rule_codes) -> CheckResult
  rules_for(engine, disabled)                  -> RuleListing

analyze() never raises for script content and performs no I/O; it segments the
script with the engine's splitter, runs the engine's evaluator, drops disabled
rules (always-enabled rules excepted), then sorts, counts and advises.
"""

import logging
from typing import Iterable, Optional, Union

from sql_review.aggregator import assemble_empty_report, assemble_report
from sql_review.catalog import ALWAYS_ENABLED_RULES
from sql_review.engines import profile_for
from sql_review.evaluator import enforce_always_enabled, filter_disabled, make_issue
from sql_review.models import CheckResult, Engine, RuleListing

logger = logging.getLogger(__name__)


def _empty_input_issue(profile):
    if profile.engine is Engine.MONGODB:
        suggestion = "Upload a script or paste the Mongo operations before checking"
    else:
        suggestion = "Upload a SQL file or paste the statements before checking"
    return make_issue(profile.catalog, "empty_input", 0, "Script is empty", suggestion)


def analyze(
    engine_selector: Optional[Union[str, Engine]],
    script: Optional[str],
    disabled_rule_codes: Optional[Iterable[str]] = None,
) -> CheckResult:
    profile = profile_for(engine_selector)
    disabled, forced = enforce_always_enabled(disabled_rule_codes)
    if forced:
        logger.warning(f"Always-enabled rule(s) cannot be disabled, re-enabled: {', '.join(forced)}")

    script = script or ""
    if not script.strip():
        logger.debug(f"Empty {profile.engine.value} script, skipping segmentation")
        return assemble_empty_report(
            profile.engine,
            profile.catalog.version,
            _empty_input_issue(profile),
            disabled,
            forced,
        )

    statements = profile.segment(script)
    logger.debug(f"Segmented {profile.engine.value} script into {len(statements)} statement(s)")

    evaluation = profile.evaluate(script, statements)
    issues = filter_disabled(evaluation.issues, disabled)

    return assemble_report(
        profile.engine,
        profile.catalog.version,
        len(statements),
        issues,
        disabled,
        forced,
        contains_routine=evaluation.contains_routine,
    )


def rules_for(
    engine_selector: Optional[Union[str, Engine]],
    disabled: Optional[Iterable[str]] = None,
) -> RuleListing:
    profile = profile_for(engine_selector)
    effective, _ = enforce_always_enabled(disabled)
    catalog_codes = set(profile.catalog.codes())
    return RuleListing(
        engine=profile.engine,
        rules_version=profile.catalog.version,
        rules=profile.catalog.rules,
        disabled_rules=tuple(code for code in effective if code in catalog_codes),
        always_enabled=tuple(sorted(ALWAYS_ENABLED_RULES & catalog_codes)),
    )
