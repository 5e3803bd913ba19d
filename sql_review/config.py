# === sql_review_agent/sql_review/config.py ===

import json
import os
import yaml
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from sql_review.models import Engine, normalize_engine

REPORT_FORMATS = ("yaml", "json", "md")
FAIL_ON_LEVELS = ("none", "error", "warning")
DEFAULT_OUT_DIR = "sql_review_output"
DEFAULT_DB_PATH = os.path.join("data", "sql_review.db")
DB_PATH_ENV = "SQL_REVIEW_DB_PATH"


class ConfigError(ValueError):
    """Raised for configuration values that cannot be used."""


@dataclass(frozen=True)
class ReviewSettings:
    engine: Engine = Engine.MYSQL
    disabled_rules: Tuple[str, ...] = ()
    report_format: str = "yaml"
    out_dir: str = DEFAULT_OUT_DIR
    history_enabled: bool = False
    db_path: str = DEFAULT_DB_PATH
    fail_on: str = "none"


def load_yaml_file(file_path: str):
    """
    Reads the review settings file (engine, disabled_rules, report, history,
    fail_on sections). Tab indentation is tolerated. An unreadable or malformed
    file is logged and yields None, which load_settings treats as "no settings".
    """
    logger = logging.getLogger(__name__)
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            raw_text = f.read()
    except OSError as e:
        logger.warning(f"Could not open '{file_path}': {e}")
        return None

    if "\t" in raw_text:
        logger.debug(f"Replacing tabs with spaces in '{file_path}'")
        raw_text = raw_text.replace("\t", "  ")

    try:
        return yaml.safe_load(raw_text)
    except yaml.YAMLError as ye:
        logger.warning(f"Could not parse YAML '{file_path}': {ye}")
        return None


def parse_disabled_rules(raw: Union[None, str, Iterable[Any]]) -> Tuple[str, ...]:
    """
    Accepts a list of codes, a JSON array string ('["a","b"]') or a comma-separated
    string ("a, b"). Blank entries are dropped and duplicates removed, order kept.
    """
    if raw is None:
        return ()
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return ()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except ValueError as e:
                raise ConfigError(f"Invalid JSON array of disabled rules: {e}")
            if not isinstance(items, list):
                raise ConfigError("Disabled rules JSON must be an array of strings")
        else:
            items = text.split(",")
    elif isinstance(raw, (list, tuple, set, frozenset)):
        items = list(raw)
    else:
        raise ConfigError(f"disabled_rules must be a list or a string, got {type(raw).__name__}")

    codes = []
    for item in items:
        if not isinstance(item, str):
            raise ConfigError(f"Disabled rule codes must be strings, got {item!r}")
        code = item.strip()
        if code and code not in codes:
            codes.append(code)
    return tuple(codes)


def _check_choice(value: Any, choices: Tuple[str, ...], key: str) -> str:
    text = str(value).strip().lower()
    if text not in choices:
        raise ConfigError(f"{key} must be one of {', '.join(choices)}, got {value!r}")
    return text


def settings_from_dict(data: Optional[Dict[str, Any]]) -> ReviewSettings:
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    engine = data.get("engine", Engine.MYSQL.value)
    if engine is not None and not isinstance(engine, str):
        raise ConfigError(f"engine must be a string, got {type(engine).__name__}")

    report = data.get("report") or {}
    history = data.get("history") or {}
    if not isinstance(report, dict) or not isinstance(history, dict):
        raise ConfigError("'report' and 'history' must be mappings")

    # yaml reads `none` as a string but a bare `null` as None
    fail_on = data.get("fail_on") or "none"

    db_path = os.environ.get(DB_PATH_ENV) or history.get("db_path") or DEFAULT_DB_PATH

    return ReviewSettings(
        engine=normalize_engine(engine),
        disabled_rules=parse_disabled_rules(data.get("disabled_rules")),
        report_format=_check_choice(report.get("format", "yaml"), REPORT_FORMATS, "report.format"),
        out_dir=str(report.get("out_dir") or DEFAULT_OUT_DIR),
        history_enabled=bool(history.get("enabled", False)),
        db_path=str(db_path),
        fail_on=_check_choice(fail_on, FAIL_ON_LEVELS, "fail_on"),
    )


def load_settings(config_path: Optional[str] = None) -> ReviewSettings:
    """
    Build ReviewSettings from an optional YAML file. A file that cannot be read
    or parsed is logged and the defaults are used instead.
    """
    logger = logging.getLogger(__name__)
    if not config_path:
        return settings_from_dict(None)
    data = load_yaml_file(config_path)
    if data is None:
        logger.warning(f"Using default settings, '{config_path}' gave no configuration")
    return settings_from_dict(data)


def override_settings(settings: ReviewSettings, **overrides) -> ReviewSettings:
    """
    Apply command-line overrides; None values leave the file setting in place.
    """
    changes = {key: value for key, value in overrides.items() if value is not None}
    if "engine" in changes:
        changes["engine"] = normalize_engine(changes["engine"])
    if "disabled_rules" in changes:
        changes["disabled_rules"] = parse_disabled_rules(changes["disabled_rules"])
    if "report_format" in changes:
        changes["report_format"] = _check_choice(changes["report_format"], REPORT_FORMATS, "format")
    if "fail_on" in changes:
        changes["fail_on"] = _check_choice(changes["fail_on"], FAIL_ON_LEVELS, "fail_on")
    return replace(settings, **changes)
