import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from cli import cli
from sql_review.config import DB_PATH_ENV


@pytest.fixture
def runner(tmp_path: Path, monkeypatch):
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "history.db"))
    return CliRunner()


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_check_file_writes_report(runner, tmp_path: Path):
    script = _write(tmp_path / "cleanup.sql", "UPDATE users SET status='off';\nDELETE FROM orders;")
    out = tmp_path / "out"
    result = runner.invoke(cli, ["check", str(script), "--out-dir", str(out)])
    assert result.exit_code == 0, result.output
    assert "update_without_where" in result.output
    data = yaml.safe_load((out / "cleanup.sql_review.yaml").read_text(encoding="utf-8"))
    assert data["engine"] == "mysql"
    assert data["summary"]["errorCount"] >= 2


def test_fail_on_error_sets_exit_status(runner, tmp_path: Path):
    script = _write(tmp_path / "drop.sql", "DROP TABLE users;")
    result = runner.invoke(cli, ["check", str(script), "-o", str(tmp_path / "out"), "--fail-on", "error"])
    assert result.exit_code == 1

    clean = _write(tmp_path / "clean.sql", "SELECT id FROM users LIMIT 1;")
    result = runner.invoke(cli, ["check", str(clean), "-o", str(tmp_path / "out"), "--fail-on", "warning"])
    assert result.exit_code == 0


def test_check_stdin_with_engine_alias(runner, tmp_path: Path):
    out = tmp_path / "out"
    result = runner.invoke(
        cli,
        ["check", "-", "--engine", "pg", "--out-dir", str(out), "--format", "json"],
        input="SELECT * FROM users WHERE name ILIKE '%tom%'",
    )
    assert result.exit_code == 0, result.output
    data = json.loads((out / "stdin.sql_review.json").read_text(encoding="utf-8"))
    assert data["engine"] == "postgresql"
    assert "missing_statement_terminator" in [issue["ruleCode"] for issue in data["issues"]]


def test_check_directory_infers_mongo_from_extension(runner, tmp_path: Path):
    scripts = tmp_path / "scripts"
    _write(scripts / "a.sql", "SELECT 1;")
    _write(scripts / "ops" / "b.js", "db.users.deleteMany({});")
    out = tmp_path / "out"
    result = runner.invoke(cli, ["check", str(scripts), "--out-dir", str(out)])
    assert result.exit_code == 0, result.output
    mongo = yaml.safe_load((out / "ops__b.sql_review.yaml").read_text(encoding="utf-8"))
    assert mongo["engine"] == "mongodb"
    assert mongo["issues"][0]["ruleCode"] == "mongo_delete_many_without_filter"
    assert (out / "a.sql_review.yaml").exists()


def test_disable_option_and_forced_rules(runner, tmp_path: Path):
    script = _write(tmp_path / "q.sql", "SELECT * FROM users")
    out = tmp_path / "out"
    result = runner.invoke(cli, [
        "check", str(script), "-o", str(out), "--format", "json",
        "-d", "select_star,missing_statement_terminator", "-d", "select_without_limit",
    ])
    assert result.exit_code == 0, result.output
    data = json.loads((out / "q.sql_review.json").read_text(encoding="utf-8"))
    codes = [issue["ruleCode"] for issue in data["issues"]]
    assert codes == ["missing_statement_terminator"]
    assert data["disabledRules"] == ["select_star", "select_without_limit"]
    assert data["forcedEnabledRules"] == ["missing_statement_terminator"]


def test_missing_target_and_empty_directory(runner, tmp_path: Path):
    result = runner.invoke(cli, ["check", str(tmp_path / "nope.sql")])
    assert result.exit_code == 2

    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(cli, ["check", str(empty)])
    assert result.exit_code == 1


def test_bad_config_is_a_usage_error(runner, tmp_path: Path):
    config = _write(tmp_path / "review.yaml", "report:\n  format: pdf\n")
    script = _write(tmp_path / "q.sql", "SELECT 1;")
    result = runner.invoke(cli, ["--config", str(config), "check", str(script)])
    assert result.exit_code == 2


def test_config_file_drives_check(runner, tmp_path: Path):
    out = tmp_path / "reports"
    config = _write(
        tmp_path / "review.yaml",
        f"engine: postgresql\nreport:\n  format: md\n  out_dir: {out}\n",
    )
    script = _write(tmp_path / "idx.sql", "CREATE INDEX idx_a ON t (a);")
    result = runner.invoke(cli, ["--config", str(config), "check", str(script)])
    assert result.exit_code == 0, result.output
    text = (out / "idx.sql_review.md").read_text(encoding="utf-8")
    assert "pg_create_index_without_concurrently" in text


def test_rules_command(runner):
    result = runner.invoke(cli, ["rules", "--engine", "mongo", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["engine"] == "mongodb"
    assert data["rulesVersion"] == "mongo-v0.1"

    result = runner.invoke(cli, ["rules", "-d", "select_star"])
    assert result.exit_code == 0
    assert result.output.splitlines()[0] == "mysql rules (v1.3)"


def test_history_roundtrip(runner, tmp_path: Path):
    script = _write(tmp_path / "cleanup.sql", "DELETE FROM orders;")
    result = runner.invoke(cli, ["check", str(script), "-o", str(tmp_path / "out"), "--history"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(cli, ["history", "list"])
    assert result.exit_code == 0, result.output
    assert "1 review(s) stored" in result.output
    assert "cleanup.sql" in result.output

    result = runner.invoke(cli, ["history", "show", "1"])
    assert result.exit_code == 0, result.output
    detail = json.loads(result.output)
    assert detail["sqlText"] == "DELETE FROM orders;"
    assert detail["checkResult"]["issues"][0]["ruleCode"] == "delete_without_where"

    result = runner.invoke(cli, ["history", "delete", "1", "1", "7"])
    assert result.exit_code == 0
    assert "Deleted 1 review(s)" in result.output

    result = runner.invoke(cli, ["history", "show", "1"])
    assert result.exit_code == 1


def test_undecodable_script_is_skipped(runner, tmp_path: Path):
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    (scripts / "bad.sql").write_bytes(b"SELECT '\xff\xfe' FROM t;")
    _write(scripts / "good.sql", "DELETE FROM orders;")
    out = tmp_path / "out"
    result = runner.invoke(cli, ["check", str(scripts), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert (out / "good.sql_review.yaml").exists()
    assert not (out / "bad.sql_review.yaml").exists()

    result = runner.invoke(cli, ["check", str(scripts / "bad.sql"), "-o", str(out)])
    assert result.exit_code == 1


def test_history_is_closed_when_a_review_fails(runner, tmp_path: Path, monkeypatch):
    closed = []
    monkeypatch.setattr("cli.HistoryStore.close", lambda self: closed.append(True))

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("cli.analyze", broken)
    script = _write(tmp_path / "q.sql", "SELECT 1;")
    result = runner.invoke(cli, ["check", str(script), "-o", str(tmp_path / "out"), "--history"])
    assert isinstance(result.exception, RuntimeError)
    assert closed == [True]
