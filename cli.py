# === sql_review_agent/cli.py ===

import os
import json
import click
import sqlite3
import logging

from sql_review.analyzer import analyze, rules_for
from sql_review.config import ConfigError, load_settings, override_settings, parse_disabled_rules
from sql_review.file_discovery import STDIN_TARGET, discover_script_files, infer_engine, read_script
from sql_review.history import HistoryNotFound, HistoryStore
from sql_review.models import supported_engines
from sql_review.report_generator import (
    format_issue_lines,
    format_rule_lines,
    format_summary_line,
    write_report
)

ENGINE_CHOICES = [engine.value for engine in supported_engines()] + ["pg", "postgres", "mongo"]


def _settings(ctx, **overrides):
    try:
        settings = load_settings(ctx.obj.get("config_path"))
        return override_settings(settings, **overrides)
    except ConfigError as e:
        raise click.UsageError(str(e), ctx=ctx)


def _report_name(path: str, root: str) -> str:
    if path == STDIN_TARGET:
        return "stdin"
    if os.path.isdir(root):
        rel = os.path.relpath(path, root)
    else:
        rel = os.path.basename(path)
    stem = os.path.splitext(rel)[0]
    return stem.replace(os.sep, "__")


def _fails(summary, fail_on: str) -> bool:
    if fail_on == "error":
        return summary.error_count > 0
    if fail_on == "warning":
        return summary.error_count > 0 or summary.warning_count > 0
    return False


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="YAML settings file (engine, disabled_rules, report, history, fail_on)")
@click.option("--verbose", "-v", is_flag=True, default=False,
              help="Enable verbose (DEBUG) logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """
    Review SQL and MongoDB scripts for risky statements before they reach production.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S"
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.argument("target", type=click.Path(allow_dash=True))
@click.option("--engine", "-e", type=click.Choice(ENGINE_CHOICES, case_sensitive=False), default=None,
              help="Target engine; .js/.mongo files default to mongodb")
@click.option("--disable", "-d", multiple=True,
              help="Rule code(s) to disable; repeat or pass a comma-separated list")
@click.option("--out-dir", "-o", default=None,
              help="Directory for the written reports")
@click.option("--format", "report_format", type=click.Choice(["yaml", "json", "md"]), default=None,
              help="Report file format")
@click.option("--history/--no-history", "history_enabled", default=None,
              help="Store each review in the SQLite history")
@click.option("--fail-on", type=click.Choice(["none", "error", "warning"]), default=None,
              help="Exit with status 1 when issues of this level (or worse) are found")
@click.pass_context
def check(ctx, target, engine, disable, out_dir, report_format, history_enabled, fail_on):
    """
    Review TARGET (a script file, a directory of scripts, or - for stdin).
    """
    logger = logging.getLogger(__name__)
    disabled = ",".join(disable) if disable else None
    settings = _settings(
        ctx,
        disabled_rules=disabled,
        out_dir=out_dir,
        report_format=report_format,
        history_enabled=history_enabled,
        fail_on=fail_on,
    )

    if target == STDIN_TARGET:
        script_files = [STDIN_TARGET]
    elif not os.path.exists(target):
        raise click.BadParameter(f"Path '{target}' does not exist.", param_hint="TARGET")
    else:
        script_files = discover_script_files(target)
    if not script_files:
        logger.error(f"No reviewable scripts (.sql, .txt, .js, .mongo) found under `{target}`.")
        ctx.exit(1)

    logger.info(f"Reviewing {len(script_files)} script(s) from `{target}`")

    store = None
    if settings.history_enabled:
        try:
            store = HistoryStore(settings.db_path, logger=logger)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"History disabled, could not open `{settings.db_path}`: {e}")

    failed = False
    skipped = 0
    try:
        for path in script_files:
            try:
                script = read_script(path)
            except (UnicodeDecodeError, OSError) as e:
                logger.warning(f"Skipping `{path}`, could not read it as UTF-8 text: {e}")
                skipped += 1
                continue
            file_engine = engine or infer_engine(path) or settings.engine
            result = analyze(file_engine, script, settings.disabled_rules)

            name = _report_name(path, target)
            click.echo(f"{name}: {format_summary_line(result)}")
            for line in format_issue_lines(result):
                click.echo(f"  {line}")

            out_path = write_report(result, settings.out_dir, settings.report_format, name)
            logger.info(f"  Report written to `{out_path}`")

            if store is not None:
                try:
                    history_id = store.save(
                        result,
                        script,
                        source="stdin" if path == STDIN_TARGET else "file",
                        file_name="" if path == STDIN_TARGET else os.path.basename(path),
                    )
                    logger.info(f"  Saved to history as #{history_id}")
                except sqlite3.Error as e:
                    logger.warning(f"  Could not save review history: {e}")

            failed = failed or _fails(result.summary, settings.fail_on)
    finally:
        if store is not None:
            store.close()

    if skipped:
        logger.warning(f"{skipped} script(s) skipped as unreadable.")
    if skipped == len(script_files):
        ctx.exit(1)
    if failed:
        logger.error(f"Issues at or above `{settings.fail_on}` level found.")
        ctx.exit(1)


@cli.command()
@click.option("--engine", "-e", type=click.Choice(ENGINE_CHOICES, case_sensitive=False), default=None,
              help="Engine whose catalog to list")
@click.option("--disable", "-d", multiple=True,
              help="Rule code(s) to show as disabled")
@click.option("--json", "as_json", is_flag=True, default=False,
              help="Print the listing as JSON")
@click.pass_context
def rules(ctx, engine, disable, as_json):
    """
    List the rule catalog of an engine with each rule's enabled state.
    """
    settings = _settings(ctx, engine=engine)
    try:
        disabled = parse_disabled_rules(",".join(disable)) if disable else settings.disabled_rules
    except ConfigError as e:
        raise click.UsageError(str(e), ctx=ctx)
    listing = rules_for(settings.engine, disabled)
    if as_json:
        click.echo(json.dumps(listing.to_dict(), indent=2, ensure_ascii=False))
        return
    for line in format_rule_lines(listing):
        click.echo(line)


@cli.group()
def history():
    """Browse and prune the SQLite review history."""


def _open_store(ctx) -> HistoryStore:
    settings = _settings(ctx)
    return HistoryStore(settings.db_path, logger=logging.getLogger(__name__))


@history.command("list")
@click.option("--limit", default=20, show_default=True, help="Number of reviews to show (max 100)")
@click.option("--offset", default=0, show_default=True, help="Number of reviews to skip")
@click.pass_context
def history_list(ctx, limit, offset):
    store = _open_store(ctx)
    try:
        items, total = store.list(limit, offset)
    finally:
        store.close()
    click.echo(f"{total} review(s) stored")
    for item in items:
        s = item.summary
        click.echo(f"#{item.id:<5} {item.created_at}  {item.engine:10} {item.file_name or item.source:20} "
                   f"E{s['errorCount']} W{s['warningCount']} I{s['infoCount']}  {item.sql_preview}")


@history.command("show")
@click.argument("history_id", type=int)
@click.pass_context
def history_show(ctx, history_id):
    store = _open_store(ctx)
    try:
        detail = store.get(history_id)
    except HistoryNotFound as e:
        raise click.ClickException(str(e))
    finally:
        store.close()
    click.echo(json.dumps(detail.to_dict(), indent=2, ensure_ascii=False))


@history.command("delete")
@click.argument("history_ids", nargs=-1, type=int, required=True)
@click.pass_context
def history_delete(ctx, history_ids):
    store = _open_store(ctx)
    try:
        removed = store.delete(history_ids)
    finally:
        store.close()
    click.echo(f"Deleted {removed} review(s)")


if __name__ == "__main__":
    cli()
