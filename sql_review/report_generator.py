# === sql_review_agent/sql_review/report_generator.py ===

import json
import os
import yaml
from typing import List

from sql_review.models import CheckResult, RuleListing

REPORT_SUFFIX = ".sql_review"


def report_path(out_dir: str, name: str, fmt: str) -> str:
    return os.path.join(out_dir, f"{name}{REPORT_SUFFIX}.{fmt}")


def write_report(result: CheckResult, out_dir: str, fmt: str = "yaml", name: str = "script") -> str:
    """
    Write one review report as <name>.sql_review.<fmt> under out_dir and return its path.
    """
    os.makedirs(out_dir, exist_ok=True)
    out_path = report_path(out_dir, name, fmt)
    with open(out_path, "w", encoding="utf-8") as f:
        if fmt == "json":
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
        elif fmt == "md":
            f.write(render_markdown(result, name))
        else:
            yaml.dump(result.to_dict(), f, sort_keys=False, allow_unicode=True)
    return out_path


def render_markdown(result: CheckResult, name: str = "script") -> str:
    """
    Human-readable report: summary counts, issues in order, then advice.
    """
    summary = result.summary
    lines: List[str] = [
        f"# SQL Review Report: `{name}`  ",
        f"Engine: {result.engine.value}  ",
        f"Rules version: {result.rules_version}  ",
        f"Checked at: {result.checked_at}  ",
        "",
        "## Summary",
        "",
        f"- **Statements**: {summary.statement_count}",
        f"- **Errors**: {summary.error_count}",
        f"- **Warnings**: {summary.warning_count}",
        f"- **Info**: {summary.info_count}",
        "",
        f"## Issues ({len(result.issues)})",
        "",
    ]
    if not result.issues:
        lines.append("*(none)*")
        lines.append("")
    for issue in result.issues:
        where = f"statement {issue.statement_index}" if issue.statement_index else "script"
        lines.append(f"### [{issue.severity.value}] `{issue.rule_code}` ({where})")
        lines.append(f"- **Message**: {issue.message}")
        lines.append(f"- **Suggestion**: {issue.suggestion}")
        if issue.statement:
            lines.append("")
            lines.append("```sql")
            lines.append(issue.statement)
            lines.append("```")
        lines.append("")
    lines.append("## Advice")
    lines.append("")
    lines.extend(f"- {item}" for item in result.advice)
    if result.forced_enabled_rules:
        lines.append("")
        lines.append(f"*Always-enabled rules kept on: {', '.join(result.forced_enabled_rules)}*")
    return "\n".join(lines) + "\n"


def format_issue_lines(result: CheckResult) -> List[str]:
    """One console line per issue."""
    lines = []
    for issue in result.issues:
        where = f"#{issue.statement_index}" if issue.statement_index else "script"
        lines.append(f"[{issue.severity.value.upper():7}] {where:>7}  {issue.rule_code}: {issue.message}")
    return lines


def format_summary_line(result: CheckResult) -> str:
    s = result.summary
    return (f"{result.engine.value} ({result.rules_version}): {s.statement_count} statement(s), "
            f"{s.error_count} error(s), {s.warning_count} warning(s), {s.info_count} info")


def format_rule_lines(listing: RuleListing) -> List[str]:
    lines = [f"{listing.engine.value} rules ({listing.rules_version})"]
    for rule in listing.to_dict()["rules"]:
        state = "always" if rule["alwaysEnabled"] else ("on" if rule["enabled"] else "off")
        lines.append(f"  {state:6} {rule['severity']:7} {rule['code']:40} {rule['description']}")
    return lines
