"""tlog command line interface.

Thin argparse layer over :class:`tlog_core.workspace.TlogWorkspace`. Every
command prints human-readable lines, or ``{"ok", "command", "data"}`` JSON
with ``--json``. Listings also take ``--format csv`` and ``--output PATH``.
Failures go to stderr and exit 1.
"""

from __future__ import annotations

import argparse
import csv
import io
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from tlog_core import __version__
from tlog_core.config import get_config
from tlog_core.domain import CASE_STATUSES, ISSUE_STATUSES
from tlog_core.errors import TlogError
from tlog_core.oplog import setup_logging
from tlog_core.security import resolve_path_inside_workspace, to_relative_path
from tlog_core.workspace import TlogWorkspace

logger = logging.getLogger(__name__)


class CliError(TlogError):
    """Bad command line input or a cancelled command."""

    category = "usage"
    code = "CLI_ERROR"

    def __init__(self, message: str, lines: list[str] | None = None) -> None:
        super().__init__(message, details={"lines": list(lines or [])})


# ---------------------------------------------------------------------------
# Option parsing helpers
# ---------------------------------------------------------------------------


def split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_bool(value: str, option: str) -> bool:
    if value == "true":
        return True
    if value == "false":
        return False
    raise CliError(f"Invalid {option}: {value}. Expected true|false.")


def parse_case_status(value: str) -> str | None:
    if value == "null":
        return None
    if value in CASE_STATUSES:
        return value
    raise CliError(f"Invalid status: {value}. Expected {'|'.join(CASE_STATUSES)}|null.")


def load_json_array(path: str, option: str) -> list:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CliError(f"Cannot read {option}: {path}", [str(e)]) from e
    if not isinstance(data, list):
        raise CliError(f"{option} must contain a JSON array: {path}")
    return data


def _error_lines(error: TlogError) -> list[str]:
    details = error.details
    lines = list(details.get("lines", []))
    for diag in details.get("errors", []):
        lines.append(f"{diag.get('path')}: {diag.get('message')}")
    for path in details.get("paths", []):
        lines.append(str(path))
    return lines


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def emit_success(command: str, data: dict[str, Any], as_json: bool, lines: list[str]) -> None:
    if as_json:
        print(json.dumps({"ok": True, "command": command, "data": data}, indent=2, default=str))
        return
    print("\n".join(lines))


def emit_failure(command: str, error: Exception, as_json: bool) -> None:
    if isinstance(error, TlogError):
        message, lines = error.message, _error_lines(error)
        payload = {"message": message, "category": error.category, "code": error.code, "details": lines}
    else:
        message, lines = str(error), []
        payload = {"message": message, "details": lines}
    if as_json:
        print(json.dumps({"ok": False, "command": command, "error": payload}, indent=2), file=sys.stderr)
        return
    print(f"Error: {message}", file=sys.stderr)
    for line in lines:
        print(f"- {line}", file=sys.stderr)


def confirm(prompt: str) -> bool:
    """Ask on a TTY; non-interactive sessions never confirm."""
    if not sys.stdin.isatty():
        return False
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _warning_lines(warnings: list[str]) -> list[str]:
    return [f"WARN {w}" for w in warnings]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.init_tests_directory(args.output, args.template, write=not args.dry_run)
    verb = "Would create" if args.dry_run else "Created"
    return result, [f"{verb}: {p}" for p in result["planned_files"]] + _warning_lines(result["warnings"])


def cmd_template(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.create_template_directory(args.output, args.source, write=not args.dry_run)
    verb = "Would create" if args.dry_run else "Created"
    return result, [f"{verb}: {p}" for p in result["planned_files"]] + _warning_lines(result["warnings"])


def cmd_suite_create(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    fields: dict[str, Any] = {
        "owners": split_csv(args.owners),
        "tags": split_csv(args.tags),
    }
    if args.scheduled_start or args.scheduled_end:
        start = args.scheduled_start or args.scheduled_end
        end = args.scheduled_end or args.scheduled_start
        fields["duration"] = {
            "scheduled": {"start": start, "end": end},
            "actual": {"start": start, "end": end},
        }
    result = ws.create_suite(
        args.dir, args.id, args.title, fields,
        as_directory=not args.file, write=not args.dry_run,
    )
    verb = "Would create" if args.dry_run else "Created"
    return result, [f"{verb}: {result['path']}"] + _warning_lines(result["warnings"])


def cmd_case_create(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    fields: dict[str, Any] = {"tags": split_csv(args.tags)}
    if args.status is not None:
        fields["status"] = parse_case_status(args.status)
    result = ws.create_case(args.suite_dir, args.id, args.title, fields, write=not args.dry_run)
    verb = "Would create" if args.dry_run else "Created"
    return result, [f"{verb}: {result['path']}"] + _warning_lines(result["warnings"])


def _common_patch(args: argparse.Namespace) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for key in ("title", "description"):
        value = getattr(args, key, None)
        if value is not None:
            patch[key] = value
    for key in ("tags", "owners", "related", "remarks", "operations"):
        value = getattr(args, key, None)
        if value is not None:
            patch[key] = split_csv(value)
    if args.scoped is not None:
        patch["scoped"] = parse_bool(args.scoped, "--scoped")
    return patch


def _update_lines(result: dict, dry_run: bool) -> list[str]:
    verb = "Would update" if dry_run else "Updated"
    return [f"{verb}: {result['path']}", *result["diff_summary"], *_warning_lines(result["warnings"])]


def cmd_suite_update(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    patch = _common_patch(args)
    edges = {
        ("scheduled", "start"): args.scheduled_start,
        ("scheduled", "end"): args.scheduled_end,
        ("actual", "start"): args.actual_start,
        ("actual", "end"): args.actual_end,
    }
    if any(v is not None for v in edges.values()):
        current = ws.get_entity(args.dir, args.id, "suite")["entity"]
        duration = json.loads(json.dumps(current.get("duration") or {}))
        for (part, edge), value in edges.items():
            if value is not None:
                duration.setdefault(part, {})[edge] = value
        patch["duration"] = duration
    if not patch:
        raise CliError("No update fields specified.")
    result = ws.update_suite(args.dir, args.id, patch, write=not args.dry_run)
    return result, _update_lines(result, args.dry_run)


def cmd_case_update(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    patch = _common_patch(args)
    if args.status is not None:
        patch["status"] = parse_case_status(args.status)
    if args.completed_day is not None:
        patch["completedDay"] = None if args.completed_day == "null" else args.completed_day
    if args.tests_file:
        patch["tests"] = load_json_array(args.tests_file, "--tests-file")
    if args.issues_file:
        patch["issues"] = load_json_array(args.issues_file, "--issues-file")
    if not patch:
        raise CliError("No update fields specified.")
    result = ws.update_case(args.dir, args.id, patch, write=not args.dry_run)
    return result, _update_lines(result, args.dry_run)


def _delete(ws: TlogWorkspace, args: argparse.Namespace, entity_type: str) -> tuple[dict, list[str]]:
    run = ws.delete_suite if entity_type == "suite" else ws.delete_case
    plan = run(args.dir, args.id, dry_run=True)
    if args.dry_run:
        result = plan
    else:
        if not args.yes and not confirm(f"Delete {entity_type} {args.id}?"):
            raise CliError("Delete cancelled. Re-run with --yes to skip confirmation.")
        result = run(args.dir, args.id, dry_run=False, confirm=True, hard=args.hard)
    verb = "Would delete" if args.dry_run else "Deleted"
    lines = [f"{verb}: {result['target']}"]
    if result["moved_to"]:
        lines.append(f"Moved to: {result['moved_to']}")
    for ref in result["referenced_by"]:
        lines.append(f"WARN still referenced by {ref['id']} ({ref['path']})")
    return result, lines


def cmd_suite_delete(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    return _delete(ws, args, "suite")


def cmd_case_delete(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    return _delete(ws, args, "case")


def cmd_suite_stats(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.suite_stats(args.dir, args.id)
    counts = result["status_counts"]
    duration = result["duration"]
    lines = [
        f"suite={result['id']}",
        f"status todo={counts['todo']} doing={counts['doing']} done={counts['done']} "
        f"null={counts['null']} total={counts['total']}",
    ]
    for part in ("scheduled", "actual"):
        burndown = result[part]
        lines.append(
            f"{part} {duration[part]['start']}..{duration[part]['end']} buckets={len(burndown['buckets'])}"
        )
        for anomaly in burndown["anomalies"]:
            lines.append(f"WARN {part}: {anomaly}")
    return result, lines


def _table(rows: list[list[str]], header: list[str]) -> list[str]:
    if not rows:
        return ["(empty)"]
    widths = [max(len(str(r[i])) for r in [header, *rows]) for i in range(len(header))]
    return ["  ".join(str(cell).ljust(w) for cell, w in zip(row, widths)).rstrip() for row in [header, *rows]]


def _csv(rows: list[list[str]], header: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


def _list_lines(
    ws: TlogWorkspace,
    args: argparse.Namespace,
    data: dict,
    rows: list[list[str]],
    header: list[str],
) -> list[str]:
    """Render a listing as text, csv or json, optionally into --output."""
    fmt = "json" if args.json else args.format
    if fmt == "json":
        content = json.dumps({"ok": True, "command": args.command, "data": data}, indent=2, default=str)
    elif fmt == "csv":
        content = _csv(rows, header)
    else:
        content = "\n".join(_table(rows, header))

    output = getattr(args, "output_file", None)
    if not output:
        return content.splitlines()
    target = resolve_path_inside_workspace(ws.root, output)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content + "\n", encoding="utf-8")
    logger.debug("Wrote %s listing to %s", args.command, target)
    return [f"Wrote: {to_relative_path(ws.root, target)}"]


def cmd_suite_list(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    filters = {"tags": split_csv(args.tag), "owners": split_csv(args.owners)}
    result = ws.list_suites(args.dir, args.id, filters)
    rows = [[i["id"], i["title"], i["path"]] for i in result["items"]]
    return result, _list_lines(ws, args, result, rows, ["id", "title", "path"])


def cmd_case_list(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    filters: dict[str, Any] = {"tags": split_csv(args.tag)}
    if args.status is not None:
        filters["testcase_status"] = [parse_case_status(s) for s in split_csv(args.status)]
    result = ws.list_cases(
        args.dir,
        args.id,
        filters,
        scoped_only=args.scoped_only,
        issue_status=args.issue_status,
        issue_has=args.issue_has,
        suite_owners=split_csv(args.owners) or None,
    )
    rows = [[i["id"], str(i["status"]), i["title"], i["path"]] for i in result["items"]]
    return result, _list_lines(ws, args, result, rows, ["id", "status", "title", "path"])


def cmd_list_templates(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.list_templates(args.dir)
    rows = [[t["name"], t["path"]] for t in result["templates"]]
    return result, _list_lines(ws, args, result, rows, ["name", "path"])


def cmd_related_list(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.resolve_related_targets(args.dir, args.id)
    if args.format == "csv":
        rows = [["resolved", e["id"], e["type"], e["path"]] for e in result["resolved"]]
        rows += [["missing", m, "", ""] for m in result["missing"]]
        return result, _csv(rows, ["state", "id", "type", "path"]).splitlines()
    lines = [f"RESOLVED {e['id']} ({e['type']}) {e['path']}" for e in result["resolved"]]
    lines += [f"MISSING {m}" for m in result["missing"]]
    return result, lines or ["(empty)"]


def cmd_related_sync(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.sync_related(args.dir, args.id, write=not args.dry_run)
    verb = "Would sync" if args.dry_run else "Synced"
    lines = [f"{verb} related links: {result['synced_count']}"]
    lines += [f"UNRESOLVED {u['source_id']} -> {u['target_id']}" for u in result["unresolved"]]
    return result, lines


def cmd_validate(ws: TlogWorkspace, args: argparse.Namespace) -> tuple[dict, list[str]]:
    result = ws.validate_directory(args.dir, fail_on_warning=args.fail_on_warning)
    summary = result["summary"]
    label = "Validation passed" if result["ok"] else "Validation failed"
    lines = [
        f"{label}: files={summary['total_files']}, errors={summary['error_count']}, "
        f"warnings={summary['warning_count']}"
    ]
    for item in result["items"]:
        lines += [f"ERROR {item['path']}: {e['path']}: {e['message']}" for e in item["errors"]]
        lines += [f"WARN {item['path']}: {w['path']}: {w['message']}" for w in item["warnings"]]
    for dup in result["duplicates"]:
        lines.append(f"ERROR duplicate id {dup['id']}: {', '.join(dup['paths'])}")
    return result, lines


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _global_options(parser: argparse.ArgumentParser, suppress: bool) -> None:
    """Global flags, accepted both before and after the subcommand."""
    kw: dict[str, Any] = {"default": argparse.SUPPRESS} if suppress else {}
    parser.add_argument("--root", help="Workspace root (default: TLOG_WORKSPACE_ROOT or cwd)", **kw)
    parser.add_argument("--dry-run", action="store_true", help="Preview changes without writing files", **kw)
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON output", **kw)
    parser.add_argument("--yes", action="store_true", help="Skip interactive confirmation", **kw)
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging to stderr", **kw)


def build_parser() -> argparse.ArgumentParser:
    tests_dir = get_config().tests_dir
    common = argparse.ArgumentParser(add_help=False)
    _global_options(common, suppress=True)

    parser = argparse.ArgumentParser(prog="tlog", description="YAML test suite and case tracker")
    parser.add_argument("--version", action="version", version=f"tlog {__version__}")
    _global_options(parser, suppress=False)
    sub = parser.add_subparsers(dest="group", required=True)

    def leaf(subparsers, name: str, handler: Callable, command: str, help: str) -> argparse.ArgumentParser:
        p = subparsers.add_parser(name, parents=[common], help=help, description=help)
        p.set_defaults(handler=handler, command=command)
        return p

    def dir_option(p: argparse.ArgumentParser, help: str = "Search root directory") -> None:
        p.add_argument("--dir", default=tests_dir, help=f"{help} (default: {tests_dir})")

    def format_options(p: argparse.ArgumentParser, output: bool = True) -> None:
        p.add_argument("--format", choices=("text", "json", "csv"), default="text", help="Output format")
        if output:
            p.add_argument("--output", dest="output_file", default=None,
                           help="Write the listing to this workspace path instead of stdout")

    p = leaf(sub, "init", cmd_init, "init", "Seed a tests directory")
    p.add_argument("--output", default=None, help=f"Output directory (default: {tests_dir})")
    p.add_argument("--template", default=None, help="Template directory")

    p = leaf(sub, "template", cmd_template, "template", "Create a template directory")
    p.add_argument("--output", default=None, help="Output directory (default: templates/default)")
    p.add_argument("--from", dest="source", default=None, help="Extract from an existing suite directory")

    # suite
    suite = sub.add_parser("suite", help="Suite operations").add_subparsers(dest="action", required=True)

    p = leaf(suite, "create", cmd_suite_create, "suite create", "Create a suite")
    p.add_argument("--id", required=True)
    p.add_argument("--title", required=True)
    dir_option(p, "Suite root directory")
    p.add_argument("--owners", help="Comma-separated owners")
    p.add_argument("--tags", help="Comma-separated tags")
    p.add_argument("--scheduled-start", help="YYYY-MM-DD")
    p.add_argument("--scheduled-end", help="YYYY-MM-DD")
    p.add_argument("--file", action="store_true", help="Write <id>-<slug>.suite.yaml instead of a suite directory")

    p = leaf(suite, "update", cmd_suite_update, "suite update", "Update a suite")
    p.add_argument("--id", required=True)
    dir_option(p)
    p.add_argument("--title")
    p.add_argument("--description")
    p.add_argument("--tags")
    p.add_argument("--owners")
    p.add_argument("--related")
    p.add_argument("--remarks")
    p.add_argument("--scoped", help="true|false")
    p.add_argument("--scheduled-start")
    p.add_argument("--scheduled-end")
    p.add_argument("--actual-start")
    p.add_argument("--actual-end")

    p = leaf(suite, "delete", cmd_suite_delete, "suite delete", "Delete a suite")
    p.add_argument("--id", required=True)
    dir_option(p)
    p.add_argument("--hard", action="store_true", help="Remove instead of moving to trash")

    p = leaf(suite, "stats", cmd_suite_stats, "suite stats", "Status counts and burndown")
    p.add_argument("--id", required=True)
    dir_option(p)

    p = leaf(suite, "list", cmd_suite_list, "suite list", "List suites")
    dir_option(p)
    p.add_argument("--id", default=None, help="Id substring")
    p.add_argument("--tag", help="Comma-separated tags (any match)")
    p.add_argument("--owners", help="Comma-separated owners (any match)")
    format_options(p)

    # case
    case = sub.add_parser("case", help="Case operations").add_subparsers(dest="action", required=True)

    p = leaf(case, "create", cmd_case_create, "case create", "Create a test case")
    p.add_argument("--suite-dir", required=True)
    p.add_argument("--id", required=True)
    p.add_argument("--title", required=True)
    p.add_argument("--status", help="todo|doing|done|null")
    p.add_argument("--tags")

    p = leaf(case, "update", cmd_case_update, "case update", "Update a test case")
    p.add_argument("--id", required=True)
    dir_option(p)
    p.add_argument("--title")
    p.add_argument("--status", help="todo|doing|done|null")
    p.add_argument("--tags")
    p.add_argument("--description")
    p.add_argument("--operations")
    p.add_argument("--related")
    p.add_argument("--remarks")
    p.add_argument("--scoped", help="true|false")
    p.add_argument("--completed-day", help="YYYY-MM-DD|null")
    p.add_argument("--tests-file", help="JSON file holding the tests array")
    p.add_argument("--issues-file", help="JSON file holding the issues array")

    p = leaf(case, "delete", cmd_case_delete, "case delete", "Delete a test case")
    p.add_argument("--id", required=True)
    dir_option(p)
    p.add_argument("--hard", action="store_true", help="Remove instead of moving to trash")

    p = leaf(case, "list", cmd_case_list, "case list", "List test cases")
    dir_option(p)
    p.add_argument("--id", default=None, help="Id substring")
    p.add_argument("--tag", help="Comma-separated tags (any match)")
    p.add_argument("--owners", help="Comma-separated suite owners")
    p.add_argument("--scoped-only", action="store_true")
    p.add_argument("--issue-has", help="Issue keyword")
    p.add_argument("--issue-status", choices=ISSUE_STATUSES)
    p.add_argument("--status", help="Comma-separated todo|doing|done|null")
    format_options(p)

    # list
    listing = sub.add_parser("list", help="List resources").add_subparsers(dest="action", required=True)
    p = leaf(listing, "templates", cmd_list_templates, "list templates", "List template directories")
    p.add_argument("--dir", default=None, help="Templates directory (default: templates)")
    format_options(p)

    # related
    related = sub.add_parser("related", help="Related link operations").add_subparsers(dest="action", required=True)
    p = leaf(related, "list", cmd_related_list, "related list", "Resolve related links of an entity")
    p.add_argument("--id", required=True)
    dir_option(p)
    format_options(p, output=False)
    p = leaf(related, "sync", cmd_related_sync, "related sync", "Make related links reciprocal")
    p.add_argument("--id", default=None, help="Sync only this source id")
    dir_option(p)

    p = leaf(sub, "validate", cmd_validate, "validate", "Validate YAML files")
    dir_option(p, "Validation root")
    p.add_argument("--fail-on-warning", action="store_true")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        "tlog-cli",
        level=logging.DEBUG if args.verbose else logging.WARNING,
        workspace_root=args.root or get_config().workspace_root,
    )
    json_output = args.json or getattr(args, "format", "text") == "json"
    try:
        ws = TlogWorkspace(args.root)
        data, lines = args.handler(ws, args)
    except TlogError as e:
        logger.debug("%s failed: %s", args.command, e.message)
        emit_failure(args.command, e, json_output)
        return 1
    except OSError as e:
        logger.error("%s failed: %s", args.command, e)
        emit_failure(args.command, e, json_output)
        return 1
    # a listing written to --output reports the file, not the payload
    emit_success(args.command, data, json_output and not getattr(args, "output_file", None), lines)
    # validate reports failures as data
    return 0 if data.get("ok", True) else 1


if __name__ == "__main__":
    sys.exit(main())
