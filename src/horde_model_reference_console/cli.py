"""Command line console for the model reference service.

Usage:
    horde-model-reference-console [--api-url URL] [--api-key KEY] [--log-level LEVEL] COMMAND ...

Commands:
    categories                      List the model categories
    list CATEGORY                   List the models of a category
    show CATEGORY NAME              Print a model's record as JSON
    create CATEGORY NAME            Create a model from a JSON file (or a default record)
    update CATEGORY NAME --file F   Replace a model's record with the JSON in F
    delete CATEGORY NAME            Delete a model
    audit CATEGORY                  Show the deletion risk audit of a category

Examples:
    horde-model-reference-console list text_generation --search llama --active-only
    horde-model-reference-console audit image_generation --preset "Zero Usage" --export ./reports
    HORDE_MODEL_REFERENCE_CONSOLE_API_KEY=... horde-model-reference-console delete esrgan RealESRGAN_x4plus
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from loguru import logger

from horde_model_reference_console import horde_model_reference_console_settings
from horde_model_reference_console.analytics.audit_metrics import ModelWithAuditMetrics, format_file_hosts
from horde_model_reference_console.analytics.csv_export import get_flag_labels
from horde_model_reference_console.analytics.filter_presets import PRESET_NAME_TO_BACKEND, SHOW_ALL_PRESET
from horde_model_reference_console.analytics.sorting import AuditSortColumn, CatalogSortColumn, SortState
from horde_model_reference_console.api_client import ModelReferenceAPIClient
from horde_model_reference_console.audit_session import AuditSession
from horde_model_reference_console.catalog_view import CatalogView
from horde_model_reference_console.exceptions import ModelReferenceAPIError
from horde_model_reference_console.logging_config import configure_logger, resolve_log_level
from horde_model_reference_console.meta_consts import MODEL_REFERENCE_CATEGORY, get_category_display_name
from horde_model_reference_console.notifications import NotificationService
from horde_model_reference_console.record_editor import RecordEditor
from horde_model_reference_console.unified_model import CatalogModel, GroupedTextModel, has_active_workers

CATEGORY_CHOICES = [str(category) for category in MODEL_REFERENCE_CATEGORY]


def _print_notifications(notifications: NotificationService, stream: TextIO) -> None:
    for notification in notifications.notifications:
        print(f"[{notification.level}] {notification.message}", file=stream)


def _sort_state(column: str | None, descending: bool) -> SortState:
    if column is None:
        return SortState()
    return SortState(column=column, direction="desc" if descending else "asc")


def _format_model_line(model: CatalogModel) -> str:
    status = "active" if has_active_workers(model) else "-"
    workers = model.worker_count or 0
    month = model.usage_stats.month if model.usage_stats is not None else 0
    line = f"{model.name:<60} {status:<7} workers={workers:<4} month={month:<8} {model.baseline or ''}"
    if isinstance(model, GroupedTextModel):
        line += f" [{len(model.variations)} variations: {', '.join(model.available_backends) or 'no backends'}]"
    return line.rstrip()


def _format_audit_line(row: ModelWithAuditMetrics) -> str:
    status = {"critical": "CRIT", "warning": "WARN", "none": ""}[row.row_status]
    flags = ",".join(get_flag_labels(row.flags))
    return (
        f"{status:<4} {row.name:<60} workers={row.worker_count:<4} day={row.usage_day:<6} "
        f"month={row.usage_month:<8} total={row.usage_total:<10} usage={row.usage_percentage:6.2f}% "
        f"hosts={format_file_hosts(row.file_hosts)} {flags}"
    ).rstrip()


def _open_client(args: argparse.Namespace) -> ModelReferenceAPIClient:
    return ModelReferenceAPIClient(args.api_url, api_key=args.api_key)


def command_categories(args: argparse.Namespace, notifications: NotificationService) -> int:
    with _open_client(args) as client:
        try:
            categories = client.get_categories()
        except ModelReferenceAPIError as e:
            notifications.error(e.message)
            return 1

    for category in categories:
        print(f"{category:<20} {get_category_display_name(category)}")
    return 0


def command_list(args: argparse.Namespace, notifications: NotificationService) -> int:
    with _open_client(args) as client:
        view = CatalogView(client, args.category, notifications=notifications)
        if not view.load():
            return 1

    view.filters.search_term = args.search or ""
    view.filters.active_only = args.active_only
    for tag in args.tag or []:
        view.filters.toggle_tag(tag)
    if args.sort is not None:
        view.sort_state = _sort_state(args.sort, args.desc)

    models = view.visible_models
    for model in models:
        print(_format_model_line(model))

    statistics = view.statistics(models)
    print(f"\n{statistics.total_models} models ({statistics.active_models} active) of {len(view.models)}")
    return 0


def command_show(args: argparse.Namespace, notifications: NotificationService) -> int:
    with _open_client(args) as client:
        try:
            records = client.get_legacy_models_in_category(args.category)
        except ModelReferenceAPIError as e:
            notifications.error(e.message)
            return 1

    record = records.get(args.name)
    if record is None:
        notifications.error(f"Model '{args.name}' not found in {args.category}")
        return 1

    print(json.dumps(record, indent=2))
    return 0


def _read_record_body(path: Path | None, notifications: NotificationService) -> str | None:
    if path is None:
        return None
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        notifications.error(f"Could not read {path}: {e}")
        return None


def _writable_editor(
    client: ModelReferenceAPIClient,
    category: str,
    notifications: NotificationService,
) -> RecordEditor | None:
    editor = RecordEditor(client, category, notifications=notifications)
    return editor if editor.ensure_writable() else None


def command_create(args: argparse.Namespace, notifications: NotificationService) -> int:
    body = _read_record_body(args.file, notifications)
    if args.file is not None and body is None:
        return 1

    with _open_client(args) as client:
        editor = _writable_editor(client, args.category, notifications)
        if editor is None:
            return 1
        if body is None:
            saved = editor.create(editor.new_record(args.name))
        else:
            saved = editor.submit_json(args.name, body, is_new=True)

    return 0 if saved is not None else 1


def command_update(args: argparse.Namespace, notifications: NotificationService) -> int:
    body = _read_record_body(args.file, notifications)
    if body is None:
        return 1

    with _open_client(args) as client:
        editor = _writable_editor(client, args.category, notifications)
        if editor is None:
            return 1
        saved = editor.submit_json(args.name, body, is_new=False)

    return 0 if saved is not None else 1


def command_delete(args: argparse.Namespace, notifications: NotificationService) -> int:
    with _open_client(args) as client:
        editor = _writable_editor(client, args.category, notifications)
        if editor is None:
            return 1
        deleted = editor.delete(args.name)

    return 0 if deleted else 1


def command_audit(args: argparse.Namespace, notifications: NotificationService) -> int:
    with _open_client(args) as client:
        session = AuditSession(client, args.category, notifications=notifications)
        try:
            session.select_preset(args.preset, refresh=False)
        except ValueError as e:
            notifications.error(str(e))
            return 1
        if not session.load():
            return 1

    session.catalog_filters.search_term = args.search or ""
    for host in args.host or []:
        session.audit_filters.toggle_host(host)
    for baseline in args.baseline or []:
        session.audit_filters.toggle_baseline(baseline)
    if args.flagged:
        session.flagged_only = True
    if args.sort is not None:
        session.sort_state = _sort_state(args.sort, args.desc)

    for conflict in session.filter_conflicts():
        notifications.warning(f"Ignoring conflicting range: {conflict}")

    rows = session.visible_rows
    for row in rows:
        print(_format_audit_line(row))

    summary = session.summary
    print(
        f"\n{summary.total_models} models: {summary.critical_count} critical, {summary.warning_count} warning, "
        f"{summary.models_with_workers} with workers, {summary.models_with_zero_month_usage} unused this month",
    )
    if summary.total_disk_space_gb is not None:
        print(f"Disk space: {summary.total_disk_space_gb:.2f} GB ({summary.flagged_disk_space_gb:.2f} GB flagged)")
    if session.is_degraded:
        print("Degraded mode: no deletion risk flags available.")

    if args.export is not None:
        try:
            session.export_csv(args.export)
        except OSError as e:
            notifications.error(f"Export failed: {e}")
            return 1

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="horde-model-reference-console",
        description="Browse, audit and edit the AI-Horde model reference",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--api-url",
        type=str,
        default=None,
        help="Model reference service root (default: from env HORDE_MODEL_REFERENCE_CONSOLE_API_URL)",
    )
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="API key for write operations (default: from env HORDE_MODEL_REFERENCE_CONSOLE_API_KEY)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: from env HORDE_MODEL_REFERENCE_CONSOLE_LOG_LEVEL)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Shorthand for --log-level DEBUG",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    categories = subparsers.add_parser("categories", help="List the model categories")
    categories.set_defaults(handler=command_categories)

    list_parser = subparsers.add_parser("list", help="List the models of a category")
    list_parser.add_argument("category", choices=CATEGORY_CHOICES)
    list_parser.add_argument("--search", type=str, default=None, help="Search names, descriptions, tags and more")
    list_parser.add_argument("--tag", action="append", help="Only show models with this tag (repeatable)")
    list_parser.add_argument("--active-only", action="store_true", default=False, help="Only models with workers")
    list_parser.add_argument("--sort", choices=[str(column) for column in CatalogSortColumn], default=None)
    list_parser.add_argument("--desc", action="store_true", default=False, help="Sort descending")
    list_parser.set_defaults(handler=command_list)

    show = subparsers.add_parser("show", help="Print a model's record as JSON")
    show.add_argument("category", choices=CATEGORY_CHOICES)
    show.add_argument("name")
    show.set_defaults(handler=command_show)

    create = subparsers.add_parser("create", help="Create a model")
    create.add_argument("category", choices=CATEGORY_CHOICES)
    create.add_argument("name")
    create.add_argument("--file", type=Path, default=None, help="JSON record body (default: an empty record)")
    create.set_defaults(handler=command_create)

    update = subparsers.add_parser("update", help="Replace a model's record")
    update.add_argument("category", choices=CATEGORY_CHOICES)
    update.add_argument("name")
    update.add_argument("--file", type=Path, required=True, help="JSON record body")
    update.set_defaults(handler=command_update)

    delete = subparsers.add_parser("delete", help="Delete a model")
    delete.add_argument("category", choices=CATEGORY_CHOICES)
    delete.add_argument("name")
    delete.set_defaults(handler=command_delete)

    audit = subparsers.add_parser("audit", help="Show the deletion risk audit of a category")
    audit.add_argument("category", choices=CATEGORY_CHOICES)
    audit.add_argument(
        "--preset",
        choices=list(PRESET_NAME_TO_BACKEND),
        default=SHOW_ALL_PRESET,
        help="Named filter preset",
    )
    audit.add_argument("--search", type=str, default=None)
    audit.add_argument("--host", action="append", help="Only models downloaded from this host (repeatable)")
    audit.add_argument("--baseline", action="append", help="Only models with this baseline (repeatable)")
    audit.add_argument("--flagged", action="store_true", default=False, help="Only critical or warned models")
    audit.add_argument("--sort", choices=[str(column) for column in AuditSortColumn], default=None)
    audit.add_argument("--desc", action="store_true", default=False, help="Sort descending")
    audit.add_argument("--export", type=Path, default=None, help="Write the shown rows as CSV to this directory")
    audit.set_defaults(handler=command_audit)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the console.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    args = build_parser().parse_args(argv)

    level = resolve_log_level(
        verbose=args.verbose,
        explicit=args.log_level,
        configured=horde_model_reference_console_settings.log_level,
    )
    configure_logger(level)

    notifications = NotificationService()
    try:
        exit_code = args.handler(args, notifications)
    except ModelReferenceAPIError as e:
        notifications.error(e.message)
        exit_code = 1

    _print_notifications(notifications, sys.stderr)
    logger.debug(f"{args.command} finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
