from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path

from dotenv import load_dotenv

from order_revenue.config.loader import ConfigError, DashboardConfig, load_config
from order_revenue.logging.init import get_logger, log_summary, setup_logging
from order_revenue.models.analytics import AnalyticsBundle
from order_revenue.models.dataset import StoredDataset
from order_revenue.services.analytics import build_analytics_from_table
from order_revenue.services.columns import resolve_columns
from order_revenue.services.merge import merge_analytics
from order_revenue.services.pipeline import ProcessingError, process_all
from order_revenue.services.summary import render_summary_line
from order_revenue.services.values import QUICK_RANGES, filter_rows_by_date_range, quick_date_range
from order_revenue.storage.store import DatasetStore, StorageError
from order_revenue.tabular.export import export_csv, export_excel, export_json
from order_revenue.tabular.reader import TableReadError, read_table

"""CLI entrypoint.

    python -m order_revenue.cli [--config PATH] [--debug] COMMAND ...

Exit codes: 0 all ok, 2 some uploaded files failed, 1 fatal (config, storage,
unknown dataset, unreadable file for ``inspect``).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load ``.env`` with python-dotenv (``ORDER_REVENUE_STORE`` etc.).

    ``.env`` の値を既存の環境変数より優先する。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _date_arg(text: str) -> datetime:
    try:
        return datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{text}' (expected YYYY-MM-DD)") from None


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="order_revenue", description="Order revenue dashboard: upload, analyze and export order reports"
    )
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: config/dashboard.yml if present)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    up = sub.add_parser("upload", help="Calculate revenue for files and store them as datasets")
    up.add_argument("files", nargs="+", type=Path)

    ins = sub.add_parser("inspect", help="Print headers, resolved columns and sample rows of a file")
    ins.add_argument("file", type=Path)

    sub.add_parser("list", help="List stored datasets")

    sel = sub.add_parser("select", help="Mark datasets for combined analytics")
    sel.add_argument("ids", nargs="+")
    sel.add_argument("--off", action="store_true", help="Unselect instead")

    de = sub.add_parser("delete", help="Delete a stored dataset")
    de.add_argument("id")

    an = sub.add_parser("analytics", help="Print analytics JSON (active dataset by default)")
    group = an.add_mutually_exclusive_group()
    group.add_argument("--id", dest="dataset_id", default=None)
    group.add_argument("--selected", action="store_true", help="Merge every selected dataset")
    an.add_argument("--range", dest="date_range", choices=QUICK_RANGES, default=None, help="Only orders in a preset period")
    an.add_argument("--from", dest="date_from", type=_date_arg, default=None, help="First order date (YYYY-MM-DD)")
    an.add_argument("--to", dest="date_to", type=_date_arg, default=None, help="Last order date, inclusive (YYYY-MM-DD)")

    ex = sub.add_parser("export", help="Export a dataset's revenue table")
    ex.add_argument("id")
    ex.add_argument("--format", choices=("csv", "json", "xlsx"), required=True)
    ex.add_argument("--out", type=Path, required=True)
    ex.add_argument("--no-protect", action="store_true", help="Do not lock the xlsx sheet")

    return p.parse_args(argv)


def _cmd_upload(args: argparse.Namespace, cfg: DashboardConfig, store: DatasetStore) -> int:
    logger = get_logger()
    missing = [f for f in args.files if not f.exists()]
    for f in missing:
        logger.warning(f"file not found: {f}")

    try:
        result = process_all(args.files, store, cfg)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    # log_summary が "SUMMARY " を付けるので取り除く
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_inspect(args: argparse.Namespace, cfg: DashboardConfig) -> int:
    try:
        table = read_table(args.file)
    except TableReadError as e:
        get_logger().error(f"inspect: {e}")
        return EXIT_FATAL
    columns = resolve_columns(table.headers, cfg.column_synonyms)
    print(f"FILE: {table.file_name} kind={table.file_kind.value} rows={table.row_count}")
    print(f"  headers={table.headers}")
    print(f"  columns={ {k: v for k, v in columns.as_dict().items() if v is not None} }")
    missing = columns.missing()
    if missing:
        print(f"  missing_revenue_columns={[f.value for f in missing]}")
    for warning in table.warnings:
        print(f"  warning: {warning}")
    print("  sample_rows=", table.rows[:INSPECT_SAMPLE_ROWS])
    return EXIT_SUCCESS_ALL


def _cmd_list(store: DatasetStore) -> int:
    datasets = store.all()
    if not datasets:
        get_logger().info("no datasets stored")
    for d in datasets:
        flags = ("*" if d.active else " ") + ("S" if d.selected else " ")
        print(
            f"{flags} {d.id} {d.file_name} rows={d.summary.processed_rows} "
            f"revenue={d.summary.total_revenue:.2f} uploaded={d.upload_timestamp}"
        )
    info = store.storage_info()
    get_logger().info(f"storage used={info.used} available={info.available} ({info.percentage:.1f}%)")
    return EXIT_SUCCESS_ALL


def _cmd_select(args: argparse.Namespace, store: DatasetStore) -> int:
    for dataset_id in args.ids:
        store.set_selected(dataset_id, not args.off)
    get_logger().info(f"selected: {', '.join(store.selected_ids()) or '(none)'}")
    return EXIT_SUCCESS_ALL


def _cmd_delete(args: argparse.Namespace, store: DatasetStore) -> int:
    if not store.delete(args.id):
        get_logger().error(f"dataset not found: {args.id}")
        return EXIT_FATAL
    get_logger().info(f"deleted {args.id}")
    return EXIT_SUCCESS_ALL


def _period(args: argparse.Namespace) -> tuple[datetime, datetime] | None:
    if args.date_range:
        return quick_date_range(args.date_range)
    if args.date_from is None and args.date_to is None:
        return None
    start = args.date_from or datetime.min
    # --to はその日の終わりまで含む
    end = args.date_to + timedelta(days=1) - timedelta(microseconds=1) if args.date_to else datetime.max
    return start, end


def _dataset_analytics(
    dataset: StoredDataset, cfg: DashboardConfig, period: tuple[datetime, datetime] | None
) -> AnalyticsBundle:
    """Stored analytics, or views recomputed from the rows inside ``period``.

    Raises:
        ValueError: the stored table has no revenue column
    """
    if period is None:
        return dataset.analytics
    table = dataset.parsed_data
    columns = resolve_columns(table.headers, cfg.column_synonyms)
    filtered = filter_rows_by_date_range(table, columns, *period)
    get_logger().debug(f"{dataset.id}: {filtered.row_count}/{table.row_count} rows in period")
    return build_analytics_from_table(filtered, columns, labels=cfg.status_labels)


def _cmd_analytics(args: argparse.Namespace, cfg: DashboardConfig, store: DatasetStore) -> int:
    logger = get_logger()
    if args.date_range and (args.date_from or args.date_to):
        logger.error("--range cannot be combined with --from/--to")
        return EXIT_FATAL
    period = _period(args)

    if args.selected:
        datasets = store.selected()
        if not datasets:
            logger.error("no datasets selected")
            return EXIT_FATAL
    else:
        dataset = store.get(args.dataset_id) if args.dataset_id else store.active()
        if dataset is None:
            logger.error(f"dataset not found: {args.dataset_id or '(no active dataset)'}")
            return EXIT_FATAL
        datasets = [dataset]

    try:
        bundles = [_dataset_analytics(d, cfg, period) for d in datasets]
    except ValueError as e:
        logger.error(f"analytics: {e}")
        return EXIT_FATAL
    bundle = merge_analytics(bundles, labels=cfg.status_labels) if args.selected else bundles[0]
    print(json.dumps(bundle.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_SUCCESS_ALL


def _cmd_export(args: argparse.Namespace, cfg: DashboardConfig, store: DatasetStore) -> int:
    dataset = store.get(args.id)
    if dataset is None:
        get_logger().error(f"dataset not found: {args.id}")
        return EXIT_FATAL
    table = dataset.parsed_data
    args.out.parent.mkdir(parents=True, exist_ok=True)
    if args.format == "csv":
        args.out.write_text(export_csv(table), encoding="utf-8")
    elif args.format == "json":
        args.out.write_text(export_json(table), encoding="utf-8")
    else:
        status_column = resolve_columns(table.headers, cfg.column_synonyms).status
        args.out.write_bytes(
            export_excel(
                table,
                protect=not args.no_protect,
                status_column=status_column,
                labels=cfg.status_labels,
            )
        )
    get_logger().info(f"exported {args.id} -> {args.out}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # 空リスト [] も有効な引数として扱う (None のときだけ sys.argv を読む)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _cmd_inspect(args, cfg)

    store = DatasetStore(cfg.storage_path, cfg.storage_capacity_bytes)
    try:
        if args.command == "upload":
            return _cmd_upload(args, cfg, store)
        if args.command == "list":
            return _cmd_list(store)
        if args.command == "select":
            return _cmd_select(args, store)
        if args.command == "delete":
            return _cmd_delete(args, store)
        if args.command == "analytics":
            return _cmd_analytics(args, cfg, store)
        return _cmd_export(args, cfg, store)
    except StorageError as e:
        logger.error(f"storage: {e}")
        return EXIT_FATAL
