from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from order_recon import __version__ as TOOL_VERSION
from order_recon.loader import load_matrix
from order_recon.reconcile import export_csv
from order_recon.reporter import (
    build_counts_payload,
    build_header_payload,
    build_reconcile_payload,
    build_report,
    build_stats_payload,
    render_counts_text,
    render_header_text,
    render_reconcile_text,
    render_stats_text,
    resolve_targets,
)
from order_recon.settings import DEFAULT_SETTINGS, Settings, load_settings, settings_to_dict
from order_recon.targets import parse_targets
from order_recon.workbook import write_reconciliation_workbook


EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_DISCREPANCIES = 3
EXIT_HEALTH_BELOW_THRESHOLD = 4


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class OrderReconArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("ORDER_RECON_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "order-recon-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def require_input(raw: str) -> Path:
    path = Path(raw)
    if not path.exists():
        raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)
    return path


def resolve_settings(args: argparse.Namespace) -> Settings:
    settings = DEFAULT_SETTINGS
    if getattr(args, "settings", None):
        settings_path = Path(args.settings)
        if not settings_path.exists():
            raise CliError(f"Settings file not found: {settings_path}", EXIT_COMMAND_ERROR)
        try:
            settings = load_settings(settings_path)
        except ValueError as exc:
            raise CliError(f"Invalid settings: {exc}", EXIT_COMMAND_ERROR) from exc
    tolerance = getattr(args, "tolerance", None)
    if tolerance is not None:
        try:
            settings = settings.with_overrides(amount_tolerance=tolerance)
        except ValueError as exc:
            raise CliError(f"Invalid --tolerance: {exc}", EXIT_COMMAND_ERROR) from exc
    return settings


def load_input(path: Path, sheet_name: str | None) -> tuple[list[list[Any]], list[str]]:
    loaded = load_matrix(path, sheet_name=sheet_name)
    return loaded["matrix"], list(loaded["warnings"])


def read_target_arguments(args: argparse.Namespace, quiet: bool) -> list[str]:
    targets: list[str] = []
    if args.targets_file:
        targets_path = Path(args.targets_file)
        if not targets_path.exists():
            raise CliError(f"Targets file not found: {targets_path}", EXIT_COMMAND_ERROR)
        targets.extend(targets_path.read_text(encoding="utf-8").splitlines())
    targets.extend(args.target or [])
    parsed, duplicates = parse_targets("\n".join(targets))
    if duplicates:
        emit_human(f"Ignored duplicate targets: {', '.join(duplicates)}", quiet=quiet)
    return parsed


def write_optional_output(args: argparse.Namespace, input_path: Path, default_name: str, payload: Any) -> Path | None:
    if not (args.output or args.out_dir):
        return None
    out_dir = determine_output_dir(args, input_path)
    output_path = Path(args.output) if args.output else out_dir / default_name
    write_json(output_path, payload)
    return output_path


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    parser.add_argument("--output", help="Explicit output path")
    parser.add_argument("--settings", help="Settings JSON path")
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")


def build_parser() -> argparse.ArgumentParser:
    parser = OrderReconArgumentParser(
        prog="order-recon",
        description="Order Log header extraction, billing target counts and order reconciliation.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    header = subparsers.add_parser("header", help="Extract the Order Log header block.")
    header.add_argument("input", help="Order Log file path")
    header.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    add_common_arguments(header)

    count = subparsers.add_parser("count", help="Count target occurrences in a Billing Export.")
    count.add_argument("input", help="Billing Export file path")
    count.add_argument("-t", "--target", action="append", help="Target string (repeatable)")
    count.add_argument("--targets-file", dest="targets_file", help="File with one target per line")
    count.add_argument("--order-log", dest="order_log", help="Derive targets from this Order Log's order column")
    count.add_argument("--sort", choices=["count", "target"], default="count", help="Sort column for the ranked table")
    count.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    add_common_arguments(count)

    stats = subparsers.add_parser("stats", help="Statistics, date range and data health for one file.")
    stats.add_argument("input", help="Input file path")
    stats.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    stats.add_argument("--min-score", dest="min_score", type=int, help="Exit 4 when the health score is below this")
    add_common_arguments(stats)

    reconcile = subparsers.add_parser("reconcile", help="Reconcile an Order Log against a Billing Export.")
    reconcile.add_argument("order_log", help="Order Log file path (side A)")
    reconcile.add_argument("billing", help="Billing Export file path (side B)")
    reconcile.add_argument("--sheet-a", dest="sheet_a", help="Workbook sheet name for side A")
    reconcile.add_argument("--sheet-b", dest="sheet_b", help="Workbook sheet name for side B")
    reconcile.add_argument("--tolerance", type=float, help="Amount tolerance for a match")
    reconcile.add_argument("--delimiter", default=",", help="CSV export delimiter")
    reconcile.add_argument("--xlsx", action="store_true", help="Also write a reconciliation workbook")
    add_common_arguments(reconcile)

    report = subparsers.add_parser("report", help="Run every check over both exports.")
    report.add_argument("order_log", help="Order Log file path (side A)")
    report.add_argument("billing", help="Billing Export file path (side B)")
    report.add_argument("-t", "--target", action="append", help="Target string (repeatable)")
    report.add_argument("--targets-file", dest="targets_file", help="File with one target per line")
    report.add_argument("--sheet-a", dest="sheet_a", help="Workbook sheet name for side A")
    report.add_argument("--sheet-b", dest="sheet_b", help="Workbook sheet name for side B")
    report.add_argument("--tolerance", type=float, help="Amount tolerance for a match")
    report.add_argument("--format", choices=["text", "json"], default="text", help="Output format when --json is not used")
    add_common_arguments(report)

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a settings file with the defaults.")
    config_init.add_argument("--path", default="order-recon.json", help="Settings output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_header(args: argparse.Namespace) -> int:
    input_path = require_input(args.input)
    settings = resolve_settings(args)
    matrix, warnings = load_input(input_path, args.sheet_name)
    payload = build_header_payload(matrix, input_path, settings, warnings)
    output_path = write_optional_output(args, input_path, "header.json", payload)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_header_text(payload["header"]), quiet=args.quiet)
        if output_path:
            emit_human(f"Header written: {output_path}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_count(args: argparse.Namespace) -> int:
    input_path = require_input(args.input)
    settings = resolve_settings(args)
    explicit = read_target_arguments(args, args.quiet)
    order_log = None
    if not explicit and args.order_log:
        order_log, _ = load_input(require_input(args.order_log), None)
    targets, source = resolve_targets(explicit, order_log, settings)
    matrix, warnings = load_input(input_path, args.sheet_name)
    payload = build_counts_payload(
        matrix,
        targets,
        input_path,
        target_source=source,
        sort_by=args.sort,
        warnings=warnings,
    )
    output_path = write_optional_output(args, input_path, "counts.json", payload)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(f"Targets: {source} ({len(targets)})", quiet=args.quiet)
        emit_human(render_counts_text(payload["ranked"], payload["result"]), quiet=args.quiet)
        if output_path:
            emit_human(f"Counts written: {output_path}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_stats(args: argparse.Namespace) -> int:
    input_path = require_input(args.input)
    settings = resolve_settings(args)
    matrix, warnings = load_input(input_path, args.sheet_name)
    payload = build_stats_payload(matrix, input_path, settings, warnings)
    output_path = write_optional_output(args, input_path, "stats.json", payload)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_stats_text(payload, settings), quiet=args.quiet)
        if output_path:
            emit_human(f"Stats written: {output_path}", quiet=args.quiet)
    if args.min_score is not None and payload["health"]["score"] < args.min_score:
        return EXIT_HEALTH_BELOW_THRESHOLD
    return EXIT_SUCCESS


def run_reconcile(args: argparse.Namespace) -> int:
    path_a = require_input(args.order_log)
    path_b = require_input(args.billing)
    if len(args.delimiter) != 1:
        raise CliError("--delimiter must be a single character.", EXIT_COMMAND_ERROR)
    settings = resolve_settings(args)
    matrix_a, warnings_a = load_input(path_a, args.sheet_a)
    matrix_b, warnings_b = load_input(path_b, args.sheet_b)
    payload, result = build_reconcile_payload(
        matrix_a,
        matrix_b,
        path_a,
        path_b,
        settings,
        [f"A: {warning}" for warning in warnings_a] + [f"B: {warning}" for warning in warnings_b],
    )

    out_dir = determine_output_dir(args, path_a)
    csv_path = Path(args.output) if args.output else out_dir / "reconciliation.csv"
    write_text(csv_path, export_csv(result, delimiter=args.delimiter))
    outputs = {"csv": str(csv_path)}
    if args.xlsx:
        xlsx_path = write_reconciliation_workbook(result, csv_path.with_suffix(".xlsx"))
        outputs["xlsx"] = str(xlsx_path)

    if args.json:
        payload = dict(payload)
        payload["outputs"] = outputs
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_reconcile_text(payload), quiet=args.quiet)
        for warning in payload["warnings"]:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
        emit_human(f"Reconciliation written: {csv_path}", quiet=args.quiet)
        if "xlsx" in outputs:
            emit_human(f"Workbook written: {outputs['xlsx']}", quiet=args.quiet)

    if payload["summary"]["discrepancy_count"] > 0:
        return EXIT_DISCREPANCIES
    return EXIT_SUCCESS


def run_report(args: argparse.Namespace) -> int:
    path_a = require_input(args.order_log)
    path_b = require_input(args.billing)
    settings = resolve_settings(args)
    targets = read_target_arguments(args, args.quiet)
    payload = build_report(
        path_a,
        path_b,
        settings=settings,
        targets=targets or None,
        sheet_a=args.sheet_a,
        sheet_b=args.sheet_b,
    )

    out_dir = determine_output_dir(args, path_a)
    as_json = args.json or args.format == "json"
    report_path = Path(args.output) if args.output else out_dir / ("report.json" if as_json else "report.txt")
    if as_json:
        write_json(report_path, payload)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(f"Report written: {report_path}", quiet=args.quiet)
    else:
        write_text(report_path, payload["text_report"])
        emit_human(payload["text_report"].rstrip(), quiet=args.quiet)
        emit_human(f"Report written: {report_path}", quiet=args.quiet)

    if payload["reconciliation"]["summary"]["discrepancy_count"] > 0:
        return EXIT_DISCREPANCIES
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, settings_to_dict(DEFAULT_SETTINGS))
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


COMMANDS = {
    "header": run_header,
    "count": run_count,
    "stats": run_stats,
    "reconcile": run_reconcile,
    "report": run_report,
}


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "version":
            return run_version()
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        handler = COMMANDS.get(args.command)
        if handler is None:
            raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
        try:
            return handler(args)
        except Exception as exc:
            eprint(str(exc))
            return classify_backend_exception(exc)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
