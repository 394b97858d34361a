"""
order-recon reporter.py

Builds versioned JSON payloads and plain-text summaries from the core
operations. Every payload carries a contract block, the tool version and a
run summary so downstream consumers can pin the shape they read.

The end-to-end flow mirrors how the two exports are used together:

    Order Log      -> header metadata, order identifiers, statistics, health
    Billing Export -> target counts, statistics, health
    both           -> record-level reconciliation
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from order_recon import __version__ as TOOL_VERSION
from order_recon.analytics import (
    assess_data_health,
    calculate_date_range,
    calculate_statistics,
    generate_trend_data,
    resolve_columns,
)
from order_recon.cells import Matrix
from order_recon.contracts import build_contract, build_run_summary
from order_recon.header import extract_header
from order_recon.loader import load_matrix
from order_recon.parsing import format_amount
from order_recon.reconcile import (
    ReconciliationResult,
    get_reconciliation_summary,
    reconcile_matrices,
)
from order_recon.settings import DEFAULT_SETTINGS, Settings
from order_recon.targets import DEFAULT_TARGETS, count_targets, derive_targets, rank_counts

TOOL_NAME = "order-recon"


def _envelope(name: str, command: str, input_paths: list[Path], metrics: dict[str, Any], warnings: list[str]) -> dict[str, Any]:
    contract = build_contract(name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "run_summary": build_run_summary(
            tool=TOOL_NAME,
            command=command,
            input_paths=input_paths,
            metrics=metrics,
            warnings=warnings,
        ),
        "warnings": list(warnings),
    }


def build_header_payload(
    matrix: Matrix,
    input_path: Path,
    settings: Settings = DEFAULT_SETTINGS,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    header = extract_header(matrix, settings).to_dict()
    found = sum(1 for value in header.values() if value)
    payload = _envelope(
        "order_recon.header",
        "header",
        [input_path],
        {"fields_found": found, "fields_total": len(header)},
        list(warnings or []),
    )
    payload["file"] = input_path.name
    payload["header"] = header
    return payload


def resolve_targets(
    explicit: Sequence[str] | None,
    order_log: Matrix | None,
    settings: Settings = DEFAULT_SETTINGS,
) -> tuple[list[str], str]:
    """Pick the target list: explicit, else order-log identifiers, else defaults."""
    if explicit:
        return list(explicit), "explicit"
    if order_log:
        derived = derive_targets(order_log, settings)
        if derived:
            return derived, "order_log"
    return list(DEFAULT_TARGETS), "default"


def build_counts_payload(
    matrix: Matrix,
    targets: Sequence[str],
    input_path: Path,
    *,
    target_source: str = "explicit",
    sort_by: str = "count",
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    result = count_targets(matrix, targets)
    payload = _envelope(
        "order_recon.counts",
        "count",
        [input_path],
        {
            "targets": len(result.counts),
            "total_matches": result.total_matches,
            "unique_targets_found": result.unique_targets_found,
        },
        list(warnings or []),
    )
    payload["file"] = input_path.name
    payload["target_source"] = target_source
    payload["result"] = result.to_dict()
    payload["ranked"] = [
        {"target": target, "count": count}
        for target, count in rank_counts(result, by=sort_by, descending=sort_by == "count")
    ]
    return payload


def build_stats_payload(
    matrix: Matrix,
    input_path: Path,
    settings: Settings = DEFAULT_SETTINGS,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    statistics = calculate_statistics(matrix, settings)
    date_range = calculate_date_range(matrix, settings)
    health = assess_data_health(matrix, settings)
    payload = _envelope(
        "order_recon.stats",
        "stats",
        [input_path],
        {
            "rows": max(0, len(matrix) - 1),
            "transaction_count": statistics.transaction_count,
            "health_score": health.score,
        },
        list(warnings or []),
    )
    payload["file"] = input_path.name
    payload["columns"] = resolve_columns(matrix, settings).to_dict()
    payload["statistics"] = statistics.to_dict()
    payload["trend"] = generate_trend_data(statistics.amounts, settings.trend_points)
    payload["date_range"] = date_range.to_dict()
    payload["health"] = health.to_dict()
    return payload


def reconciliation_to_dict(result: ReconciliationResult) -> dict[str, Any]:
    return {
        "summary": get_reconciliation_summary(result).to_dict(),
        "matches": [item.to_dict() for item in result.matches],
        "discrepancies": [item.to_dict() for item in result.discrepancies],
    }


def build_reconcile_payload(
    matrix_a: Matrix,
    matrix_b: Matrix,
    path_a: Path,
    path_b: Path,
    settings: Settings = DEFAULT_SETTINGS,
    warnings: list[str] | None = None,
) -> tuple[dict[str, Any], ReconciliationResult]:
    result = reconcile_matrices(matrix_a, matrix_b, settings)
    summary = get_reconciliation_summary(result)
    all_warnings = list(warnings or []) + result.warnings
    payload = _envelope(
        "order_recon.reconcile",
        "reconcile",
        [path_a, path_b],
        {
            "match_count": summary.match_count,
            "discrepancy_count": summary.discrepancy_count,
            "match_percentage": summary.match_percentage,
        },
        all_warnings,
    )
    payload["files"] = {"a": path_a.name, "b": path_b.name}
    payload["amount_tolerance"] = settings.amount_tolerance
    payload.update(reconciliation_to_dict(result))
    return payload, result


def build_report(
    order_log_path: "str | Path",
    billing_path: "str | Path",
    *,
    settings: Settings = DEFAULT_SETTINGS,
    targets: Sequence[str] | None = None,
    sheet_a: str | None = None,
    sheet_b: str | None = None,
) -> dict[str, Any]:
    """Load both exports and run every core operation over them."""
    order_log_path = Path(order_log_path)
    billing_path = Path(billing_path)
    loaded_a = load_matrix(order_log_path, sheet_name=sheet_a)
    loaded_b = load_matrix(billing_path, sheet_name=sheet_b)
    matrix_a = loaded_a["matrix"]
    matrix_b = loaded_b["matrix"]

    chosen_targets, target_source = resolve_targets(targets, matrix_a, settings)
    counts = build_counts_payload(matrix_b, chosen_targets, billing_path, target_source=target_source)
    result = reconcile_matrices(matrix_a, matrix_b, settings)
    summary = get_reconciliation_summary(result)

    warnings = (
        [f"A: {warning}" for warning in loaded_a["warnings"]]
        + [f"B: {warning}" for warning in loaded_b["warnings"]]
        + result.warnings
    )
    stats_a = build_stats_payload(matrix_a, order_log_path, settings)
    stats_b = build_stats_payload(matrix_b, billing_path, settings)

    payload = _envelope(
        "order_recon.report",
        "report",
        [order_log_path, billing_path],
        {
            "total_matches": counts["result"]["total_matches"],
            "match_percentage": summary.match_percentage,
            "discrepancy_count": summary.discrepancy_count,
            "health_score_a": stats_a["health"]["score"],
            "health_score_b": stats_b["health"]["score"],
        },
        warnings,
    )
    payload["files"] = {"a": order_log_path.name, "b": billing_path.name}
    payload["header"] = extract_header(matrix_a, settings).to_dict()
    payload["target_source"] = target_source
    payload["counts"] = counts["result"]
    payload["ranked_counts"] = counts["ranked"]
    payload["statistics"] = {
        "a": {key: stats_a[key] for key in ("columns", "statistics", "trend", "date_range", "health")},
        "b": {key: stats_b[key] for key in ("columns", "statistics", "trend", "date_range", "health")},
    }
    payload["reconciliation"] = reconciliation_to_dict(result)
    payload["text_report"] = render_report_text(payload, settings)
    return payload


# ══════════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════════

HEADER_FIELD_LABELS = [
    ("date", "Datum"),
    ("order_number", "Auftrag Nr."),
    ("location", "Ort"),
    ("customer", "Kunde"),
    ("facility", "Anlage"),
]


def render_header_text(header: dict[str, str]) -> str:
    lines = ["Header"]
    for key, label in HEADER_FIELD_LABELS:
        lines.append(f"  {label}: {header.get(key) or 'N/A'}")
    return "\n".join(lines)


def render_counts_text(ranked: list[dict[str, Any]], result: dict[str, Any]) -> str:
    lines = [
        "Target counts",
        f"  Rows scanned: {result['row_count']}",
        f"  Total matches: {result['total_matches']}",
        f"  Targets found: {result['unique_targets_found']} of {len(result['counts'])}",
    ]
    if ranked:
        width = max(len(entry["target"]) for entry in ranked)
        for entry in ranked:
            lines.append(f"    {entry['target'].ljust(width)}  {entry['count']}")
    return "\n".join(lines)


def render_stats_text(stats: dict[str, Any], settings: Settings = DEFAULT_SETTINGS, title: str = "Statistics") -> str:
    statistics = stats["statistics"]
    health = stats["health"]
    lines = [
        title,
        f"  Transactions: {statistics['transaction_count']}",
        f"  Total: {format_amount(statistics['total_amount'], settings.currency_symbol)}",
        f"  Average: {format_amount(statistics['average_amount'], settings.currency_symbol)}",
        f"  Date range: {stats['date_range']['label']}",
        f"  Health score: {health['score']}/100 — {health['label']}",
    ]
    for issue in health["issues"]:
        lines.append(f"    - {issue}")
    return "\n".join(lines)


def render_reconcile_text(reconciliation: dict[str, Any], limit: int = 20) -> str:
    summary = reconciliation["summary"]
    lines = [
        "Reconciliation",
        f"  Records: A {summary['total_a']} / B {summary['total_b']}",
        f"  Matches: {summary['match_count']} ({summary['match_percentage']}%)",
        f"  Amount mismatches: {summary['amount_mismatches']}",
        f"  Missing in B: {summary['missing_in_b']}",
        f"  Missing in A: {summary['missing_in_a']}",
    ]
    discrepancies = reconciliation["discrepancies"]
    for item in discrepancies[:limit]:
        lines.append(f"    - {item['message']}")
    if len(discrepancies) > limit:
        lines.append(f"    … {len(discrepancies) - limit} more")
    return "\n".join(lines)


def render_report_text(payload: dict[str, Any], settings: Settings = DEFAULT_SETTINGS) -> str:
    files = payload["files"]
    sections = [
        f"order-recon report\nA (Order Log): {files['a']}\nB (Billing Export): {files['b']}",
        render_header_text(payload["header"]),
        render_counts_text(payload["ranked_counts"], payload["counts"]),
        render_stats_text(payload["statistics"]["a"], settings, title="Statistics — A"),
        render_stats_text(payload["statistics"]["b"], settings, title="Statistics — B"),
        render_reconcile_text(payload["reconciliation"]),
    ]
    if payload["warnings"]:
        sections.append("Warnings\n" + "\n".join(f"  - {warning}" for warning in payload["warnings"]))
    return "\n\n".join(sections) + "\n"
