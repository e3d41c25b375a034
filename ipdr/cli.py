#!/usr/bin/env python3
"""
IPDR Explorer CLI — summaries, filters, link graphs and Excel exports from the shell.

USAGE:
  python -m ipdr.cli summary records.csv                     # Totals, entities, date range
  python -m ipdr.cli summary records.csv --timeline 1D       # ...plus daily activity

  python -m ipdr.cli filter records.csv --eq src_ip=10.0.0.5
  python -m ipdr.cli filter records.csv --contains msisdn=9198 --limit 50
  python -m ipdr.cli filter records.csv --range start_time=2024-01-01..2024-01-31

  python -m ipdr.cli graph records.csv --eq msisdn=919800000001
  python -m ipdr.cli graph records.csv --json                # Nodes/edges as JSON

  python -m ipdr.cli export records.csv --output case.xlsx   # Styled workbook

  python -m ipdr.cli serve                                   # Start API server
  python -m ipdr.cli serve --port 8000 --reload
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from ipdr.config import EXPORTS_FOLDER, DEFAULT_TOP_N
from ipdr.data.errors import IpdrError
from ipdr.data.loader import read_path
from ipdr.data.schemas import Constraint, FilterPredicate
from ipdr.data.store import RecordStore


# ---------------------------------------------------------------------------
# Constraint arguments
# ---------------------------------------------------------------------------

def _split_pair(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected FIELD=VALUE, got '{text}'")
    return name.strip(), value


def parse_eq(text: str) -> Constraint:
    return Constraint.equals(*_split_pair(text))


def parse_contains(text: str) -> Constraint:
    return Constraint.contains(*_split_pair(text))


def parse_range(text: str) -> Constraint:
    """FIELD=LOW..HIGH, either side may be left open (FIELD=..HIGH)."""
    name, bounds = _split_pair(text)
    low, sep, high = bounds.partition("..")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected FIELD=LOW..HIGH, got '{text}'")
    return Constraint.between(name, low.strip() or None, high.strip() or None)


def _build_predicate(args) -> FilterPredicate:
    constraints = (
        list(getattr(args, "eq", None) or [])
        + list(getattr(args, "contains", None) or [])
        + list(getattr(args, "range", None) or [])
    )
    return FilterPredicate(tuple(constraints))


def _load(path: str) -> RecordStore:
    path = Path(path).expanduser()
    print(f"Reading {path.name}...")
    rows, headers = read_path(path)
    store = RecordStore()
    store.ingest(rows, headers, source=path.name)
    return store


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(f"  IPDR EXPLORER — {title}")
    print("=" * 70)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_summary(args):
    """Print totals, distinct entities and top values."""
    store = _load(args.file)
    predicate = _build_predicate(args)
    ids = store.evaluate(predicate)
    dataset = store.snapshot()

    from ipdr.analytics.summary import summarize, timeline, top_values
    s = summarize(dataset, ids).to_dict()

    _banner("SUMMARY")
    print(f"  Filter:         {predicate.label}")
    print(f"  Records:        {s['total_records']:,}")
    print(f"  Unique MSISDNs: {s['unique_msisdns']:,}")
    print(f"  Unique IPs:     {s['unique_ips']:,}")
    print(f"  Unique IMEIs:   {s['unique_imeis']:,}")
    print(f"  Date range:     {s['date_range']['from']}  →  {s['date_range']['to']}")
    print(f"  Bytes up/down:  {s['data_up_total']:,.0f} / {s['data_down_total']:,.0f}")

    for name in ("msisdn", "source_ip", "imei", "cell_id"):
        top = top_values(dataset, ids, name, args.top)
        if not top:
            continue
        print(f"\n  Top {name}:")
        for item in top:
            print(f"    {item['value']:<40}{item['count']:>8,}")

    if args.timeline:
        print(f"\n  Timeline ({args.timeline} buckets, UTC):")
        for b in timeline(dataset, ids, args.timeline):
            print(f"    {b.start:%Y-%m-%d %H:%M}  {b.count:>8,}")
    print()


def cmd_filter(args):
    """Print the records matching the given constraints."""
    store = _load(args.file)
    predicate = _build_predicate(args)
    ids = store.evaluate(predicate)

    _banner("FILTER")
    print(f"  Filter:  {predicate.label}")
    print(f"  Matches: {len(ids):,} of {store.row_count():,}\n")

    from ipdr.analytics.common import sanitize_for_json
    for rid in ids[:args.limit]:
        row = sanitize_for_json(store.get(rid).to_dict())
        print("  " + json.dumps(row, default=str))
    if len(ids) > args.limit:
        print(f"  ... {len(ids) - args.limit:,} more (raise --limit to see them)")
    print()


def cmd_graph(args):
    """Print or dump the link graph of the matching records."""
    store = _load(args.file)
    predicate = _build_predicate(args)
    graph = store.build_graph(store.evaluate(predicate))

    if args.json:
        json.dump(graph.to_dict(), sys.stdout, indent=2)
        print()
        return

    _banner("LINK GRAPH")
    print(f"  Filter: {predicate.label}")
    print(f"  Nodes:  {len(graph.nodes):,}")
    print(f"  Edges:  {len(graph.edges):,}\n")
    for edge in sorted(graph.edges, key=lambda e: -e.weight)[:args.limit]:
        print(f"    {edge.source.key:<36} — {edge.target.key:<36} x{edge.weight:,}")
    print()


def cmd_export(args):
    """Write the Summary/Records/Timeline/Links workbook."""
    store = _load(args.file)
    predicate = _build_predicate(args)
    ids = store.evaluate(predicate)

    output = Path(args.output) if args.output else EXPORTS_FOLDER / f"{Path(args.file).stem}_export.xlsx"

    from ipdr.reports.records_export import generate_excel
    path = generate_excel(store.snapshot(), output, ids, predicate.label)
    print(f"\n  {len(ids):,} records exported to: {path}\n")


def cmd_serve(args):
    """Start the API server."""
    import uvicorn
    print(f"\nStarting IPDR Explorer API on port {args.port}...")
    uvicorn.run("ipdr.main:app", host="0.0.0.0", port=args.port, reload=args.reload,
                timeout_keep_alive=65)


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", help="CSV, CSV.GZ, TXT or XLSX file")
    p.add_argument("--eq", action="append", type=parse_eq, metavar="FIELD=VALUE",
                   help="Exact match (case-insensitive), repeatable")
    p.add_argument("--contains", action="append", type=parse_contains, metavar="FIELD=TEXT",
                   help="Substring match, repeatable")
    p.add_argument("--range", action="append", type=parse_range, metavar="FIELD=LOW..HIGH",
                   help="Inclusive range on a time or numeric field, repeatable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipdr",
        description="IPDR Explorer — IPDR/CDR record analysis",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    # summary subcommand
    summary_parser = subparsers.add_parser("summary", help="Totals, entities, date range")
    _add_filter_args(summary_parser)
    summary_parser.add_argument("--top", type=int, default=DEFAULT_TOP_N, help="Top N values per field")
    summary_parser.add_argument("--timeline", metavar="WIDTH", help="Also print a timeline (e.g. 1h, 1D, 900)")
    summary_parser.set_defaults(func=cmd_summary)

    # filter subcommand
    filter_parser = subparsers.add_parser("filter", help="List matching records")
    _add_filter_args(filter_parser)
    filter_parser.add_argument("--limit", type=int, default=20, help="Records to print (default 20)")
    filter_parser.set_defaults(func=cmd_filter)

    # graph subcommand
    graph_parser = subparsers.add_parser("graph", help="Entity link graph")
    _add_filter_args(graph_parser)
    graph_parser.add_argument("--limit", type=int, default=25, help="Edges to print (default 25)")
    graph_parser.add_argument("--json", action="store_true", help="Dump nodes/edges as JSON")
    graph_parser.set_defaults(func=cmd_graph)

    # export subcommand
    export_parser = subparsers.add_parser("export", help="Excel workbook of matching records")
    _add_filter_args(export_parser)
    export_parser.add_argument("--output", help=f"Output .xlsx (default: {EXPORTS_FOLDER}/<file>_export.xlsx)")
    export_parser.set_defaults(func=cmd_export)

    # serve subcommand
    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")), help="Port (default 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    try:
        args.func(args)
    except (IpdrError, ValueError) as e:
        print(f"  Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
