import argparse
import asyncio
import dataclasses
import json
import logging
from pathlib import Path

from .arcgis import build_name_filter, build_school_where
from .executor import QueryExecutor
from .output import sanitize_path, write_records
from .settings import get_settings


def _build_parser():
    parser = argparse.ArgumentParser(
        description="Search NCES school districts and schools",
    )

    parser.add_argument(
        "--district",
        help="District name (or part of it) to search",
        required=False,
    )

    parser.add_argument(
        "--school",
        help="School name (or part of it) to search",
        required=False,
    )

    parser.add_argument(
        "--district-id",
        default=None,
        help="Restrict school search to one district (LEAID)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds",
    )

    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, etc.)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit one JSON log line per upstream source",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the planned upstream query URLs without searching",
    )

    parser.add_argument(
        "--output",
        default=None,
        help="Write results to a file (path)",
    )

    parser.add_argument(
        "--format",
        choices=["jsonl", "json", "csv"],
        default="jsonl",
        help="Output format for --output",
    )

    parser.add_argument(
        "--append-output",
        dest="append_output",
        action="store_true",
        default=False,
        help="Append to output file if it exists",
    )
    return parser


def _planned_urls(executor, kind, text, district_id):
    if kind == "district":
        where = build_name_filter(text)
        limit = executor.district_cap
    else:
        where = build_school_where(text, district_id, executor.min_query_length)
        limit = executor.school_cap
    return {
        source.name: source.query_url(where, limit)
        for source in (executor.private, executor.public)
    }


async def _search(executor, kind, text, district_id):
    async with executor:
        if kind == "district":
            records = await executor.search_districts(text)
        else:
            records = await executor.search_schools(text, district_id)
    return records, list(executor.last_source_log)


def _describe(kind, record):
    if kind == "district":
        return f"{record.label} [{record.lea_id or 'N/A'}]"
    place = ", ".join(p for p in (record.city, record.state) if p)
    return f"{record.name or '(unnamed)'} - {place or 'N/A'} [{record.nces_id or 'N/A'}]"


def main(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.district and (args.school or args.district_id):
        parser.error("--district cannot be combined with --school/--district-id")
    if args.district:
        kind, text = "district", args.district
    elif args.school is not None or args.district_id:
        kind, text = "school", args.school or ""
    else:
        text = input("Enter a district name to search: ")
        kind = "district"

    logging.basicConfig(
        level=(args.log_level or "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = get_settings()
    if args.timeout:
        settings = dataclasses.replace(settings, http_timeout_s=args.timeout)
    executor = QueryExecutor.from_settings(settings)

    if args.dry_run:
        urls = _planned_urls(executor, kind, text, args.district_id)
        for name, url in urls.items():
            print(f"{name}: {url}")
        print(json.dumps({"kind": kind, "query": text.strip(), "planned": len(urls)}))
        return

    output_path = None
    if args.output:
        output_path = sanitize_path(args.output, Path.cwd())

    records, source_log = asyncio.run(_search(executor, kind, text, args.district_id))

    if output_path is not None:
        write_records(records, output_path, args.format, append=args.append_output)

    label = "districts" if kind == "district" else "schools"
    print(f"Found {len(records)} {label}:")
    for i, record in enumerate(records):
        print(f"{i+1}. {_describe(kind, record)}")
    if args.log_json:
        for entry in source_log:
            print(json.dumps(entry))
    summary = {
        "kind": kind,
        "query": text.strip(),
        "district_id": args.district_id,
        "sources": len(source_log),
        "failed": sum(1 for e in source_log if e.get("status") == "failed"),
        "total_items": len(records),
    }
    print(json.dumps(summary))


def _safe_main():
    try:
        main()
    except SystemExit:
        raise
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        raise SystemExit(1)


if __name__ == "__main__":
    _safe_main()
