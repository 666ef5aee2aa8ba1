"""
Command Line Interface

Usage:
    python -m pill_pipeline identify photo.jpg
    python -m pill_pipeline identify photo.jpg --search --manufacturer Mylan
    python -m pill_pipeline identify https://example.com/pills.jpg --json

Exit codes:
    0  identification finished (possibly with failed regions)
    1  identification finished but the search failed
    2  run-level failure (invalid image, no pills detected, detector unreachable)
"""

from typing import Optional, List, Callable, Dict, Any
import argparse
import asyncio
import json
import sys

from .config.settings import AppConfig
from .cross_cutting.logging import setup_logging
from .domain.entities.report import AggregateReport
from .domain.entities.search import SearchResult, SecondaryHints
from .domain.exceptions import DomainException
from .application.services.identification_service import (
    IdentificationService,
    create_identification_service,
)


EXIT_OK = 0
EXIT_SEARCH_FAILED = 1
EXIT_RUN_FAILED = 2

MAX_PRINTED_MATCHES = 10

ServiceFactory = Callable[[AppConfig], IdentificationService]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pill_pipeline",
        description="Identify pills in a photograph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--env-file", type=str, default=None,
        help="Path to a .env file with provider credentials",
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    identify = subparsers.add_parser("identify", help="Detect and describe every pill in an image")
    identify.add_argument("image", help="Image file path or http(s) URL")
    identify.add_argument(
        "--context-hint", type=str, default=None,
        help="Free-text context passed to the vision model",
    )
    identify.add_argument(
        "--search", action="store_true",
        help="Search the reference store with the best identified pill",
    )
    identify.add_argument("--suspected-name", type=str, default=None, help="Rerank hint: suspected drug name")
    identify.add_argument("--manufacturer", type=str, default=None, help="Rerank hint: manufacturer")
    identify.add_argument("--strength", type=str, default=None, help="Rerank hint: strength, e.g. 500 mg")
    identify.add_argument(
        "--data", type=str, default=None,
        help="JSON file of reference pills for the in-memory store",
    )
    identify.add_argument("--json", action="store_true", help="Print machine-readable JSON")

    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_env(env_file=args.env_file)
    if args.log_level:
        config.logging.level = args.log_level
    if getattr(args, "data", None):
        config.store.type = "memory"
        config.store.data_path = args.data
    return config


def _hints_from_args(args: argparse.Namespace) -> SecondaryHints:
    return SecondaryHints(
        suspected_name=args.suspected_name,
        manufacturer=args.manufacturer,
        strength=args.strength,
    )


# =============================================================================
# Output
# =============================================================================

def format_report(report: AggregateReport) -> str:
    lines = [report.summary()]
    for unit in report.sorted_regions():
        if unit.is_success:
            detail = f"{unit.attributes.describe()} ({unit.attributes.confidence_score.percentage}%)"
        else:
            detail = unit.reason or ""
        lines.append(f"  [{unit.region_id}] {unit.display_status:<14} {detail}")
    return "\n".join(lines)


def format_search(result: SearchResult) -> str:
    label = "Reranked" if result.reranked else "Search"
    lines = [f"{label}: {result.total_results} matches (confidence {result.confidence:.0%})"]
    for match in result.matches[:MAX_PRINTED_MATCHES]:
        record = match.record
        name = record.brand_name or record.generic_name or record.name or record.id
        boost = " +" if match.boost_applied else ""
        lines.append(
            f"  {match.score:>5.0%}{boost}  {name}"
            f"  [{record.shape or '?'} / {record.color or '?'} / {record.front_imprint or '-'}]"
        )
    return "\n".join(lines)


# =============================================================================
# Commands
# =============================================================================

async def run_identify(args: argparse.Namespace, service: IdentificationService) -> int:
    output: Dict[str, Any] = {}
    options = {"context_hint": args.context_hint} if args.context_hint else None

    try:
        if args.image.startswith(("http://", "https://")):
            report = await service.identify_from_url(args.image, options)
        else:
            report = await service.identify_from_file(args.image, options)
    except DomainException as e:
        _emit_error(args, e)
        return EXIT_RUN_FAILED

    output["report"] = report.to_dict()
    if not args.json:
        print(format_report(report))

    hints = _hints_from_args(args)
    if not args.search and hints.is_empty:
        _emit_json(args, output)
        return EXIT_OK

    best = report.best_unit()
    if best is None:
        if not args.json:
            print("Nothing to search: no pill was identified.")
        _emit_json(args, output)
        return EXIT_OK

    try:
        result = await service.search(best.attributes, detected=best.attributes)
        if not hints.is_empty:
            result = await service.rerank(result, hints)
    except DomainException as e:
        output["error"] = e.to_dict()
        if not args.json:
            print(f"Search failed: {e.message}", file=sys.stderr)
        _emit_json(args, output)
        return EXIT_SEARCH_FAILED

    output["search"] = result.to_dict()
    if not args.json:
        print(format_search(result))
    _emit_json(args, output)
    return EXIT_OK


def _emit_json(args: argparse.Namespace, payload: Dict[str, Any]) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, default=str))


def _emit_error(args: argparse.Namespace, error: DomainException) -> None:
    if args.json:
        print(json.dumps({"error": error.to_dict()}, indent=2, default=str))
    else:
        print(f"Error: {error.message}", file=sys.stderr)


async def _run(args: argparse.Namespace, service: IdentificationService) -> int:
    try:
        return await run_identify(args, service)
    finally:
        await service.close()


def main(
    argv: Optional[List[str]] = None,
    service_factory: ServiceFactory = create_identification_service
) -> int:
    """Entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args)
    # stdout carries the report
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.log_file,
        format_string=config.logging.format,
        stream=sys.stderr,
    )

    try:
        service = service_factory(config)
    except DomainException as e:
        _emit_error(args, e)
        return EXIT_RUN_FAILED

    return asyncio.run(_run(args, service))
