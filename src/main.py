# src/main.py — v1
"""CLI entry point: classify, evaluate, cache commands.

Usage:
    ojlink classify <subject> --desired desired.json --ledger ledger.txt [--role ROLE]
    ojlink evaluate <subject> --desired desired.json [--role ROLE]
    ojlink cache show <subject>
    ojlink cache clear <subject>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import TypeAdapter

from ojlink.core.models import DesiredBinding
from ojlink.version import __version__

logger = logging.getLogger(__name__)

_DESIRED_LIST = TypeAdapter(list[DesiredBinding])


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        _setup_logging(args.verbose)
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ojlink",
        description=f"ojlink v{__version__}: reconcile desired judicial-body bindings",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- classify ---
    p_classify = subparsers.add_parser(
        "classify", help="Classify a subject's desired bindings against its ledger",
    )
    p_classify.add_argument("subject", help="Subject identifier")
    p_classify.add_argument(
        "--desired", type=Path, required=True,
        help='JSON list of {"entity": ..., "role": ...} objects',
    )
    p_classify.add_argument(
        "--ledger", type=Path, required=True,
        help="Text file with one bound entity per line",
    )
    p_classify.add_argument(
        "--role", default=None,
        help="Default role for desired items without one",
    )
    p_classify.set_defaults(func=_cmd_classify)

    # --- evaluate ---
    p_evaluate = subparsers.add_parser(
        "evaluate", help="Decide from the stored snapshot whether a subject can be skipped",
    )
    p_evaluate.add_argument("subject", help="Subject identifier")
    p_evaluate.add_argument("--desired", type=Path, required=True)
    p_evaluate.add_argument(
        "--role", default=None,
        help="Only count entities bound with this role as linked",
    )
    p_evaluate.set_defaults(func=_cmd_evaluate)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Inspect or clear stored snapshots")
    cache_sub = p_cache.add_subparsers(dest="cache_command")
    p_show = cache_sub.add_parser("show", help="Print a subject's snapshot")
    p_show.add_argument("subject")
    p_show.set_defaults(func=_cmd_cache_show)
    p_clear = cache_sub.add_parser("clear", help="Delete a subject's snapshot")
    p_clear.add_argument("subject")
    p_clear.set_defaults(func=_cmd_cache_clear)

    return parser


async def _cmd_classify(args: argparse.Namespace) -> int:
    """Run reconcile_subject and print the buckets."""
    from ojlink.api.facade import reconcile_subject
    from ojlink.config.settings import load_settings
    from ojlink.storage.store_factory import create_record_store

    desired = _read_desired(args.desired)
    ledger = _read_ledger(args.ledger)
    if desired is None or ledger is None:
        return 1

    settings = load_settings()
    store = create_record_store(settings)
    report = await reconcile_subject(
        args.subject,
        desired,
        ledger,
        desired_role=args.role,
        settings=settings,
        record_store=store,
    )

    print(f"\nSubject {report.subject_id}:")
    if report.skip_decision is not None:
        print(f"  Skip check:   {report.skip_decision.reason}")
    if report.skipped:
        print("  Skipped, nothing to do.")
    elif report.batch is not None:
        batch = report.batch
        for bucket in ("skip", "update_role", "verify_role", "create"):
            items = getattr(batch, bucket)
            print(f"  {bucket + ':':13s} {len(items)}")
            for item in items:
                print(f"    - {item.entity}")
        if batch.errors:
            print(f"  {'errors:':13s} {len(batch.errors)}")
        print(f"  Saved ~{batch.stats.estimated_seconds_saved}s")
    for warning in report.warnings:
        print(f"  Warning: {warning}")
    return 0


async def _cmd_evaluate(args: argparse.Namespace) -> int:
    """Evaluate the skip heuristic on the stored snapshot only."""
    from ojlink.cache.cache_store import CacheStore
    from ojlink.config.settings import load_settings
    from ojlink.skip.skip_detector import SkipDetector
    from ojlink.storage.store_factory import create_record_store

    desired = _read_desired(args.desired)
    if desired is None:
        return 1

    settings = load_settings()
    record = await create_record_store(settings).load(args.subject)
    cache = CacheStore.from_record(record) if record is not None else None
    detector = SkipDetector(
        settings.skip_tolerance_threshold,
        minimum_sample=settings.skip_minimum_sample,
        max_error_ratio=settings.skip_max_error_ratio,
    )
    decision = detector.evaluate_subject(desired, cache, require_role=args.role)

    stats = decision.stats
    print(f"\n{'SKIP' if decision.should_skip else 'PROCESS'}: {decision.reason}")
    print(f"  Valid:   {stats.valid}/{stats.total}")
    print(f"  Linked:  {stats.linked} ({stats.percent_linked:.1f}%)")
    print(f"  Pending: {stats.pending_count}")
    return 0


async def _cmd_cache_show(args: argparse.Namespace) -> int:
    from ojlink.config.settings import load_settings
    from ojlink.storage.store_factory import create_record_store

    record = await create_record_store(load_settings()).load(args.subject)
    if record is None:
        print(f"No fresh snapshot for subject {args.subject}")
        return 1
    print(f"\nSubject {record.subject_id} (saved {record.saved_at:%Y-%m-%d %H:%M:%S} UTC)")
    print(f"  Linked: {record.stats.linked}  Pending: {record.stats.pending}")
    for entry in record.entries:
        state = "linked " if entry.is_linked else "pending"
        print(f"  [{state}] {entry.original_text} (role: {entry.role or 'unknown'})")
    return 0


async def _cmd_cache_clear(args: argparse.Namespace) -> int:
    from ojlink.config.settings import load_settings
    from ojlink.storage.store_factory import create_record_store

    await create_record_store(load_settings()).delete(args.subject)
    print(f"Snapshot for subject {args.subject} cleared")
    return 0


def _read_desired(path: Path) -> list[DesiredBinding] | None:
    if not path.is_file():
        logger.error("File not found: %s", path)
        return None
    return _DESIRED_LIST.validate_json(path.read_text(encoding="utf-8"))


def _read_ledger(path: Path) -> list[str] | None:
    if not path.is_file():
        logger.error("File not found: %s", path)
        return None
    return [line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from settings."""
    from ojlink.config.settings import load_settings
    from ojlink.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
