#!/usr/bin/env python3
"""
Operate the yield kernel from the command line.

Usage:
    python3 scripts/yield_cli.py init-db
    python3 scripts/yield_cli.py seed [--config default]
    python3 scripts/yield_cli.py estimate --category Vaquillona --weight 400 --units 4
    python3 scripts/yield_cli.py record-yield --category Vaquillona --weight 100 \\
        --cut "Hueso=15" --cut "Lomo=2.9"
    python3 scripts/yield_cli.py register-batch --description "Media res" \\
        --category Novillo --weight 1000 --units 10 [--entry-date 2026-03-01]
    python3 scripts/yield_cli.py close-day --reading 120:45.5 --reading 80:20 \\
        [--date 2026-03-01]
    python3 scripts/yield_cli.py batches

Database:
    DATABASE_URL (or --db-url) selects the database; the default is a
    SQLite file next to the working directory.  Each command runs in one
    transaction: it either fully commits or leaves nothing behind.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = os.environ.get("DATABASE_URL", "sqlite:///yield_kernel.db")


def _decimal_arg(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from e


def _cut_arg(value: str) -> tuple[str, Decimal]:
    name, sep, kg = value.rpartition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=KG, got {value!r}")
    return name.strip(), _decimal_arg(kg)


def _reading_arg(value: str) -> dict[str, str]:
    start, sep, end = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected KG_START:KG_END, got {value!r}")
    return {"kg_start": str(_decimal_arg(start)), "kg_end": str(_decimal_arg(end))}


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Yield projection, adaptive learning and bulk stock ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--db-url",
        default=DB_URL,
        help=f"Database URL (default: {DB_URL!r}).",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at INFO on stderr.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")

    seed = sub.add_parser("seed", help="Load a configuration set into the database.")
    seed.add_argument("--config", default="default", help="Configuration set name.")

    estimate = sub.add_parser("estimate", help="Project a purchase into per-cut kg.")
    estimate.add_argument("--category", required=True)
    estimate.add_argument("--weight", required=True, type=_decimal_arg)
    estimate.add_argument("--units", type=int, default=None)

    record = sub.add_parser("record-yield", help="Record a real breakdown and learn from it.")
    record.add_argument("--category", required=True)
    record.add_argument("--weight", required=True, type=_decimal_arg)
    record.add_argument("--cut", action="append", type=_cut_arg, required=True, dest="cuts")
    record.add_argument("--notes", default=None)

    batch = sub.add_parser("register-batch", help="Register a bulk delivery.")
    batch.add_argument("--description", required=True)
    batch.add_argument("--category", required=True)
    batch.add_argument("--weight", required=True, type=_decimal_arg)
    batch.add_argument("--units", required=True, type=int)
    batch.add_argument("--entry-date", type=date.fromisoformat, default=None)
    batch.add_argument("--bone", type=_decimal_arg, default=None)
    batch.add_argument("--fat", type=_decimal_arg, default=None)
    batch.add_argument("--shrink", type=_decimal_arg, default=None)
    batch.add_argument("--supplier", default=None)

    close = sub.add_parser("close-day", help="Close a day from its scale readings.")
    close.add_argument("--date", type=date.fromisoformat, default=None)
    close.add_argument("--reading", action="append", type=_reading_arg, default=[], dest="readings")
    close.add_argument("--closed-by", default=None)

    sub.add_parser("batches", help="List bulk stock batches.")

    return parser.parse_args(argv)


def _category(session, name: str):
    from yield_services import CatalogService

    category = CatalogService(session).get_category_by_name(name)
    if category is None:
        raise SystemExit(f"ERROR: Unknown category {name!r}")
    return category


def _cmd_seed(session, args, config) -> None:
    from yield_config.seeder import seed_catalog

    report = seed_catalog(session, config)
    print(
        f"Seeded {config.config_id} v{config.version}: "
        f"{report.categories} categories, {report.weight_ranges} ranges, "
        f"{report.cuts} cuts, {report.templates} templates"
    )


def _cmd_estimate(session, args, config) -> None:
    from yield_services import ProjectionService

    result = ProjectionService(session, config.settings).estimate_stock(
        category_id=_category(session, args.category).id,
        total_weight=args.weight,
        unit_count=args.units,
    )
    print(f"{result.category_name} / {result.range_label} ({result.template_name})")
    for cut in result.projection.per_cut:
        print(f"  {cut.cut_name:<24} {cut.percentage:>7}%  {cut.estimated_kg:>10} kg")
    print(f"  {'Total projected':<24} {'':>8} {result.total_projected:>10} kg")
    print(f"  {'Variance':<24} {'':>8} {result.variance:>10} kg")


def _cmd_record_yield(session, args, config) -> None:
    from yield_services import CatalogService, LearningService

    cuts = {c.name: c for c in CatalogService(session).list_cuts()}
    items = []
    for name, kg in args.cuts:
        if name not in cuts:
            raise SystemExit(f"ERROR: Unknown cut {name!r}")
        items.append((cuts[name].id, kg))

    result = LearningService(session, config.settings).record_real_yield(
        category_id=_category(session, args.category).id,
        total_weight=args.weight,
        items=items,
        notes=args.notes,
    )
    print(f"Real yield #{result.real_yield.yield_number} recorded")
    print(f"  Registered {result.total_kg_registered} kg, variance {result.variance} kg")
    print(f"  {result.learning.message}")
    for change in result.learning.changes:
        print(f"  {change.cut_name:<24} {change.previous_pct:>7}% -> {change.new_pct:>7}%")


def _cmd_register_batch(session, args, config) -> None:
    from yield_services import GeneralStockLedger

    category = _category(session, args.category)
    batch = GeneralStockLedger(session, settings=config.settings).register_batch(
        batch_description=args.description,
        animal_category=category.name,
        unit_count=args.units,
        total_weight_kg=args.weight,
        category_id=category.id,
        entry_date=args.entry_date,
        bone_percent=args.bone,
        fat_percent=args.fat,
        shrink_percent=args.shrink,
        supplier=args.supplier,
    )
    print(
        f"Batch #{batch.batch_number} registered: {batch.sellable_kg} sellable kg "
        f"(bone {batch.bone_percent}%, fat {batch.fat_percent}%, shrink {batch.shrink_percent}%)"
    )


def _cmd_close_day(session, args, config) -> None:
    from yield_services import DailyCloseService

    result = DailyCloseService(session, settings=config.settings).close_day(
        close_date=args.date,
        scale_readings=args.readings,
        closed_by=args.closed_by,
    )
    verb = "Re-closed" if result.reclosed else "Closed"
    print(f"{verb} {result.close.close_date}: {result.total_scale_kg} kg on scales")
    for line in result.deduction.deductions:
        flag = " (depleted)" if line.depleted else ""
        print(f"  {line.batch_description:<30} -{line.deducted_kg} kg{flag}")
    if result.unaccounted_kg > 0:
        print(f"  WARNING: {result.unaccounted_kg} kg not covered by any batch")


def _cmd_batches(session, args, config) -> None:
    from yield_services import GeneralStockLedger

    for batch in GeneralStockLedger(session).list_batches():
        print(
            f"  #{batch.batch_number:<5} {batch.entry_date} {batch.batch_description:<30} "
            f"{batch.sold_kg:>10}/{batch.sellable_kg:<10} {batch.status}"
        )


_COMMANDS = {
    "seed": _cmd_seed,
    "estimate": _cmd_estimate,
    "record-yield": _cmd_record_yield,
    "register-batch": _cmd_register_batch,
    "close-day": _cmd_close_day,
    "batches": _cmd_batches,
}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from yield_config import get_active_config
    from yield_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from yield_kernel.exceptions import YieldKernelError
    from yield_kernel.logging_config import configure_logging

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        init_engine_from_url(args.db_url)
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        create_tables()
        print("Tables created.")
        return 0

    try:
        config = get_active_config(getattr(args, "config", "default"))
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    try:
        with session_scope() as session:
            _COMMANDS[args.command](session, args, config)
    except YieldKernelError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
