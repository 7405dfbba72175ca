"""CLI entry point for mykhata."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import load_config
from .errors import MyKhataError
from .scheduler import MaintenanceScheduler
from .service import MyKhata


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mykhata",
        description="Scan receipts and predict spending categories",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the config file (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # scan
    scan_parser = sub.add_parser("scan", help="Extract data from receipt images")
    scan_parser.add_argument("images", nargs="+", metavar="IMAGE")
    scan_parser.add_argument("--json", action="store_true", help="Output as JSON")
    scan_parser.add_argument(
        "--user", "-u", default=None, help="Save the scanned receipts for this user"
    )

    # suggest
    suggest_parser = sub.add_parser("suggest", help="Suggest categories for a merchant")
    suggest_parser.add_argument("merchant", metavar="MERCHANT")
    suggest_parser.add_argument("--user", "-u", required=True)
    suggest_parser.add_argument("--limit", type=int, default=None)
    suggest_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # learn
    learn_parser = sub.add_parser("learn", help="Record a merchant's category")
    learn_parser.add_argument("merchant", metavar="MERCHANT")
    learn_parser.add_argument("category_id", metavar="CATEGORY_ID")
    learn_parser.add_argument("--user", "-u", required=True)

    # categories
    cat_parser = sub.add_parser("categories", help="List a user's categories")
    cat_parser.add_argument("--user", "-u", required=True)
    cat_parser.add_argument(
        "--init", action="store_true", help="Create the default categories first"
    )

    # receipts
    receipts_parser = sub.add_parser("receipts", help="List a user's saved receipts")
    receipts_parser.add_argument("--user", "-u", required=True)
    receipts_parser.add_argument("--status", choices=["scanned", "processed"], default=None)

    # maintain
    maintain_parser = sub.add_parser(
        "maintain", help="Run cache purge and profile refresh jobs"
    )
    maintain_parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Stop after this many seconds (default: run until interrupted)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()
    config = load_config(args.config)

    try:
        match args.command:
            case "scan":
                asyncio.run(_cmd_scan(config, args))
            case "suggest":
                asyncio.run(_cmd_suggest(config, args))
            case "learn":
                asyncio.run(_cmd_learn(config, args))
            case "categories":
                asyncio.run(_cmd_categories(config, args))
            case "receipts":
                asyncio.run(_cmd_receipts(config, args))
            case "maintain":
                try:
                    asyncio.run(_cmd_maintain(config, args))
                except KeyboardInterrupt:
                    print("Stopped.")
    except (MyKhataError, ValueError, ImportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


async def _cmd_scan(config, args) -> None:
    async with MyKhata.from_config(config) as app:
        images = [Path(p).read_bytes() for p in args.images]
        results = await asyncio.gather(*(app.scan_receipt(data) for data in images))
        if args.user:
            for data, result in zip(images, results):
                receipt = await app.save_scanned_receipt(args.user, data, result)
                print(f"Saved receipt {receipt.id}", file=sys.stderr)

    if args.json:
        data = [
            {"image": path, **result.to_dict()}
            for path, result in zip(args.images, results)
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    for path, result in zip(args.images, results):
        print(f"\n{path}")
        print(f"  Merchant: {result.merchant or '-'}")
        print(f"  Date:     {result.date or '-'}")
        print(f"  Subtotal: {result.subtotal or '-'}")
        print(f"  Tax:      {result.tax or '-'}")
        print(f"  Total:    {result.total or '-'}")
        if result.items:
            print(f"  Items ({len(result.items)}):")
            for item in result.items:
                print(f"    {item.description:<30} {item.price:>10}")


async def _cmd_suggest(config, args) -> None:
    async with MyKhata.from_config(config) as app:
        suggestions = await app.get_category_suggestions(
            args.merchant, args.user, args.limit
        )

    if args.json:
        print(json.dumps([s.to_dict() for s in suggestions], ensure_ascii=False, indent=2))
        return

    if not suggestions:
        print(f"No category suggestions for {args.merchant!r}.")
        return
    print(f"Suggestions for {args.merchant!r}:")
    for s in suggestions:
        bar = "█" * int(s.confidence * 10)
        print(f"  {s.name:<20} {s.confidence:.0%} {bar}  [{s.reason}]")


async def _cmd_learn(config, args) -> None:
    async with MyKhata.from_config(config) as app:
        await app.learn_from_user_decision(args.merchant, args.category_id, args.user)
        prediction = await app.predict_category(args.merchant, args.user)
    print(
        f"Learned {args.merchant!r} → {args.category_id} "
        f"(now predicts {prediction.category_id}, {prediction.confidence:.0%})"
    )


async def _cmd_categories(config, args) -> None:
    async with MyKhata.from_config(config) as app:
        if args.init:
            created = app.initialize_default_categories(args.user)
            print(f"Created {len(created)} default categories.")
        categories = app.list_categories(args.user)

    if not categories:
        print("No categories. Use --init to create the defaults.")
        return
    for c in categories:
        default_mark = " (default)" if c.is_default else ""
        print(f"  [{c.type}] {c.name}{default_mark}  {c.id}")


async def _cmd_receipts(config, args) -> None:
    async with MyKhata.from_config(config) as app:
        receipts = app.list_receipts(args.user, args.status)

    if not receipts:
        print("No receipts.")
        return
    for r in receipts:
        merchant = r.extracted.get("merchant") or "-"
        total = r.extracted.get("total") or "-"
        print(f"  [{r.status}] {merchant:<24} {total:>10}  {r.id}")


async def _cmd_maintain(config, args) -> None:
    async with MyKhata.from_config(config) as app:
        scheduler = MaintenanceScheduler(app, config.scheduler)
        scheduler.start()
        try:
            for job in scheduler.get_jobs():
                print(f"  {job['name']}: next run {job['next_run']}")
            if args.duration > 0:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            scheduler.stop()
