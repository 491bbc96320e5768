"""Command line entry point.

Usage:
    # Generate client-earning invoices from a transaction export
    gst-invoicer generate statement.csv --type GT --out invoices/

    # Platform-fee (reverse charge) invoices at an official reference rate
    gst-invoicer generate statement.csv --type GRC --rate 83.45

    # Show or update the stored business profile
    gst-invoicer profile
    gst-invoicer profile --set gstin=24ABCDE1234F1Z5 --next GT=12
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation

import structlog

from gst_invoicer.config import configure_logging, get_settings
from gst_invoicer.errors import InvoicingError, ValidationError
from gst_invoicer.export import export_invoices
from gst_invoicer.models import InvoiceType
from gst_invoicer.pipeline import BatchResult, InvoicePipeline, PipelineContext
from gst_invoicer.profile import BusinessProfile, ProfileStore, profile_from_dict

logger = structlog.get_logger(__name__)


def _positive_decimal(value: str) -> Decimal:
    try:
        number = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if not number.is_finite() or number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return number


def _counter(value: str) -> tuple[InvoiceType, int]:
    try:
        name, number = value.split("=", 1)
        invoice_type = InvoiceType(name.strip().upper())
        sequence = int(number)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected TYPE=N, got {value!r}") from exc
    if sequence < 1:
        raise argparse.ArgumentTypeError(f"sequence must be at least 1: {value!r}")
    return invoice_type, sequence


def _assignment(value: str) -> tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"expected FIELD=VALUE, got {value!r}")
    name, field_value = value.split("=", 1)
    return name.strip(), field_value.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gst-invoicer",
        description="GST export invoices from a freelance platform transaction export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Invoice types:
  GT   Platform client earnings (0% IGST, export under LUT)
  GRC  Platform fees (18% IGST, reverse charge)
  DT   Direct export clients (manual entry only)
  G    General direct clients (manual entry only)
        """,
    )
    parser.add_argument("--profile", help="Business profile JSON file (default: settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate invoices from a CSV export")
    generate.add_argument("csv", help="Transaction export CSV file")
    generate.add_argument(
        "--type",
        dest="invoice_type",
        choices=[t.value for t in InvoiceType],
        default=InvoiceType.GT.value,
        help="Invoice type (default: GT)",
    )
    generate.add_argument(
        "--rate",
        type=_positive_decimal,
        help="USD to INR rate for every invoice of this run (overrides the profile)",
    )
    generate.add_argument("--out", default="invoices", help="Output directory (default: invoices)")
    generate.add_argument(
        "--dry-run",
        action="store_true",
        help="Print invoices without writing documents or advancing counters",
    )

    profile = subparsers.add_parser("profile", help="Show or update the business profile")
    rate_group = profile.add_mutually_exclusive_group()
    rate_group.add_argument("--rate", type=_positive_decimal, help="Store a manual exchange rate")
    rate_group.add_argument(
        "--clear-rate", action="store_true", help="Use the rate service again"
    )
    profile.add_argument(
        "--next",
        type=_counter,
        action="append",
        default=[],
        metavar="TYPE=N",
        help="Set the next invoice number of a series",
    )
    profile.add_argument(
        "--set",
        type=_assignment,
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Set a profile field, e.g. gstin=24ABCDE1234F1Z5",
    )
    return parser


def _print_batch(result: BatchResult) -> None:
    header = (
        f"{'Invoice':<10} {'Date':<10} {'Client':<30} {'USD':>12} {'Rate':>9} "
        f"{'INR':>14} {'Tax':>12} {'Total':>14}"
    )
    print(header)
    print("-" * len(header))
    for invoice in result.invoices:
        usd = f"{invoice.usd_amount:,.2f}" if invoice.usd_amount is not None else "-"
        rate = f"{invoice.exchange_rate:.2f}" if invoice.exchange_rate is not None else "-"
        print(
            f"{invoice.invoice_number:<10} {invoice.invoice_date_display:<10} "
            f"{invoice.client[:30]:<30} {usd:>12} {rate:>9} "
            f"{invoice.inr_amount:>14,.2f} {invoice.tax_amount:>12,.2f} {invoice.total_amount:>14,.2f}"
        )
    summary = result.summary
    print("-" * len(header))
    print(
        f"{summary.count} invoice(s): USD {summary.total_usd:,.2f} | "
        f"INR {summary.total_inr:,.2f} | tax {summary.total_tax:,.2f} | "
        f"total {summary.grand_total:,.2f}"
    )


async def _generate(args: argparse.Namespace, store: ProfileStore) -> int:
    settings = get_settings()
    stored = store.load()
    profile = stored
    if args.rate is not None:
        profile = stored.model_copy(update={"manual_exchange_rate": args.rate})

    context = PipelineContext(profile=profile, settings=settings)
    async with InvoicePipeline(context) as pipeline:
        result = await pipeline.run_file(args.csv, InvoiceType(args.invoice_type))

    _print_batch(result)
    if args.dry_run:
        return 0

    paths = await export_invoices(
        result.invoices, result.profile, args.out, settings.export_delay_seconds
    )
    # The one-off --rate is not persisted, only the advanced counters
    updated = result.profile.model_copy(
        update={"manual_exchange_rate": stored.manual_exchange_rate}
    )
    store.save(updated, validate=False)
    print(f"Wrote {len(paths)} document(s) to {args.out}")
    return 0


def _update_profile(args: argparse.Namespace, store: ProfileStore) -> int:
    profile = store.load()
    changed = bool(args.set or args.next or args.rate is not None or args.clear_rate)

    if changed:
        data = profile.model_dump()
        for name, value in args.set:
            if name not in BusinessProfile.model_fields:
                raise ValidationError(f"Unknown profile field {name!r}", {name: "unknown field"})
            data[name] = value or None
        profile = profile_from_dict(data)

        if args.rate is not None:
            profile = profile.model_copy(update={"manual_exchange_rate": args.rate})
        elif args.clear_rate:
            profile = profile.model_copy(update={"manual_exchange_rate": None})
        for invoice_type, sequence in args.next:
            profile = profile.with_next_number(invoice_type, sequence)
        profile = store.save(profile)

    print(json.dumps(profile.to_json_dict(), indent=2))
    return 0


async def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments and run the selected command."""
    args = build_parser().parse_args(argv)
    configure_logging()
    store = ProfileStore(args.profile)

    try:
        if args.command == "generate":
            return await _generate(args, store)
        return _update_profile(args, store)
    except ValidationError as e:
        logger.error("validation_failed", error=e.message, fields=e.field_errors)
        print(f"Error: {e.message}", file=sys.stderr)
        for name, message in e.field_errors.items():
            print(f"  {name}: {message}", file=sys.stderr)
        return 1
    except InvoicingError as e:
        logger.error("command_failed", command=args.command, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        # File system failures while exporting or saving, broken rules file
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
