"""Write generated invoices out as one JSON document each."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from gst_invoicer.engine import tax_treatment
from gst_invoicer.models import Invoice
from gst_invoicer.profile import BusinessProfile

logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def sanitize_client_name(name: str) -> str:
    return _NON_ALNUM.sub("", name)


def invoice_filename(invoice: Invoice, suffix: str = ".json") -> str:
    """``GT-01_AcmeCorp_30-Jun-24.json``"""
    return (
        f"{invoice.invoice_number}_{sanitize_client_name(invoice.client)}"
        f"_{invoice.invoice_date_display}{suffix}"
    )


def _supplier_block(invoice: Invoice, profile: BusinessProfile) -> dict[str, Any]:
    address = [
        line
        for line in (
            profile.address_line1,
            profile.address_line2,
            f"{profile.city} - {profile.pincode}" if profile.city or profile.pincode else "",
            f"{profile.state}, {profile.country or 'India'}" if profile.state else "",
        )
        if line
    ]
    supplier: dict[str, Any] = {
        "name": profile.name,
        "address": address,
        "gstin": profile.gstin,
        "state": profile.state,
        "stateCode": profile.state_code,
        "pan": profile.pan_number,
        "email": profile.email,
        "phone": profile.phone,
        "website": profile.website,
    }
    # LUT only applies to zero-rated supplies
    if invoice.tax_rate == 0 and profile.lut:
        supplier["lut"] = profile.lut
        if profile.lut_period.start and profile.lut_period.end:
            supplier["lutPeriod"] = {
                "from": profile.lut_period.start,
                "to": profile.lut_period.end,
            }
    return supplier


def invoice_document(invoice: Invoice, profile: BusinessProfile) -> dict[str, Any]:
    """Assemble everything a renderer needs to lay out one invoice."""
    treatment = tax_treatment(invoice.invoice_type, invoice.location)
    data = invoice.to_dict()

    return {
        "title": treatment.title,
        "invoice": data,
        "supplier": _supplier_block(invoice, profile),
        "recipient": {
            "name": invoice.client,
            "location": invoice.location,
            "address": invoice.client_address,
            "gstin": invoice.client_gstin,
        },
        "lineItem": {
            "description": invoice.description,
            "hsnSac": profile.hsn,
            "usdAmount": data["usdAmount"],
            "exchangeRate": data["exchangeRate"],
            "taxableValue": data["inrAmount"],
        },
        "tax": {
            "type": treatment.tax_label,
            "rate": data["taxRate"],
            "amount": data["taxAmount"],
            "reverseCharge": invoice.is_reverse_charge,
        },
        "total": data["totalAmount"],
        "amountInWords": f"INR {invoice.amount_in_words} Only",
        "quarter": invoice.quarter,
        "signature": profile.signature_text,
        "footer": profile.footer_note,
    }


async def export_invoices(
    invoices: Sequence[Invoice],
    profile: BusinessProfile,
    out_dir: str | Path,
    delay_seconds: float = 0.0,
) -> list[Path]:
    """Write one document per invoice, pausing ``delay_seconds`` between files.

    Returns:
        Paths written, in invoice order.
    """
    directory = Path(out_dir)
    directory.mkdir(parents=True, exist_ok=True)

    paths: list[Path] = []
    for index, invoice in enumerate(invoices):
        if index and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        path = directory / invoice_filename(invoice)
        path.write_text(
            json.dumps(invoice_document(invoice, profile), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        paths.append(path)
        logger.debug("invoice_exported", invoice_number=invoice.invoice_number, path=str(path))

    logger.info("invoices_exported", count=len(paths), directory=str(directory))
    return paths
