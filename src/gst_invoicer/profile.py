"""Business profile: exporter identity, tax registration and invoice counters.

The profile is loaded once per run, read without modification by the
pipeline, and replaced by an advanced copy after a successful batch.
Persistence is a single JSON object stored under a fixed key.
"""

from __future__ import annotations

import json
import re
from decimal import Decimal
from pathlib import Path
from typing import Any

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gst_invoicer.config import get_settings
from gst_invoicer.errors import ValidationError
from gst_invoicer.models import InvoiceType

logger = structlog.get_logger(__name__)

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELDS: dict[str, str] = {
    "name": "Business name is required",
    "lut": "LUT number is required",
    "address_line1": "Address is required",
    "city": "City is required",
    "pincode": "Pincode is required",
    "state": "State is required",
    "state_code": "State code is required",
    "service": "Service description is required",
    "hsn": "HSN/SAC code is required",
}


class LutPeriod(BaseModel):
    """Validity window of the Letter of Undertaking."""

    model_config = ConfigDict(populate_by_name=True)

    start: str = Field(default="", alias="from")
    end: str = Field(default="", alias="to")


class InvoiceCounters(BaseModel):
    """Next sequence number for each invoice series."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    gt: int = Field(default=1, ge=1, alias="GT")
    grc: int = Field(default=1, ge=1, alias="GRC")
    dt: int = Field(default=1, ge=1, alias="DT")
    g: int = Field(default=1, ge=1, alias="G")

    def get(self, invoice_type: InvoiceType) -> int:
        return int(getattr(self, invoice_type.value.lower()))

    def with_value(self, invoice_type: InvoiceType, sequence: int) -> InvoiceCounters:
        if sequence < 1:
            raise ValueError("invoice sequence numbers start at 1")
        return self.model_copy(update={invoice_type.value.lower(): sequence})


class BusinessProfile(BaseModel):
    """Exporter profile as persisted by the settings screen."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    name: str = ""
    gstin: str = ""
    lut: str = ""
    lut_period: LutPeriod = Field(default_factory=LutPeriod)
    pan_number: str | None = None

    address_line1: str = ""
    address_line2: str | None = None
    city: str = ""
    pincode: str = ""
    state: str = ""
    state_code: str = ""
    country: str = "India"

    service: str = "IT Consulting and Support Services"
    hsn: str = "998313"

    starting_invoice_numbers: InvoiceCounters = Field(default_factory=InvoiceCounters)
    manual_exchange_rate: Decimal | None = Field(default=None, gt=0)
    default_client_location: str | None = None

    email: str | None = None
    phone: str | None = None
    website: str | None = None
    signature_text: str = "Authorised Signatory"
    footer_note: str = "This is a Computer Generated Invoice"

    def next_number(self, invoice_type: InvoiceType) -> int:
        return self.starting_invoice_numbers.get(invoice_type)

    def advance(self, invoice_type: InvoiceType, count: int) -> BusinessProfile:
        """Return a copy whose counter for ``invoice_type`` moved on by ``count``."""
        if count < 0:
            raise ValueError("count must not be negative")
        return self.with_next_number(invoice_type, self.next_number(invoice_type) + count)

    def with_next_number(self, invoice_type: InvoiceType, sequence: int) -> BusinessProfile:
        counters = self.starting_invoice_numbers.with_value(invoice_type, sequence)
        return self.model_copy(update={"starting_invoice_numbers": counters})

    def client_location(self) -> str:
        return self.default_client_location or get_settings().default_client_location

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def profile_from_dict(data: Any) -> BusinessProfile:
    """Build a profile from persisted data, reporting problems per field."""
    try:
        return BusinessProfile.model_validate(data)
    except pydantic.ValidationError as exc:
        field_errors = {
            ".".join(str(part) for part in error["loc"]) or "profile": error["msg"]
            for error in exc.errors()
        }
        raise ValidationError("Invalid business profile", field_errors) from exc


def validate_profile(profile: BusinessProfile) -> BusinessProfile:
    """Apply save-time checks.

    Returns:
        The profile with GSTIN and PAN upper-cased.

    Raises:
        ValidationError: One entry per failing field.
    """
    gstin = profile.gstin.strip().upper()
    pan = profile.pan_number.strip().upper() if profile.pan_number else None
    errors: dict[str, str] = {}

    for field, message in REQUIRED_FIELDS.items():
        if not str(getattr(profile, field) or "").strip():
            errors[field] = message

    if not gstin:
        errors["gstin"] = "GSTIN is required"
    elif not GSTIN_PATTERN.match(gstin):
        errors["gstin"] = "Invalid GSTIN format"

    if pan and not PAN_PATTERN.match(pan):
        errors["pan_number"] = "Invalid PAN format"

    if profile.email and not EMAIL_PATTERN.match(profile.email):
        errors["email"] = "Invalid email format"

    if errors:
        raise ValidationError("Please fix the errors in the business profile", errors)

    return profile.model_copy(update={"gstin": gstin, "pan_number": pan})


class ProfileStore:
    """JSON key-value file holding the business profile under one key."""

    def __init__(self, path: str | Path | None = None, storage_key: str | None = None):
        settings = get_settings()
        self.path = Path(path or settings.profile_path).expanduser()
        self.storage_key = storage_key or settings.profile_storage_key

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{self.path.name} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValidationError(f"{self.path.name} must contain a JSON object")
        return data

    def load(self) -> BusinessProfile:
        """Return the stored profile, or the default profile if none is stored."""
        stored = self._read_all().get(self.storage_key)
        if stored is None:
            logger.info("profile_default_used", path=str(self.path))
            return BusinessProfile()
        return profile_from_dict(stored)

    def save(self, profile: BusinessProfile, validate: bool = True) -> BusinessProfile:
        """Persist ``profile``, keeping other keys in the file.

        Settings changes are validated first. Counter updates after a
        generated batch pass ``validate=False`` so an incomplete identity
        never blocks recording the numbers already issued.
        """
        if validate:
            profile = validate_profile(profile)
        data = self._read_all()
        data[self.storage_key] = profile.to_json_dict()

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

        logger.info("profile_saved", path=str(self.path))
        return profile
