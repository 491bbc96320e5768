"""Load transaction classification rules from the packaged YAML file."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

RULES_PATH = Path(__file__).resolve().parent / "classification.yaml"

_LABEL_SECTIONS = (
    "skip_types",
    "client_earning_types",
    "platform_fee_types",
    "fee_sniff_types",
    "fee_summary_markers",
)


@dataclass(frozen=True)
class ClassificationRules:
    """Label sets used to classify raw transaction rows.

    Type sets hold casefolded labels. Marker and pattern entries keep their
    original spelling for display, matching is done casefolded.
    """

    skip_types: frozenset[str]
    client_earning_types: frozenset[str]
    platform_fee_types: frozenset[str]
    fee_sniff_types: frozenset[str]
    fee_summary_markers: tuple[str, ...]
    fee_description_patterns: tuple[tuple[str, str], ...]


def _label_list(data: dict[str, Any], section: str, source: str) -> list[str]:
    values = data.get(section)
    if not isinstance(values, list) or not values:
        raise ValueError(f"{source}: {section} must be a non-empty list")

    labels: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{source}: invalid label in {section}: {value!r}")
        labels.append(value.strip())
    return labels


def _patterns(data: dict[str, Any], source: str) -> tuple[tuple[str, str], ...]:
    raw = data.get("fee_description_patterns")
    if not isinstance(raw, list) or not raw:
        raise ValueError(f"{source}: fee_description_patterns must be a non-empty list")

    patterns: list[tuple[str, str]] = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValueError(f"{source}: fee_description_patterns entries must be mappings")
        marker = entry.get("marker")
        label = entry.get("label")
        if not isinstance(marker, str) or not isinstance(label, str):
            raise ValueError(f"{source}: pattern needs string marker and label: {entry!r}")
        patterns.append((marker.strip(), label.strip()))
    return tuple(patterns)


def parse_classification_rules(data: Any, source: str = "<rules>") -> ClassificationRules:
    """Build rules from already-parsed YAML data."""
    if not isinstance(data, dict):
        raise ValueError(f"{source}: classification rules must be a mapping")

    labels = {section: _label_list(data, section, source) for section in _LABEL_SECTIONS}

    return ClassificationRules(
        skip_types=frozenset(label.casefold() for label in labels["skip_types"]),
        client_earning_types=frozenset(
            label.casefold() for label in labels["client_earning_types"]
        ),
        platform_fee_types=frozenset(
            label.casefold() for label in labels["platform_fee_types"]
        ),
        fee_sniff_types=frozenset(label.casefold() for label in labels["fee_sniff_types"]),
        fee_summary_markers=tuple(labels["fee_summary_markers"]),
        fee_description_patterns=_patterns(data, source),
    )


@lru_cache
def load_classification_rules(path: Path = RULES_PATH) -> ClassificationRules:
    """Load and cache the classification rules file.

    Returns:
        Parsed rules. Raises ValueError if a section is missing or malformed.
    """
    raw = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"{path.name}: invalid YAML: {exc}") from exc
    return parse_classification_rules(data, source=path.name)
