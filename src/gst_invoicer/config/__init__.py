"""Configuration module for the GST invoice generator."""

from gst_invoicer.config.logging import configure_logging
from gst_invoicer.config.rules_loader import ClassificationRules, load_classification_rules
from gst_invoicer.config.settings import FlatSettings, get_settings

__all__ = [
    "ClassificationRules",
    "FlatSettings",
    "configure_logging",
    "get_settings",
    "load_classification_rules",
]
