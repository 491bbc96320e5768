"""Allow ``python -m gst_invoicer``."""

from gst_invoicer.cli import run

run()
