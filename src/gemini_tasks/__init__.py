"""Scheduled Gemini tasks driven through the web UI with Playwright."""

__version__ = "0.3.0"
