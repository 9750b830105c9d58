"""Shared fixtures for gemini_tasks tests."""

import logging
from pathlib import Path

import pytest
from fakes import RecordingNotifier

from gemini_tasks.engine.models import Task
from gemini_tasks.engine.ui_contract import DEFAULT_UI_CONTRACT


@pytest.fixture
def contract():
    return DEFAULT_UI_CONTRACT


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def prompt_file(tmp_path) -> Path:
    path = tmp_path / "prompt.txt"
    path.write_text("Hi {{CURRENT_DATE}}", encoding="utf-8")
    return path


@pytest.fixture
def make_task(prompt_file):
    def _make(mode="pro", name="Morning Briefing", notify=True, prompt=None):
        return Task(name=name, mode=mode, prompt_file=prompt or prompt_file, notify=notify)

    return _make


@pytest.fixture
def clean_logging():
    """Drop root handlers installed by setup_logging() during the test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_gemini_tasks", False):
            root.removeHandler(handler)
            handler.close()
