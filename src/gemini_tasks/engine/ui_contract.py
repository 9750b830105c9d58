"""
Gemini UI contract: every selector and text marker the runner depends on.

Gemini has no structured completion signal, so control flow only ever looks at
this table. When Google changes the UI, update the table (or point
GEMINI_UI_CONTRACT_FILE at a JSON override) instead of touching the procedures.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

UI_CONTRACT_VERSION = "2026.01"


@dataclass(frozen=True)
class SelectorSet:
    """Playwright selectors OR-ed together; `pick` chooses the first or last match."""

    selectors: tuple[str, ...]
    pick: str = "first"

    def __post_init__(self) -> None:
        if not self.selectors:
            raise ValueError("SelectorSet needs at least one selector")
        if self.pick not in ("first", "last"):
            raise ValueError(f"Invalid pick '{self.pick}' (expected 'first' or 'last')")

    @property
    def combined(self) -> str:
        return ", ".join(self.selectors)

    def __str__(self) -> str:
        return self.combined


@dataclass(frozen=True)
class TextMarkers:
    """Plain substrings plus regexes; a page matches when any of them is found."""

    substrings: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    _compiled: tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", tuple(re.compile(p) for p in self.patterns))

    def find(self, content: str) -> str | None:
        """Return the first marker found in content, or None."""
        for text in self.substrings:
            if text in content:
                return text
        for rx in self._compiled:
            m = rx.search(content)
            if m:
                return m.group(0)
        return None

    def matches(self, content: str) -> bool:
        return self.find(content) is not None


INPUT_SURFACE = SelectorSet(("div[contenteditable='true']", "textarea", "[role='textbox']"))


@dataclass(frozen=True)
class GeminiUiContract:
    version: str = UI_CONTRACT_VERSION

    # page setup
    cookie_accept: SelectorSet = SelectorSet(("button:has-text('Accept all')",))
    input_surface: SelectorSet = INPUT_SURFACE

    # pro mode
    model_label: SelectorSet = SelectorSet(("[data-test-id='logo-pill-label-container'] span",))
    model_menu_button: SelectorSet = SelectorSet(("[data-test-id='bard-mode-menu-button']",))
    pro_option: SelectorSet = SelectorSet(("[data-test-id='bard-mode-option-pro']",))
    pro_label_marker: str = "Pro"
    conversation_url_pattern: str = r"/app/[a-f0-9]+"

    # deep research
    tools_button: SelectorSet = SelectorSet(("span:has-text('Tools')",))
    deep_research_option: SelectorSet = SelectorSet(
        ("div:has-text('Deep Research')",), pick="last"
    )
    start_research_button: SelectorSet = SelectorSet(("button:has-text('Start research')",))
    redo_button: SelectorSet = SelectorSet(("[aria-label='Redo']", "button:has-text('Redo')"))

    research_started: TextMarkers = TextMarkers(
        substrings=(
            "I'll let you know when the research is finished",
            "I'm on it",
            "Starting research",
        ),
        patterns=(r"Researching \d+ websites?",),
    )
    high_traffic: TextMarkers = TextMarkers(
        substrings=(
            "experiencing unusually high traffic",
            "full capacity",
        ),
    )

    def is_conversation_url(self, url: str) -> bool:
        return re.search(self.conversation_url_pattern, url or "") is not None


DEFAULT_UI_CONTRACT = GeminiUiContract()


def _coerce(name: str, current: Any, raw: Any) -> Any:
    if isinstance(current, SelectorSet):
        if isinstance(raw, str):
            return SelectorSet((raw,), pick=current.pick)
        if isinstance(raw, list):
            return SelectorSet(tuple(raw), pick=current.pick)
        if isinstance(raw, dict):
            return SelectorSet(
                tuple(raw.get("selectors") or current.selectors), pick=raw.get("pick", current.pick)
            )
    elif isinstance(current, TextMarkers):
        if isinstance(raw, dict):
            return TextMarkers(
                substrings=tuple(raw.get("substrings", current.substrings)),
                patterns=tuple(raw.get("patterns", current.patterns)),
            )
    elif isinstance(current, str):
        if isinstance(raw, str):
            return raw
    raise ValueError(f"ui contract: invalid value for '{name}'")


def load_ui_contract(path: Path | str | None) -> GeminiUiContract:
    """
    Load the default contract with overrides from a JSON file.

    The file is a flat object keyed by contract field names, e.g.
    {"version": "2026.02", "tools_button": ["button:has-text('Tools')"]}.
    """
    if not path:
        return DEFAULT_UI_CONTRACT

    contract_path = Path(path)
    if not contract_path.exists():
        raise FileNotFoundError(f"UI contract file not found: {contract_path}")

    data = json.loads(contract_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("ui contract: expected a JSON object")

    known = {f.name for f in fields(GeminiUiContract) if not f.name.startswith("_")}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"ui contract: unknown keys: {', '.join(unknown)}")

    overrides = {
        name: _coerce(name, getattr(DEFAULT_UI_CONTRACT, name), raw) for name, raw in data.items()
    }
    contract = replace(DEFAULT_UI_CONTRACT, **overrides)
    logger.info(f"[UI] Loaded contract {contract.version} from {contract_path}")
    return contract
