"""Core data structures for the webgloss translator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .errors import RevokedNodeError

TextGetter = Callable[[], str]
TextSetter = Callable[[str], None]

DEFAULT_DELIMITER = "|||---|||"
DEFAULT_BATCH_CHARACTER_LIMIT = 15000
DEFAULT_MODEL = "gemini-2.5-flash"
AVAILABLE_MODELS = (
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-1.5-pro-latest",
    "gemini-1.5-flash-latest",
    "gemini-pro",
)


class NodeRef:
    """Opaque handle to the node that owns a piece of text.

    The handle only knows how to read and replace the text, so reconciliation
    never touches the parsed document directly. Once revoked, writes fail.
    """

    def __init__(self, getter: TextGetter, setter: TextSetter) -> None:
        self._getter: Optional[TextGetter] = getter
        self._setter: Optional[TextSetter] = setter

    @property
    def revoked(self) -> bool:
        return self._setter is None

    def read(self) -> str:
        if self._getter is None:
            raise RevokedNodeError("Node reference has been revoked.")
        return self._getter()

    def write(self, text: str) -> None:
        if self._setter is None:
            raise RevokedNodeError("Node reference has been revoked.")
        self._setter(text)

    def revoke(self) -> None:
        self._getter = None
        self._setter = None


@dataclass
class TextUnit:
    """Represents a single text node ready for translation."""

    unit_id: str
    original_text: str
    owner: NodeRef
    position: int
    location: str = ""


@dataclass
class Batch:
    """A run of text units constrained by a character budget."""

    batch_id: int
    units: List[TextUnit]
    delimiter: str = DEFAULT_DELIMITER

    def __len__(self) -> int:
        return len(self.units)

    @property
    def combined_payload(self) -> str:
        return self.delimiter.join(unit.original_text for unit in self.units)

    @property
    def char_count(self) -> int:
        return sum(len(unit.original_text) for unit in self.units)


@dataclass
class WriteReport:
    """Outcome of writing one translated batch back onto its nodes."""

    batch_id: int
    written: int
    expected_segments: int
    received_segments: int
    warning: Optional[str] = None

    @property
    def mismatch(self) -> bool:
        return self.expected_segments != self.received_segments


@dataclass(frozen=True)
class Configuration:
    """Settings snapshot used for a single request."""

    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    batch_character_limit: int = DEFAULT_BATCH_CHARACTER_LIMIT
    delimiter: str = DEFAULT_DELIMITER
    provider: str = "gemini"
    debug: bool = False


@dataclass
class RunSummary:
    """Report returned after translating a page."""

    total_units: int
    translated_units: int
    total_batches: int
    processed_batches: int
    provider_name: str
    model: str
    elapsed_seconds: float
    warnings: List[str] = field(default_factory=list)
    source: str = ""
    output: str = ""

    @property
    def mismatched_batches(self) -> int:
        return len(self.warnings)
