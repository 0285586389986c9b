"""
Data Models Module

Value types shared by the conversion tiers.
"""

from pathlib import Path
from typing import Optional, List, Dict, Tuple
from dataclasses import dataclass, field
from enum import Enum


DEFAULT_TIMEOUT_MS = 60000


class FormatCategory(Enum):
    """The three supported input classes."""
    WORD_PROCESSING = "word"
    PRESENTATION = "powerpoint"
    SPREADSHEET = "excel"

    @property
    def label(self) -> str:
        """Human readable document-type label."""
        return _CATEGORY_LABELS[self]

    @property
    def extensions(self) -> Tuple[str, ...]:
        return tuple(ext for ext, cat in _EXTENSION_CATEGORIES.items() if cat is self)

    @classmethod
    def from_filename(cls, filename: str) -> Optional['FormatCategory']:
        """Map a filename to its category by extension, or None if unsupported."""
        return _EXTENSION_CATEGORIES.get(Path(filename).suffix.lower())

    @classmethod
    def parse(cls, value: str) -> 'FormatCategory':
        """Accept an enum name ('PRESENTATION'), value ('powerpoint') or extension."""
        key = value.strip()
        for category in cls:
            if key.upper() == category.name or key.lower() == category.value:
                return category
        by_ext = _EXTENSION_CATEGORIES.get(key.lower() if key.startswith('.') else f".{key.lower()}")
        if by_ext is None:
            raise ValueError(f"Unknown format category: {value}")
        return by_ext


_CATEGORY_LABELS = {
    FormatCategory.WORD_PROCESSING: "Word Document",
    FormatCategory.PRESENTATION: "PowerPoint Presentation",
    FormatCategory.SPREADSHEET: "Excel Spreadsheet",
}

_EXTENSION_CATEGORIES = {
    '.doc': FormatCategory.WORD_PROCESSING,
    '.docx': FormatCategory.WORD_PROCESSING,
    '.ppt': FormatCategory.PRESENTATION,
    '.pptx': FormatCategory.PRESENTATION,
    '.xls': FormatCategory.SPREADSHEET,
    '.xlsx': FormatCategory.SPREADSHEET,
}


@dataclass(frozen=True)
class ConversionRequest:
    """One conversion call. Immutable."""
    input_path: Path
    output_path: Path
    format_category: FormatCategory
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class EnginePresence:
    """Cached result of probing for the external engine."""
    available: bool
    resolved_path: Optional[str] = None
    version: Optional[str] = None


@dataclass
class ContainerPart:
    """A structural part (slide, sheet) read from the container archive."""
    name: str
    ordinal: int
    raw_xml: Optional[bytes]  # None when the part could not be read


@dataclass
class ExtractedSlide:
    """
    Text content of one slide.

    The title is simply the first surviving text line of the slide; it is a
    heuristic and may not be the slide's real title placeholder.
    """
    title: Optional[str] = None
    body_lines: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.title and not self.body_lines


@dataclass
class ExtractedSheet:
    """Grid of display strings for one worksheet."""
    name: str
    rows: List[List[str]] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def padded_rows(self) -> List[List[str]]:
        """Rows padded with empty strings to a rectangular grid."""
        width = self.column_count
        return [row + [''] * (width - len(row)) for row in self.rows]


@dataclass
class ConversionResult:
    """Outcome of a successful convert() call."""
    output_path: Path
    tier_used: str
    attempts: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class CapabilityReport:
    """Which tiers can run for each category. Diagnostic only."""
    engine: EnginePresence
    tiers: Dict[FormatCategory, Dict[str, bool]] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, object]:
        return {
            'libreOffice': self.engine.available,
            'enginePath': self.engine.resolved_path,
            'categories': {
                category.value: dict(tiers) for category, tiers in self.tiers.items()
            },
            'fallbackAvailable': True,
        }
