"""
Structured Content Extractor Module

Turns parsed container parts into slides (title + body lines) and sheets
(rows of display strings).

Slide extraction is deliberately schema-agnostic: it collects every text
run in document order and calls the first surviving line the title. Title
placeholders are not consulted, so a slide without a real title gets its
first body line promoted.
"""

import re
import logging
from pathlib import Path
from typing import List, Optional, Iterator, Union

from .container_parser import (
    ContainerParser,
    Container,
    TextRun,
    Node,
    text_of,
    SLIDE_PART_PATTERN,
    SHEET_PART_PATTERN,
)
from .models import ExtractedSlide, ExtractedSheet

logger = logging.getLogger(__name__)

_CELL_REF = re.compile(r'^([A-Z]+)(\d*)$')


def column_index(letters: str) -> int:
    """Zero-based column index for spreadsheet column letters (A=0, AA=26)."""
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord('A') + 1)
    return index - 1


def format_number(raw: str) -> str:
    """Display form of a stored numeric cell value."""
    try:
        value = float(raw)
    except ValueError:
        return raw
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


class StructuredContentExtractor:
    """Extracts text content from presentation and spreadsheet containers."""

    def __init__(self, parser: Optional[ContainerParser] = None):
        self.parser = parser or ContainerParser()

    # === Presentations ===

    def _iter_lines(self, node: Node) -> Iterator[str]:
        if isinstance(node, TextRun):
            yield node.text
        elif isinstance(node, Container):
            # A paragraph's runs are split by formatting; they read as one line
            if node.tag == 'p':
                yield text_of(node)
            else:
                for child in node.children:
                    yield from self._iter_lines(child)

    def extract_slide(self, tree: Optional[Container]) -> ExtractedSlide:
        """Title and deduplicated body lines for one slide tree (None -> empty)."""
        if tree is None:
            return ExtractedSlide()

        lines = []
        seen = set()
        for line in self._iter_lines(tree):
            line = line.strip()
            if not line or line in seen:
                continue
            seen.add(line)
            lines.append(line)

        if not lines:
            return ExtractedSlide()
        return ExtractedSlide(title=lines[0], body_lines=lines[1:])

    def extract_presentation(self, input_path: Union[str, Path]) -> List[ExtractedSlide]:
        """
        Extract every slide in ordinal order.

        Raises:
            MalformedContainer: the archive is unreadable or has no slides
        """
        parts = self.parser.parse_parts(input_path, SLIDE_PART_PATTERN)
        trees = self.parser.parse_part_trees(parts)
        slides = [self.extract_slide(tree) for tree in trees]
        logger.info(f"Extracted {len(slides)} slides from {Path(input_path).name}")
        return slides

    # === Spreadsheets ===

    def _cell_value(self, cell: Node, shared_strings: List[str]) -> str:
        if not isinstance(cell, Container):
            return ''

        cell_type = cell.attrs.get('t', 'n')
        if cell_type == 'inlineStr':
            inline = cell.child_elements('is')
            return text_of(inline[0], skip_tags=frozenset({'rPh'})) if inline else ''

        values = [c for c in cell.child_elements('v') if isinstance(c, TextRun)]
        if not values:
            return ''
        raw = values[0].text

        if cell_type == 's':
            try:
                return shared_strings[int(raw)]
            except (ValueError, IndexError):
                logger.debug(f"Bad shared string index: {raw!r}")
                return ''
        if cell_type == 'b':
            return 'TRUE' if raw.strip() == '1' else 'FALSE'
        if cell_type in ('e', 'str'):
            return raw
        return format_number(raw)

    def _row_values(self, row: Container, shared_strings: List[str]) -> List[str]:
        values: List[str] = []
        for cell in row.children:
            if cell.tag != 'c':
                continue
            ref = cell.attrs.get('r', '') if not isinstance(cell, TextRun) else ''
            match = _CELL_REF.match(ref.upper())
            position = column_index(match.group(1)) if match else len(values)
            if position < len(values):
                # Out-of-order reference; append rather than overwrite
                position = len(values)
            # Keep columns aligned across rows
            values.extend([''] * (position - len(values)))
            values.append(self._cell_value(cell, shared_strings))
        return values

    def extract_sheet(self, name: str, tree: Optional[Container], shared_strings: List[str]) -> ExtractedSheet:
        """Rows (top to bottom) of cell display strings (left to right)."""
        sheet = ExtractedSheet(name=name)
        if tree is None:
            return sheet

        for sheet_data in tree.find_all('sheetData'):
            for row in sheet_data.children:
                if row.tag != 'row':
                    continue
                if isinstance(row, Container):
                    sheet.rows.append(self._row_values(row, shared_strings))
                else:
                    sheet.rows.append([])
        return sheet

    def extract_workbook(self, input_path: Union[str, Path]) -> List[ExtractedSheet]:
        """
        Extract every worksheet in ordinal order.

        Raises:
            MalformedContainer: the archive is unreadable or has no worksheets
        """
        parts = self.parser.parse_parts(input_path, SHEET_PART_PATTERN)
        shared_strings = self.parser.read_shared_strings(input_path)
        sheet_names = self.parser.read_sheet_names(input_path)
        trees = self.parser.parse_part_trees(parts)

        sheets = [
            self.extract_sheet(sheet_names.get(part.name, f"Sheet{part.ordinal}"), tree, shared_strings)
            for part, tree in zip(parts, trees)
        ]
        logger.info(f"Extracted {len(sheets)} sheets from {Path(input_path).name}")
        return sheets
