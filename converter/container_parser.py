"""
Container Parser Module

Reads OOXML packages (zip archives of XML parts) without any office library.

Structural parts (one per slide or worksheet) are selected by a name
pattern and ordered by the number embedded in their name; the archive's
own entry order is not meaningful. Each part's XML is turned into a small
typed tree so extraction never has to probe raw elements.
"""

import re
import zlib
import zipfile
import logging
import posixpath
from pathlib import Path
from typing import List, Dict, Optional, Union, Iterator, Pattern
from dataclasses import dataclass, field

from lxml import etree

from .errors import MalformedContainer
from .models import ContainerPart

logger = logging.getLogger(__name__)


SLIDE_PART_PATTERN = re.compile(r'^ppt/slides/slide(\d+)\.xml$')
SHEET_PART_PATTERN = re.compile(r'^xl/worksheets/sheet(\d+)\.xml$')

SHARED_STRINGS_PART = 'xl/sharedStrings.xml'
WORKBOOK_PART = 'xl/workbook.xml'
WORKBOOK_RELS_PART = 'xl/_rels/workbook.xml.rels'

# Local names of elements whose text is document content
TEXT_TAGS = frozenset({'t', 'v'})

# Line breaks and tabs separate the runs around them
BREAK_TAGS = frozenset({'br', 'tab'})

_XML_PARSER = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    remove_comments=True,
    remove_pis=True,
    huge_tree=False,
)


# === Typed tree ===

@dataclass
class TextRun:
    """Leaf element carrying text content."""
    tag: str
    text: str


@dataclass
class Other:
    """Childless element without text content."""
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)


@dataclass
class Container:
    """Element with child elements."""
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    children: List['Node'] = field(default_factory=list)

    def find_all(self, tag: str) -> Iterator['Container']:
        """Depth-first iteration over descendant containers with the given tag."""
        for child in self.children:
            if isinstance(child, Container):
                if child.tag == tag:
                    yield child
                yield from child.find_all(tag)

    def child_elements(self, tag: str) -> List['Node']:
        return [c for c in self.children if c.tag == tag]


Node = Union[TextRun, Container, Other]


def _local_name(name: str) -> str:
    return etree.QName(name).localname


def _to_node(element) -> Node:
    tag = _local_name(element.tag)
    attrs = {_local_name(k): v for k, v in element.attrib.items()}
    children = [_to_node(child) for child in element if isinstance(child.tag, str)]

    if not children:
        if tag in TEXT_TAGS:
            return TextRun(tag=tag, text=element.text or '')
        return Other(tag=tag, attrs=attrs)
    return Container(tag=tag, attrs=attrs, children=children)


def text_of(node: Node, skip_tags: frozenset = frozenset()) -> str:
    """Concatenated text of every TextRun under node."""
    if node.tag in BREAK_TAGS:
        return ' '
    if isinstance(node, TextRun):
        return node.text
    if isinstance(node, Container) and node.tag not in skip_tags:
        return ''.join(text_of(child, skip_tags) for child in node.children)
    return ''


# === Parser ===

class ContainerParser:
    """
    Opens a container archive and reads its structural parts.

    Entries whose uncompressed size exceeds max_part_bytes are refused so a
    hostile archive cannot exhaust memory.
    """

    def __init__(self, max_part_bytes: int = 50 * 1024 * 1024):
        self.max_part_bytes = max_part_bytes

    def _open(self, input_path: Union[str, Path]) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(str(input_path))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as e:
            raise MalformedContainer("Not a readable archive", detail=str(e)) from e

    def _read(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
        if info.file_size > self.max_part_bytes:
            raise MalformedContainer(
                f"Part {info.filename} is too large",
                detail=f"{info.file_size} bytes",
            )
        try:
            return archive.read(info)
        except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError, OSError) as e:
            raise MalformedContainer(f"Could not read part {info.filename}", detail=str(e)) from e

    def parse_parts(self, input_path: Union[str, Path], part_pattern: Pattern) -> List[ContainerPart]:
        """
        Read every entry matching part_pattern, ordered by its ordinal.

        Args:
            input_path: Path to the container file
            part_pattern: Compiled pattern whose first group is the ordinal

        Returns:
            Parts sorted ascending by ordinal. A part that cannot be read
            (corrupt data, over the size limit) keeps its slot with
            raw_xml=None.

        Raises:
            MalformedContainer: unreadable archive or no matching entries
        """
        with self._open(input_path) as archive:
            matched = []
            for info in archive.infolist():
                match = part_pattern.match(info.filename)
                if match:
                    matched.append((int(match.group(1)), info))

            if not matched:
                raise MalformedContainer(
                    "No structural parts found",
                    detail=f"pattern {part_pattern.pattern}",
                )

            matched.sort(key=lambda item: item[0])
            parts = []
            for ordinal, info in matched:
                try:
                    raw_xml = self._read(archive, info)
                except MalformedContainer as e:
                    logger.warning(f"Skipping unreadable part {info.filename}: {e}")
                    raw_xml = None
                parts.append(ContainerPart(name=info.filename, ordinal=ordinal, raw_xml=raw_xml))

        logger.debug(f"Found {len(parts)} parts in {Path(input_path).name}")
        return parts

    def parse_tree(self, raw_xml: bytes) -> Container:
        """Parse one part's XML into the typed tree."""
        try:
            root = etree.fromstring(raw_xml, parser=_XML_PARSER)
            node = _to_node(root)
        except (etree.XMLSyntaxError, ValueError, RecursionError) as e:
            raise MalformedContainer("Invalid XML", detail=str(e)) from e

        if not isinstance(node, Container):
            node = Container(tag=node.tag, children=[node] if isinstance(node, TextRun) else [])
        return node

    def parse_part_trees(self, parts: List[ContainerPart]) -> List[Optional[Container]]:
        """
        Parse each part, yielding None for parts that fail.

        A broken part never aborts the rest of the document.
        """
        trees = []
        for part in parts:
            if part.raw_xml is None:
                trees.append(None)
                continue
            try:
                trees.append(self.parse_tree(part.raw_xml))
            except MalformedContainer as e:
                logger.warning(f"Skipping unparsable part {part.name}: {e}")
                trees.append(None)
        return trees

    def _read_optional_tree(self, archive: zipfile.ZipFile, name: str) -> Optional[Container]:
        try:
            info = archive.getinfo(name)
        except KeyError:
            return None
        try:
            return self.parse_tree(self._read(archive, info))
        except MalformedContainer as e:
            logger.warning(f"Ignoring unreadable {name}: {e}")
            return None

    def read_shared_strings(self, input_path: Union[str, Path]) -> List[str]:
        """The workbook's shared string table (empty if absent or broken)."""
        with self._open(input_path) as archive:
            tree = self._read_optional_tree(archive, SHARED_STRINGS_PART)

        if tree is None:
            return []
        # Phonetic runs (rPh) are reading aids, not cell text
        return [
            text_of(item, skip_tags=frozenset({'rPh'}))
            for item in tree.children
            if item.tag == 'si'
        ]

    def read_sheet_names(self, input_path: Union[str, Path]) -> Dict[str, str]:
        """Map worksheet part names (xl/worksheets/sheetN.xml) to sheet titles."""
        with self._open(input_path) as archive:
            workbook = self._read_optional_tree(archive, WORKBOOK_PART)
            rels = self._read_optional_tree(archive, WORKBOOK_RELS_PART)

        if workbook is None or rels is None:
            return {}

        targets = {}
        for rel in rels.children:
            if rel.tag != 'Relationship':
                continue
            target = rel.attrs.get('Target', '')
            if target.startswith('/'):
                part_name = target.lstrip('/')
            else:
                part_name = posixpath.normpath(posixpath.join('xl', target))
            targets[rel.attrs.get('Id')] = part_name

        names = {}
        sheets = workbook.find_all('sheets')
        for sheets_node in sheets:
            for sheet in sheets_node.children:
                if sheet.tag != 'sheet':
                    continue
                part_name = targets.get(sheet.attrs.get('id'))
                if part_name and sheet.attrs.get('name'):
                    names[part_name] = sheet.attrs['name']
        return names
