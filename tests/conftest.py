"""
Shared fixtures for the converter tests.
"""

import os
import stat
import zipfile
import subprocess
from pathlib import Path

import pytest


PML_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
DML_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"

FAKE_VERSION = "LibreOffice 7.6.4.1 10(Build:1)"


def slide_xml(lines):
    """Minimal slide part with one text paragraph per line."""
    paragraphs = ''.join(f'<a:p><a:r><a:t>{line}</a:t></a:r></a:p>' for line in lines)
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<p:sld xmlns:p="{PML_NS}" xmlns:a="{DML_NS}"><p:cSld><p:spTree>'
        f'<p:sp><p:txBody>{paragraphs}</p:txBody></p:sp>'
        f'</p:spTree></p:cSld></p:sld>'
    ).encode('utf-8')


class FakeProbe:
    """Engine probe stand-in that always reports the given executable."""

    def __init__(self, path=None):
        self.path = path
        self.calls = 0

    def probe(self):
        from converter import EnginePresence

        self.calls += 1
        if self.path is None:
            return EnginePresence(available=False)
        return EnginePresence(available=True, resolved_path=str(self.path), version=FAKE_VERSION)


class CountingRunner:
    """subprocess.run replacement answering every version query."""

    def __init__(self, returncode=0, stdout=FAKE_VERSION):
        self.returncode = returncode
        self.stdout = stdout
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        return subprocess.CompletedProcess(cmd, self.returncode, self.stdout, '')


def _make_executable(path: Path, content: str) -> Path:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def corrupt_entry(path: Path, name: str) -> Path:
    """Overwrite the compressed data of one deflated entry with an invalid block."""
    with zipfile.ZipFile(path) as archive:
        info = archive.getinfo(name)
    data = bytearray(path.read_bytes())
    header = info.header_offset
    name_len = int.from_bytes(data[header + 26:header + 28], 'little')
    extra_len = int.from_bytes(data[header + 28:header + 30], 'little')
    start = header + 30 + name_len + extra_len
    # 0xFF opens a block of the reserved type 3, which zlib rejects
    data[start:start + info.compress_size] = b'\xff' * info.compress_size
    path.write_bytes(bytes(data))
    return path


posix_only = pytest.mark.skipif(os.name != 'posix', reason="fake engines are shell scripts")


@pytest.fixture
def write_zip(tmp_path):
    """Write a zip archive from (name, bytes) entries, preserving their order."""
    def _write(name, entries):
        path = tmp_path / name
        with zipfile.ZipFile(path, 'w', zipfile.ZIP_DEFLATED) as archive:
            for entry_name, data in entries:
                archive.writestr(entry_name, data)
        return path
    return _write


@pytest.fixture
def make_pptx(tmp_path):
    """Build a real presentation with python-pptx, one title+body slide per title."""
    from pptx import Presentation

    def _make(titles, name="deck.pptx"):
        prs = Presentation()
        for title in titles:
            slide = prs.slides.add_slide(prs.slide_layouts[1])
            slide.shapes.title.text = title
            slide.placeholders[1].text = f"{title} details"
        path = tmp_path / name
        prs.save(path)
        return path
    return _make


@pytest.fixture
def make_xlsx(tmp_path):
    """Build a real workbook with openpyxl: {sheet name: rows}."""
    from openpyxl import Workbook

    def _make(sheets, name="book.xlsx"):
        wb = Workbook()
        wb.remove(wb.active)
        for sheet_name, rows in sheets.items():
            ws = wb.create_sheet(sheet_name)
            for row in rows:
                ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return path
    return _make


@pytest.fixture
def make_docx(tmp_path):
    """Build a real Word document with python-docx."""
    from docx import Document

    def _make(title, paragraphs, name="letter.docx"):
        doc = Document()
        doc.add_heading(title, 0)
        for text in paragraphs:
            doc.add_paragraph(text)
        path = tmp_path / name
        doc.save(path)
        return path
    return _make


@pytest.fixture
def sample_pdf(tmp_path):
    """A one-page PDF standing in for real engine output."""
    from reportlab.pdfgen import canvas

    path = tmp_path / "engine_output.pdf"
    c = canvas.Canvas(str(path))
    c.drawString(72, 720, "Rendered by engine")
    c.showPage()
    c.save()
    return path


@pytest.fixture
def fake_engine(tmp_path, sample_pdf):
    """Shell script that behaves like soffice --convert-to pdf."""
    script = f"""#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "{FAKE_VERSION}"
    exit 0
fi
outdir=""
input=""
while [ $# -gt 0 ]; do
    case "$1" in
        --outdir) outdir="$2"; shift 2 ;;
        --convert-to) shift 2 ;;
        *) input="$1"; shift ;;
    esac
done
name=$(basename "$input")
cp "{sample_pdf}" "$outdir/${{name%.*}}.pdf"
"""
    return _make_executable(tmp_path / "fake_soffice", script)


@pytest.fixture
def failing_engine(tmp_path):
    script = """#!/bin/sh
echo "Error: source file could not be loaded" >&2
exit 1
"""
    return _make_executable(tmp_path / "failing_soffice", script)


@pytest.fixture
def hanging_engine(tmp_path):
    """Shell script that records its pid and never finishes."""
    pid_file = tmp_path / "engine.pid"
    script = f"""#!/bin/sh
echo $$ > "{pid_file}"
exec sleep 60
"""
    return _make_executable(tmp_path / "hanging_soffice", script), pid_file


@pytest.fixture
def no_engine_probe():
    """A real probe that finds nothing on any path."""
    from converter import PlatformEngineProbe, PlatformPathResolver

    resolver = PlatformPathResolver(system='Linux', which=lambda name: None, isfile=lambda path: False)
    return PlatformEngineProbe(resolver, runner=CountingRunner())


@pytest.fixture
def read_pdf():
    """Open a PDF with PyPDF2; returns the reader."""
    from PyPDF2 import PdfReader

    def _read(path):
        return PdfReader(str(path))
    return _read
