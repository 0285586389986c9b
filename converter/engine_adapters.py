"""
Engine Adapters Module

The two high-fidelity tiers:

- ExternalEngineAdapter runs LibreOffice headless as a subprocess.
- EmbeddedLibraryAdapter runs an in-process conversion routine.
"""

import io
import os
import time
import shutil
import signal
import tempfile
import platform
import subprocess
import logging
from pathlib import Path
from typing import Optional, Callable, Dict, List

from docx import Document as DocxDocument
from docx.oxml.ns import qn
from docx.table import Table as DocxTable
from docx.text.paragraph import Paragraph as DocxParagraph
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib import colors
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from .base import ConversionTier
from .engine_probe import PlatformEngineProbe
from .errors import (
    EngineUnavailable,
    EngineTimeout,
    EngineInvocationFailed,
    OutputMissing,
)
from .models import ConversionRequest, FormatCategory
from utils.file_utils import file_is_nonempty, remove_quietly

logger = logging.getLogger(__name__)

# Seconds between checks for the engine's output file
SETTLE_POLL_INTERVAL = 0.05


def _clean_environment() -> Dict[str, str]:
    """Environment for the engine subprocess, safe for macOS background threads."""
    clean_env = os.environ.copy()

    for var in ['__CF_USER_TEXT_ENCODING', 'SECURITYSESSIONID']:
        clean_env.pop(var, None)

    if platform.system() == 'Darwin':
        clean_env['OBJC_DISABLE_INITIALIZE_FORK_SAFETY'] = 'YES'

    return clean_env


def _kill_process_tree(process: subprocess.Popen):
    """Hard-kill the engine and everything it spawned, then reap it."""
    try:
        if os.name == 'posix':
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except (ProcessLookupError, PermissionError):
        # Already gone
        pass
    try:
        process.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.error(f"Engine process {process.pid} did not exit after kill")


class ExternalEngineAdapter(ConversionTier):
    """
    Converts through a headless LibreOffice subprocess.

    The engine writes `<input stem>.pdf` into the output directory; the
    adapter moves that file to the requested output path.
    """

    name = "external_engine"

    def __init__(
        self,
        probe: PlatformEngineProbe,
        settle_delay: float = 0.5,
        isolated_profile: bool = True,
    ):
        """
        Initialize the adapter.

        Args:
            probe: Memoized engine discovery
            settle_delay: Seconds to wait for the output file after the engine exits
            isolated_profile: Give each run its own LibreOffice user profile so
                concurrent conversions do not fight over the profile lock
        """
        self.probe = probe
        self.settle_delay = settle_delay
        self.isolated_profile = isolated_profile

    def supports(self, category: FormatCategory) -> bool:
        return self.probe.probe().available

    def build_command(self, engine_path: str, input_path: Path, out_dir: Path,
                      profile_dir: Optional[Path] = None) -> List[str]:
        cmd = [engine_path]
        if profile_dir is not None:
            cmd.append(f"-env:UserInstallation={profile_dir.resolve().as_uri()}")
        cmd.extend([
            '--headless',
            '--norestore',
            '--nolockcheck',
            '--convert-to', 'pdf',
            '--outdir', str(out_dir),
            str(input_path),
        ])
        return cmd

    def attempt(self, request: ConversionRequest) -> Path:
        presence = self.probe.probe()
        if not presence.available or not presence.resolved_path:
            raise EngineUnavailable("LibreOffice is not installed")

        output_path = Path(request.output_path)
        out_dir = output_path.parent
        out_dir.mkdir(parents=True, exist_ok=True)
        expected_output = out_dir / f"{Path(request.input_path).stem}.pdf"

        # A stale file from an earlier run would look like fresh output
        if expected_output.exists() and expected_output != Path(request.input_path):
            expected_output.unlink()

        profile_dir = None
        if self.isolated_profile:
            profile_dir = Path(tempfile.mkdtemp(prefix="office2pdf_profile_"))

        try:
            cmd = self.build_command(presence.resolved_path, Path(request.input_path), out_dir, profile_dir)
            self._run(cmd, request.timeout_seconds)
        except (EngineTimeout, EngineInvocationFailed):
            # The engine may have written part of <stem>.pdf before it died
            if expected_output != output_path and expected_output != Path(request.input_path):
                remove_quietly(expected_output)
            raise
        finally:
            if profile_dir is not None:
                shutil.rmtree(profile_dir, ignore_errors=True)

        if not self._wait_for_file(expected_output):
            raise OutputMissing(
                "LibreOffice did not produce output",
                detail=str(expected_output),
            )

        if not file_is_nonempty(expected_output):
            expected_output.unlink()
            raise EngineInvocationFailed("LibreOffice produced an empty file")

        if expected_output != output_path:
            shutil.move(str(expected_output), str(output_path))

        return output_path

    def _run(self, cmd: List[str], timeout: float) -> subprocess.CompletedProcess:
        """Run the engine, killing its whole process group if it overruns."""
        logger.info(f"Running: {' '.join(cmd)}")
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,    # Don't inherit stdin
                start_new_session=True,      # Own process group, killable as a unit
                env=_clean_environment(),
                text=True,
            )
        except OSError as e:
            raise EngineInvocationFailed("Could not start LibreOffice", detail=str(e)) from e

        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            _kill_process_tree(process)
            raise EngineTimeout(f"LibreOffice timed out after {timeout:g}s") from e

        if process.returncode != 0:
            raise EngineInvocationFailed(
                f"LibreOffice exited with code {process.returncode}",
                detail=(stderr or stdout or '').strip()[:500] or None,
            )

        return subprocess.CompletedProcess(cmd, process.returncode, stdout, stderr)

    def _wait_for_file(self, path: Path) -> bool:
        deadline = time.monotonic() + self.settle_delay
        while True:
            if path.exists():
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(SETTLE_POLL_INTERVAL)


class EmbeddedLibraryAdapter(ConversionTier):
    """
    Converts in process with a routine registered per format category.

    A routine takes the input file's bytes and returns PDF bytes. Categories
    without a routine are skipped.
    """

    name = "embedded_library"

    def __init__(self, routines: Optional[Dict[FormatCategory, Callable[[bytes], bytes]]] = None):
        self.routines = default_routines() if routines is None else dict(routines)

    def supports(self, category: FormatCategory) -> bool:
        return category in self.routines

    def attempt(self, request: ConversionRequest) -> Path:
        routine = self.routines.get(request.format_category)
        if routine is None:
            raise EngineUnavailable(f"No embedded converter for {request.format_category.label}")

        try:
            with open(request.input_path, 'rb') as f:
                content = f.read()
            pdf_bytes = routine(content)
        except Exception as e:
            raise EngineInvocationFailed("Embedded conversion failed", detail=str(e)) from e

        if not pdf_bytes:
            raise EngineInvocationFailed("Embedded conversion returned no data")

        output_path = Path(request.output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(pdf_bytes)
        return output_path


# === Stock routines ===

def _escape_text(text: str) -> str:
    """Escape text for reportlab paragraphs."""
    if not text:
        return ""
    text = text.replace('&', '&amp;')
    text = text.replace('<', '&lt;')
    text = text.replace('>', '&gt;')
    return text


def _docx_paragraph_flowable(para, styles) -> Optional[Paragraph]:
    text = para.text.strip()
    if not text:
        return None
    style_name = para.style.name if para.style is not None else ''
    if style_name == 'Title':
        style = styles['Title']
    elif style_name.startswith('Heading'):
        style = styles['Heading2']
    else:
        style = styles['Normal']
    return Paragraph(_escape_text(text), style)


def _docx_table_flowable(table, styles) -> Optional[Table]:
    data = [
        [Paragraph(_escape_text(cell.text), styles['BodyText']) for cell in row.cells]
        for row in table.rows
    ]
    if not data:
        return None
    pdf_table = Table(data, repeatRows=1)
    pdf_table.setStyle(TableStyle([
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
    ]))
    return pdf_table


def docx_to_pdf_bytes(content: bytes) -> bytes:
    """Render a DOCX's paragraphs and tables with reportlab (text only), in body order."""
    doc = DocxDocument(io.BytesIO(content))

    buffer = io.BytesIO()
    pdf_doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=72,
        leftMargin=72,
        topMargin=72,
        bottomMargin=72
    )

    styles = getSampleStyleSheet()
    story = []

    for child in doc.element.body.iterchildren():
        if child.tag == qn('w:p'):
            flowable = _docx_paragraph_flowable(DocxParagraph(child, doc), styles)
            if flowable is not None:
                story.append(flowable)
                story.append(Spacer(1, 8))
        elif child.tag == qn('w:tbl'):
            flowable = _docx_table_flowable(DocxTable(child, doc), styles)
            if flowable is not None:
                story.append(Spacer(1, 12))
                story.append(flowable)
                story.append(Spacer(1, 8))

    if not story:
        story.append(Paragraph("(Empty document)", styles['Normal']))

    pdf_doc.build(story)
    return buffer.getvalue()


def default_routines() -> Dict[FormatCategory, Callable[[bytes], bytes]]:
    return {FormatCategory.WORD_PROCESSING: docx_to_pdf_bytes}
