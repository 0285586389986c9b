"""
PDF Renderer Module

Composes new PDFs from extracted content with reportlab.

Three layouts:
- presentation: one landscape page per slide, continued on extra pages
  when the body overflows
- spreadsheet: one bordered grid section per worksheet, paginated by row
- placeholder: a single information page, the guaranteed last resort

Text measurement for cell truncation uses a fixed average character width
rather than font metrics; long cells may be cut a little early or late.
"""

import io
import logging
from pathlib import Path
from datetime import datetime
from typing import List, Optional, Union

from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.units import inch
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.utils import simpleSplit
from reportlab.lib import colors
from reportlab.pdfgen import canvas
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from .models import ExtractedSlide, ExtractedSheet
from utils.file_utils import ensure_dir, format_file_size

logger = logging.getLogger(__name__)

CREATOR = "office2pdf"

EMPTY_SLIDE_TEXT = "(Empty slide)"
EMPTY_SHEET_TEXT = "(Empty sheet)"
CONTINUED_TEXT = "(continued)"
ELLIPSIS = "..."

# Presentation layout
SLIDE_PAGE_SIZE = landscape(letter)
SLIDE_MARGIN = 0.75 * inch
SLIDE_TITLE_FONT = 'Helvetica-Bold'
SLIDE_TITLE_SIZE = 28
SLIDE_TITLE_LEADING = 34
SLIDE_TITLE_MAX_LINES = 3
SLIDE_TITLE_BAND = 0.72  # Title baseline as a fraction of page height
SLIDE_TITLE_GAP = 30
SLIDE_BODY_FONT = 'Helvetica'
SLIDE_BODY_SIZE = 16
SLIDE_BODY_LEADING = 22
SLIDE_BULLET_INDENT = 10
SLIDE_TEXT_INDENT = 30
SLIDE_BULLET_GAP = 6
SLIDE_FOOTER_BAND = 30
SLIDE_FOOTER_SIZE = 10

# Spreadsheet layout
SHEET_PAGE_SIZE = landscape(letter)
SHEET_MARGIN = 0.5 * inch
SHEET_HEADER_FONT = 'Helvetica-Bold'
SHEET_HEADER_SIZE = 14
SHEET_HEADER_BAND = 30
SHEET_CELL_FONT = 'Helvetica'
SHEET_FONT_SIZE = 8
SHEET_ROW_HEIGHT = 18
SHEET_CELL_PADDING = 3
SHEET_CHAR_WIDTH_RATIO = 0.5  # Average glyph width as a fraction of font size

TITLE_COLOR = colors.Color(0.2, 0.2, 0.4)
TEXT_COLOR = colors.Color(0.15, 0.15, 0.15)
MUTED_COLOR = colors.Color(0.5, 0.5, 0.5)
GRID_COLOR = colors.Color(0.6, 0.6, 0.6)


def truncate_to_width(text: str, capacity: int) -> str:
    """Cut text to at most capacity characters, ending in an ellipsis when cut."""
    if capacity <= 0:
        return ''
    if len(text) <= capacity:
        return text
    if capacity <= len(ELLIPSIS):
        return text[:capacity]
    return text[:capacity - len(ELLIPSIS)] + ELLIPSIS


def _escape_text(text: str) -> str:
    """Escape text for reportlab paragraphs."""
    if not text:
        return ""
    text = text.replace('&', '&amp;')
    text = text.replace('<', '&lt;')
    text = text.replace('>', '&gt;')
    return text


class PdfRenderer:
    """Renders slides, sheets or a placeholder page into a new PDF file."""

    def __init__(self, embed_original: bool = False):
        """
        Initialize the renderer.

        Args:
            embed_original: Attach the source file to placeholder PDFs
        """
        self.embed_original = embed_original

    # === Shared ===

    def _new_canvas(self, buffer: io.BytesIO, pagesize, title: str) -> canvas.Canvas:
        c = canvas.Canvas(buffer, pagesize=pagesize)
        c.setTitle(title)
        c.setCreator(CREATOR)
        return c

    def _write(self, data: bytes, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        ensure_dir(output_path.parent)
        with open(output_path, 'wb') as f:
            f.write(data)
        return output_path

    # === Presentation mode ===

    def render_presentation(
        self,
        slides: List[ExtractedSlide],
        output_path: Union[str, Path],
        title: str = "Presentation",
    ) -> Path:
        """Render one landscape page (or more, when continued) per slide."""
        buffer = io.BytesIO()
        c = self._new_canvas(buffer, SLIDE_PAGE_SIZE, title)

        total = len(slides)
        pages = 0
        for number, slide in enumerate(slides, 1):
            pages += self._draw_slide(c, slide, number, total)

        if total == 0:
            self._draw_empty_slide(c)
            self._draw_slide_footer(c, 1, 1, continued=False)
            c.showPage()
            pages = 1

        c.save()
        logger.info(f"Rendered {total} slides on {pages} pages")
        return self._write(buffer.getvalue(), output_path)

    def _draw_empty_slide(self, c: canvas.Canvas):
        width, height = SLIDE_PAGE_SIZE
        c.setFillColor(MUTED_COLOR)
        c.setFont('Helvetica-Oblique', 20)
        c.drawCentredString(width / 2, height / 2, EMPTY_SLIDE_TEXT)

    def _draw_slide_footer(self, c: canvas.Canvas, number: int, total: int, continued: bool):
        width, _ = SLIDE_PAGE_SIZE
        label = f"Slide {number} of {total}"
        if continued:
            label = f"{label} {CONTINUED_TEXT}"
        c.setFillColor(MUTED_COLOR)
        c.setFont(SLIDE_BODY_FONT, SLIDE_FOOTER_SIZE)
        c.drawCentredString(width / 2, SLIDE_MARGIN / 2, label)

    def _draw_slide(self, c: canvas.Canvas, slide: ExtractedSlide, number: int, total: int) -> int:
        """Draw one slide; returns the number of pages it used."""
        width, height = SLIDE_PAGE_SIZE

        if slide.is_empty:
            self._draw_empty_slide(c)
            self._draw_slide_footer(c, number, total, continued=False)
            c.showPage()
            return 1

        content_width = width - 2 * SLIDE_MARGIN
        y = height * SLIDE_TITLE_BAND

        if slide.title:
            title_lines = simpleSplit(slide.title, SLIDE_TITLE_FONT, SLIDE_TITLE_SIZE, content_width)
            if len(title_lines) > SLIDE_TITLE_MAX_LINES:
                title_lines = title_lines[:SLIDE_TITLE_MAX_LINES]
                title_lines[-1] = title_lines[-1].rstrip() + ELLIPSIS
            c.setFillColor(TITLE_COLOR)
            c.setFont(SLIDE_TITLE_FONT, SLIDE_TITLE_SIZE)
            for line in title_lines:
                c.drawCentredString(width / 2, y, line)
                y -= SLIDE_TITLE_LEADING
            y -= SLIDE_TITLE_GAP

        bottom = SLIDE_MARGIN + SLIDE_FOOTER_BAND
        text_x = SLIDE_MARGIN + SLIDE_TEXT_INDENT
        text_width = content_width - SLIDE_TEXT_INDENT
        pages = 1
        continued = False

        for body_line in slide.body_lines:
            segments = simpleSplit(body_line, SLIDE_BODY_FONT, SLIDE_BODY_SIZE, text_width) or ['']
            for index, segment in enumerate(segments):
                if y < bottom:
                    self._draw_slide_footer(c, number, total, continued)
                    c.showPage()
                    pages += 1
                    continued = True
                    y = height - SLIDE_MARGIN - SLIDE_BODY_SIZE

                c.setFillColor(TEXT_COLOR)
                c.setFont(SLIDE_BODY_FONT, SLIDE_BODY_SIZE)
                if index == 0:
                    c.drawString(SLIDE_MARGIN + SLIDE_BULLET_INDENT, y, "•")
                c.drawString(text_x, y, segment)
                y -= SLIDE_BODY_LEADING
            y -= SLIDE_BULLET_GAP

        self._draw_slide_footer(c, number, total, continued)
        c.showPage()
        return pages

    # === Spreadsheet mode ===

    @property
    def rows_per_page(self) -> int:
        """Rows that fit in the table region below a sheet header."""
        _, height = SHEET_PAGE_SIZE
        table_height = height - 2 * SHEET_MARGIN - SHEET_HEADER_BAND
        return max(1, int(table_height // SHEET_ROW_HEIGHT))

    def sheet_page_breaks(self, row_count: int) -> List[int]:
        """Index of the first row on each page of a sheet with row_count rows."""
        if row_count <= 0:
            return [0]
        return list(range(0, row_count, self.rows_per_page))

    def cell_capacity(self, column_width: float, font_size: float = SHEET_FONT_SIZE) -> int:
        """Estimated number of characters of font_size that fit in a cell."""
        usable = column_width - 2 * SHEET_CELL_PADDING
        return max(0, int(usable / (font_size * SHEET_CHAR_WIDTH_RATIO)))

    def render_spreadsheet(
        self,
        sheets: List[ExtractedSheet],
        output_path: Union[str, Path],
        title: str = "Spreadsheet",
    ) -> Path:
        """Render each sheet as a bordered grid section starting on its own page."""
        buffer = io.BytesIO()
        c = self._new_canvas(buffer, SHEET_PAGE_SIZE, title)

        pages = 0
        for sheet in sheets:
            pages += self._draw_sheet(c, sheet)

        if not sheets:
            self._draw_sheet(c, ExtractedSheet(name=title))
            pages = 1

        c.save()
        logger.info(f"Rendered {len(sheets)} sheets on {pages} pages")
        return self._write(buffer.getvalue(), output_path)

    def _draw_sheet_header(self, c: canvas.Canvas, name: str, continued: bool):
        width, height = SHEET_PAGE_SIZE
        label = f"{name} {CONTINUED_TEXT}" if continued else name
        c.setFillColor(TITLE_COLOR)
        c.setFont(SHEET_HEADER_FONT, SHEET_HEADER_SIZE)
        available = width - 2 * SHEET_MARGIN
        capacity = self.cell_capacity(available, SHEET_HEADER_SIZE)
        fitted = truncate_to_width(label, capacity)
        # The estimate is an average; wide glyphs need a tighter cut
        while capacity > 0 and c.stringWidth(fitted, SHEET_HEADER_FONT, SHEET_HEADER_SIZE) > available:
            capacity -= 1
            fitted = truncate_to_width(label, capacity)
        c.drawCentredString(width / 2, height - SHEET_MARGIN - SHEET_HEADER_SIZE, fitted)

    def _draw_sheet(self, c: canvas.Canvas, sheet: ExtractedSheet) -> int:
        """Draw one sheet; returns the number of pages it used."""
        width, height = SHEET_PAGE_SIZE
        rows = [[value.replace('\r', ' ').replace('\n', ' ') for value in row] for row in sheet.padded_rows()]
        column_count = sheet.column_count

        if not rows or column_count == 0:
            self._draw_sheet_header(c, sheet.name, continued=False)
            c.setFillColor(MUTED_COLOR)
            c.setFont('Helvetica-Oblique', 14)
            c.drawCentredString(width / 2, height / 2, EMPTY_SHEET_TEXT)
            c.showPage()
            return 1

        table_width = width - 2 * SHEET_MARGIN
        column_width = table_width / column_count
        capacity = self.cell_capacity(column_width)
        table_top = height - SHEET_MARGIN - SHEET_HEADER_BAND
        per_page = self.rows_per_page

        breaks = self.sheet_page_breaks(len(rows))
        for page_index, start in enumerate(breaks):
            page_rows = rows[start:start + per_page]
            self._draw_sheet_header(c, sheet.name, continued=page_index > 0)

            c.setStrokeColor(GRID_COLOR)
            c.setLineWidth(0.5)
            c.setFont(SHEET_CELL_FONT, SHEET_FONT_SIZE)
            c.setFillColor(TEXT_COLOR)

            y = table_top
            for row in page_rows:
                y -= SHEET_ROW_HEIGHT
                for col, value in enumerate(row):
                    x = SHEET_MARGIN + col * column_width
                    c.rect(x, y, column_width, SHEET_ROW_HEIGHT, stroke=1, fill=0)
                    if value:
                        text_y = y + (SHEET_ROW_HEIGHT - SHEET_FONT_SIZE) / 2 + 1
                        c.drawString(x + SHEET_CELL_PADDING, text_y, truncate_to_width(value, capacity))

            # Outer frame around this page's table region
            c.setStrokeColor(colors.black)
            c.setLineWidth(1.5)
            c.rect(SHEET_MARGIN, y, table_width, table_top - y, stroke=1, fill=0)
            c.showPage()

        return len(breaks)

    # === Placeholder mode ===

    def render_placeholder(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        label: str,
        generated_at: Optional[datetime] = None,
    ) -> Path:
        """
        Single page naming the document type and file, with a note that full
        fidelity needs LibreOffice and a boxed generation timestamp.
        """
        input_path = Path(input_path)
        generated_at = generated_at or datetime.now()

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=inch,
            leftMargin=inch,
            topMargin=1.5 * inch,
            bottomMargin=inch,
            title=input_path.name,
            creator=CREATOR,
        )

        styles = getSampleStyleSheet()

        title_style = ParagraphStyle(
            name='PlaceholderTitle',
            parent=styles['Heading1'],
            fontSize=24,
            leading=30,
            textColor=colors.HexColor('#333333'),
            spaceAfter=20,
            alignment=1  # Center
        )

        filename_style = ParagraphStyle(
            name='PlaceholderFilename',
            parent=styles['Normal'],
            fontSize=16,
            leading=20,
            textColor=colors.HexColor('#666666'),
            spaceAfter=30,
            alignment=1
        )

        note_style = ParagraphStyle(
            name='PlaceholderNote',
            parent=styles['Normal'],
            fontSize=12,
            leading=16,
            textColor=colors.HexColor('#888888'),
            spaceAfter=10,
            alignment=1
        )

        info_style = ParagraphStyle(
            name='PlaceholderInfo',
            parent=styles['Normal'],
            fontSize=10,
            leading=14,
            textColor=colors.HexColor('#999999'),
            alignment=1
        )

        file_size = input_path.stat().st_size if input_path.exists() else 0

        info_box = Table(
            [
                [Paragraph(f"Type: {_escape_text(label)} | Size: {format_file_size(file_size)}", info_style)],
                [Paragraph(f"Converted on: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}", info_style)],
            ],
            colWidths=[doc.width],
        )
        info_box.setStyle(TableStyle([
            ('BOX', (0, 0), (-1, -1), 1, colors.HexColor('#cccccc')),
            ('TOPPADDING', (0, 0), (-1, -1), 12),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 12),
        ]))

        story = [
            Paragraph(_escape_text(label), title_style),
            Paragraph(f"File: {_escape_text(input_path.name)}", filename_style),
            Paragraph("This document has been converted to PDF format.", note_style),
            Paragraph(
                "For full document viewing capabilities, please install LibreOffice on the server.",
                note_style
            ),
            Spacer(1, 30),
            info_box,
        ]

        doc.build(story)
        pdf_bytes = buffer.getvalue()

        if self.embed_original and input_path.exists():
            try:
                pdf_bytes = embed_file(pdf_bytes, input_path)
            except Exception as e:
                logger.warning(f"Could not embed {input_path.name} in placeholder: {e}")

        return self._write(pdf_bytes, output_path)


def embed_file(pdf_bytes: bytes, attachment_path: Path) -> bytes:
    """Return pdf_bytes with attachment_path added as an embedded file."""
    import pikepdf

    with open(attachment_path, 'rb') as f:
        file_data = f.read()

    with pikepdf.Pdf.open(io.BytesIO(pdf_bytes)) as pdf:
        file_stream = pikepdf.Stream(pdf, file_data)
        file_stream['/Type'] = pikepdf.Name('/EmbeddedFile')

        file_spec = pikepdf.Dictionary({
            '/Type': pikepdf.Name('/Filespec'),
            '/F': attachment_path.name,
            '/UF': attachment_path.name,
            '/EF': pikepdf.Dictionary({
                '/F': file_stream,
                '/UF': file_stream,
            }),
            '/Desc': f'Original document: {attachment_path.name}',
        })

        if '/Names' not in pdf.Root:
            pdf.Root['/Names'] = pikepdf.Dictionary()

        pdf.Root.Names['/EmbeddedFiles'] = pikepdf.Dictionary({
            '/Names': pikepdf.Array([
                attachment_path.name,
                pdf.make_indirect(file_spec)
            ])
        })

        out = io.BytesIO()
        pdf.save(out)
    return out.getvalue()
