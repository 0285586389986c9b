"""
Fallback Tiers Module

The two tiers that need no conversion engine: structured extraction with
re-rendering, and the placeholder page.
"""

import logging
from pathlib import Path

from .base import ConversionTier
from .content_extractor import StructuredContentExtractor
from .errors import EngineUnavailable
from .models import ConversionRequest, FormatCategory
from .pdf_renderer import PdfRenderer

logger = logging.getLogger(__name__)


class FormatSpecificExtractionTier(ConversionTier):
    """
    Parses the container by hand and renders its text content.

    Presentations and spreadsheets only; word-processing documents have no
    structured layout here and go straight on to the placeholder.
    """

    name = "structured_extraction"

    SUPPORTED = (FormatCategory.PRESENTATION, FormatCategory.SPREADSHEET)

    def __init__(self, extractor: StructuredContentExtractor, renderer: PdfRenderer):
        self.extractor = extractor
        self.renderer = renderer

    def supports(self, category: FormatCategory) -> bool:
        return category in self.SUPPORTED

    def attempt(self, request: ConversionRequest) -> Path:
        input_path = Path(request.input_path)

        if request.format_category == FormatCategory.PRESENTATION:
            slides = self.extractor.extract_presentation(input_path)
            return self.renderer.render_presentation(slides, request.output_path, title=input_path.name)

        if request.format_category == FormatCategory.SPREADSHEET:
            sheets = self.extractor.extract_workbook(input_path)
            return self.renderer.render_spreadsheet(sheets, request.output_path, title=input_path.name)

        raise EngineUnavailable(f"No structured extraction for {request.format_category.label}")


class PlaceholderTier(ConversionTier):
    """Terminal tier: an information page that names the document."""

    name = "placeholder"

    def __init__(self, renderer: PdfRenderer):
        self.renderer = renderer

    def supports(self, category: FormatCategory) -> bool:
        return True

    def attempt(self, request: ConversionRequest) -> Path:
        logger.info(f"Creating placeholder PDF for {Path(request.input_path).name}")
        return self.renderer.render_placeholder(
            request.input_path,
            request.output_path,
            request.format_category.label,
        )
