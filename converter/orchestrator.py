"""
Conversion Orchestrator Module

Runs the conversion tiers in priority order:

    external engine -> embedded library -> structured extraction -> placeholder

Every tier goes through the same wrapper: attempt, validate the produced
PDF, and on any failure log the reason, clear the partial output and move
on. Only a failing placeholder is fatal.
"""

import shutil
import logging
from pathlib import Path
from threading import Lock
from typing import Optional, List, Union, Iterable

import pikepdf

from .base import ConversionTier
from .config import ConverterConfig
from .container_parser import ContainerParser
from .content_extractor import StructuredContentExtractor
from .engine_adapters import ExternalEngineAdapter, EmbeddedLibraryAdapter
from .engine_probe import PlatformEngineProbe, PlatformPathResolver
from .errors import (
    ConversionError,
    ConversionFailed,
    EngineInvocationFailed,
    EngineUnavailable,
    InvalidRequest,
    OutputMissing,
    PlaceholderWriteFailed,
)
from .fallback_tiers import FormatSpecificExtractionTier, PlaceholderTier
from .models import (
    ConversionRequest,
    ConversionResult,
    CapabilityReport,
    FormatCategory,
)
from .pdf_renderer import PdfRenderer
from utils.file_utils import remove_quietly

logger = logging.getLogger(__name__)


def validate_pdf(path: Union[str, Path]):
    """
    Check that path holds a non-empty PDF with at least one page.

    Raises:
        OutputMissing: no file at path
        EngineInvocationFailed: empty or unreadable PDF
    """
    path = Path(path)
    if not path.is_file():
        raise OutputMissing("No output file", detail=str(path))
    if path.stat().st_size == 0:
        raise EngineInvocationFailed("Output file is empty", detail=str(path))
    try:
        with pikepdf.open(path) as pdf:
            page_count = len(pdf.pages)
    except pikepdf.PdfError as e:
        raise EngineInvocationFailed("Output is not a valid PDF", detail=str(e)) from e
    if page_count == 0:
        raise EngineInvocationFailed("Output PDF has no pages", detail=str(path))


class ConversionOrchestrator:
    """
    Converts office documents to PDF, always producing a file.

    Long-lived: the engine probe it owns memoizes LibreOffice discovery for
    the orchestrator's lifetime.
    """

    def __init__(
        self,
        config: Optional[ConverterConfig] = None,
        probe: Optional[PlatformEngineProbe] = None,
        tiers: Optional[Iterable[ConversionTier]] = None,
        renderer: Optional[PdfRenderer] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Converter settings (defaults when omitted)
            probe: Engine probe; built from config when omitted
            tiers: Ordered non-terminal tiers; the standard chain when omitted.
                The placeholder tier is always appended.
            renderer: PDF renderer shared by the fallback tiers
        """
        self.config = config or ConverterConfig()
        self.probe = probe or PlatformEngineProbe(
            PlatformPathResolver(
                candidates=self.config.candidate_paths,
                explicit_path=self.config.engine_path,
            ),
            timeout=self.config.probe_timeout_seconds,
        )
        self.renderer = renderer or PdfRenderer(embed_original=self.config.embed_original_in_placeholder)

        if tiers is None:
            tiers = [
                ExternalEngineAdapter(self.probe, settle_delay=self.config.settle_delay_seconds),
                EmbeddedLibraryAdapter(),
                FormatSpecificExtractionTier(
                    StructuredContentExtractor(ContainerParser(max_part_bytes=self.config.max_part_bytes)),
                    self.renderer,
                ),
            ]
        self.tiers: List[ConversionTier] = list(tiers)
        self.placeholder = PlaceholderTier(self.renderer)

    def _build_request(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        format_category: Union[FormatCategory, str],
        timeout_ms: Optional[int],
    ) -> ConversionRequest:
        input_path = Path(input_path)
        output_path = Path(output_path)

        if not input_path.is_file():
            raise InvalidRequest(f"Input file not found: {input_path}")
        if not isinstance(format_category, FormatCategory):
            try:
                format_category = FormatCategory.parse(format_category)
            except ValueError as e:
                raise InvalidRequest(str(e)) from e
        if timeout_ms is None:
            timeout_ms = self.config.default_timeout_ms
        if timeout_ms <= 0:
            raise InvalidRequest(f"Timeout must be positive: {timeout_ms}")

        return ConversionRequest(
            input_path=input_path,
            output_path=output_path,
            format_category=format_category,
            timeout_ms=timeout_ms,
        )

    def _run_tier(self, tier: ConversionTier, request: ConversionRequest) -> Path:
        """Attempt one tier; the validated output path, or the classified failure raised."""
        try:
            produced = Path(tier.attempt(request))
            if produced != request.output_path:
                shutil.move(str(produced), str(request.output_path))
            validate_pdf(request.output_path)
            return request.output_path
        except EngineUnavailable as e:
            logger.info(f"Skipping {tier.name}: {e}")
            raise
        except ConversionError as e:
            logger.warning(f"{tier.name} failed for {request.input_path.name}: {e}")
            remove_quietly(request.output_path)
            raise
        except Exception as e:
            logger.warning(f"{tier.name} failed for {request.input_path.name}: {e}", exc_info=True)
            remove_quietly(request.output_path)
            raise EngineInvocationFailed(f"{tier.name} raised {type(e).__name__}", detail=str(e)) from e

    def convert(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        format_category: Union[FormatCategory, str],
        timeout_ms: Optional[int] = None,
    ) -> ConversionResult:
        """
        Convert a document to PDF.

        Args:
            input_path: Validated office document
            output_path: Where the PDF must end up
            format_category: Category of the input (or its name/extension)
            timeout_ms: Budget for the external engine (config default if None)

        Returns:
            ConversionResult; output_path exists and is a valid PDF

        Raises:
            InvalidRequest: input missing or bad arguments
            ConversionFailed: even the placeholder could not be written
        """
        request = self._build_request(input_path, output_path, format_category, timeout_ms)

        logger.info(
            f"Converting {request.format_category.value} file: {request.input_path} -> {request.output_path}"
        )

        attempts = []
        for tier in self.tiers:
            try:
                path = self._run_tier(tier, request)
            except ConversionError as e:
                attempts.append((tier.name, str(e)))
                continue
            logger.info(f"Converted {request.input_path.name} with {tier.name}")
            return ConversionResult(output_path=path, tier_used=tier.name, attempts=attempts)

        try:
            path = self._run_tier(self.placeholder, request)
        except ConversionError as e:
            fatal = PlaceholderWriteFailed("Placeholder PDF could not be written", detail=str(e))
            logger.exception(f"Conversion failed for {request.input_path}: {fatal}")
            raise ConversionFailed() from fatal

        logger.info(f"Placeholder PDF created for {request.input_path.name}")
        return ConversionResult(output_path=path, tier_used=self.placeholder.name, attempts=attempts)

    def capabilities(self) -> CapabilityReport:
        """Which tiers can run for each category. Has no effect on convert()."""
        report = CapabilityReport(engine=self.probe.probe())
        for category in FormatCategory:
            tiers = {tier.name: tier.supports(category) for tier in self.tiers}
            tiers[self.placeholder.name] = True
            report.tiers[category] = tiers
        return report


_default_orchestrator: Optional[ConversionOrchestrator] = None
_default_lock = Lock()


def get_default_orchestrator() -> ConversionOrchestrator:
    """Process-wide orchestrator used by the module-level helpers."""
    global _default_orchestrator
    with _default_lock:
        if _default_orchestrator is None:
            _default_orchestrator = ConversionOrchestrator()
        return _default_orchestrator


def convert(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    format_category: Union[FormatCategory, str],
    timeout_ms: Optional[int] = None,
) -> Path:
    """Convert with the default orchestrator; returns the output path."""
    return get_default_orchestrator().convert(input_path, output_path, format_category, timeout_ms).output_path


def capabilities() -> CapabilityReport:
    return get_default_orchestrator().capabilities()
