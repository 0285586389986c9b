"""
Office to PDF Converter Package
"""

from .models import (
    FormatCategory,
    ConversionRequest,
    ConversionResult,
    EnginePresence,
    ExtractedSlide,
    ExtractedSheet,
    CapabilityReport,
)
from .errors import (
    ConversionError,
    ConversionFailed,
    EngineUnavailable,
    EngineTimeout,
    EngineInvocationFailed,
    MalformedContainer,
    OutputMissing,
    PlaceholderWriteFailed,
    InvalidRequest,
)
from .config import ConverterConfig, load_config
from .engine_probe import PlatformEngineProbe, PlatformPathResolver
from .engine_adapters import ExternalEngineAdapter, EmbeddedLibraryAdapter
from .container_parser import ContainerParser
from .content_extractor import StructuredContentExtractor
from .pdf_renderer import PdfRenderer
from .orchestrator import ConversionOrchestrator, convert, capabilities

__all__ = [
    'FormatCategory',
    'ConversionRequest',
    'ConversionResult',
    'EnginePresence',
    'ExtractedSlide',
    'ExtractedSheet',
    'CapabilityReport',
    # Errors
    'ConversionError',
    'ConversionFailed',
    'EngineUnavailable',
    'EngineTimeout',
    'EngineInvocationFailed',
    'MalformedContainer',
    'OutputMissing',
    'PlaceholderWriteFailed',
    'InvalidRequest',
    # Components
    'ConverterConfig',
    'load_config',
    'PlatformEngineProbe',
    'PlatformPathResolver',
    'ExternalEngineAdapter',
    'EmbeddedLibraryAdapter',
    'ContainerParser',
    'StructuredContentExtractor',
    'PdfRenderer',
    'ConversionOrchestrator',
    'convert',
    'capabilities',
]
