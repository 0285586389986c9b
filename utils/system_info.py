"""
System Information Diagnostic Module

Collects system and library information for troubleshooting conversions,
particularly whether LibreOffice was found and which tiers can run.
"""

import sys
import os
import platform
import logging
from typing import Dict, Any, Optional
from datetime import datetime

logger = logging.getLogger(__name__)


def get_system_info(orchestrator=None) -> Dict[str, Any]:
    """
    Collect system information for diagnostics.

    Args:
        orchestrator: Optional ConversionOrchestrator whose capabilities are reported

    Returns a dictionary with all relevant system details.
    """
    info = {
        'timestamp': datetime.now().isoformat(),
        'platform': {},
        'python': {},
        'environment': {},
        'engine': {},
        'libraries': {},
    }

    info['platform'] = {
        'system': platform.system(),
        'release': platform.release(),
        'machine': platform.machine(),
    }

    info['python'] = {
        'version': sys.version.split()[0],
        'executable': sys.executable,
    }

    env_vars = ['OFFICE2PDF_ENGINE_PATH', 'OFFICE2PDF_TIMEOUT_MS', 'PATH']
    info['environment'] = {
        var: os.environ.get(var, '<not set>')
        for var in env_vars
    }
    # Truncate PATH for readability
    path_val = info['environment'].get('PATH', '')
    if len(path_val) > 200:
        info['environment']['PATH'] = path_val[:200] + '... (truncated)'

    if orchestrator is not None:
        info['engine'] = get_engine_info(orchestrator)
    else:
        info['engine'] = {'note': 'Engine not probed'}

    info['libraries'] = get_library_versions()

    return info


def get_engine_info(orchestrator) -> Dict[str, Any]:
    """LibreOffice presence and per-category tier availability."""
    try:
        report = orchestrator.capabilities()
    except Exception as e:
        return {'error': str(e)}

    engine_info = {
        'available': report.engine.available,
        'path': report.engine.resolved_path or '<not found>',
        'version': report.engine.version or '<unknown>',
    }
    for category, tiers in report.tiers.items():
        enabled = [name for name, available in tiers.items() if available]
        engine_info[category.value] = ', '.join(enabled)
    return engine_info


def get_library_versions() -> Dict[str, str]:
    """Get versions of key libraries."""
    libs = {}

    library_names = [
        ('reportlab', 'reportlab'),
        ('pikepdf', 'pikepdf'),
        ('python-docx', 'docx'),
        ('lxml', 'lxml.etree'),
    ]

    for display_name, import_name in library_names:
        try:
            mod = __import__(import_name, fromlist=['_'])
            version = getattr(mod, '__version__', getattr(mod, 'Version', getattr(mod, 'LXML_VERSION', 'installed')))
            if isinstance(version, tuple):
                version = '.'.join(str(part) for part in version)
            libs[display_name] = str(version)
        except ImportError:
            libs[display_name] = 'not installed'

    return libs


def generate_diagnostic_report(orchestrator=None) -> str:
    """
    Generate a full diagnostic report as a string.

    This can be shown to the user or written to a file.
    """
    info = get_system_info(orchestrator)

    report = []
    report.append("=" * 60)
    report.append("OFFICE2PDF - DIAGNOSTIC REPORT")
    report.append("=" * 60)
    report.append("")

    sections = [
        ('PLATFORM', 'platform'),
        ('PYTHON', 'python'),
        ('ENVIRONMENT VARIABLES', 'environment'),
        ('CONVERSION ENGINE', 'engine'),
        ('LIBRARIES', 'libraries'),
    ]
    for heading, key in sections:
        report.append(f"{heading}:")
        report.append("-" * 40)
        for k, v in info[key].items():
            report.append(f"  {k}: {v}")
        report.append("")

    report.append("=" * 60)
    report.append("END OF REPORT")
    report.append("=" * 60)

    return "\n".join(report)


def log_system_info(orchestrator: Optional[object] = None):
    """Log system info at startup for debugging."""
    try:
        info = get_system_info(orchestrator)
        logger.info("System Info:")
        logger.info(f"  Platform: {info['platform']['system']} {info['platform']['release']}")
        logger.info(f"  Python: {info['python']['version']}")
        if info['engine'].get('available') is not None:
            logger.info(f"  LibreOffice: {info['engine']['path']} (available: {info['engine']['available']})")
    except Exception as e:
        logger.warning(f"Could not collect system info: {e}")
