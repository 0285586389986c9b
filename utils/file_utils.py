"""
File Utilities Module

Common file operations and helpers.
"""

import os
from pathlib import Path
from typing import Union
import logging

logger = logging.getLogger(__name__)


def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_file_size(size: int) -> str:
    """Format file size in human readable form."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def remove_quietly(path: Union[str, Path]) -> bool:
    """
    Delete a file if it exists.

    Returns:
        True if a file was removed
    """
    path = Path(path)
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
        return False


def pdf_output_path(input_path: Union[str, Path]) -> Path:
    """
    The PDF path next to an input file.

    Args:
        input_path: Original file path (e.g. uploads/report.docx)

    Returns:
        Same directory and stem with a .pdf extension (uploads/report.pdf)
    """
    input_path = Path(input_path)
    return input_path.parent / f"{input_path.stem}.pdf"


def file_is_nonempty(path: Union[str, Path]) -> bool:
    return os.path.isfile(path) and os.path.getsize(path) > 0
