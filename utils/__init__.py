"""
Utilities Package
"""

from .file_utils import ensure_dir, format_file_size, remove_quietly, pdf_output_path, file_is_nonempty

__all__ = [
    'ensure_dir',
    'format_file_size',
    'remove_quietly',
    'pdf_output_path',
    'file_is_nonempty',
]
