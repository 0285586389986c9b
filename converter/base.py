"""
Base tier interface for the conversion chain.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .models import ConversionRequest, FormatCategory


class ConversionTier(ABC):
    """One fallback strategy in the conversion priority chain."""

    name = "tier"

    @abstractmethod
    def supports(self, category: FormatCategory) -> bool:
        """Whether this tier can currently attempt the given category."""

    @abstractmethod
    def attempt(self, request: ConversionRequest) -> Path:
        """
        Convert the request's input into request.output_path.

        Returns:
            The path of the produced PDF

        Raises:
            ConversionError subclass describing why the tier could not convert
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
