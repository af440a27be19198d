"""Abstract base class for OCR backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from chart_scanner.models.chart import RecognizedTextBlock


@dataclass
class OCRResult:
    """Result from OCR processing."""

    text: str
    """Recognized text, one block per line."""

    confidence: float
    """Average confidence score (0.0-1.0)."""

    blocks: list[RecognizedTextBlock] = field(default_factory=list)
    """Recognized blocks with page-normalized bounding boxes."""

    @property
    def has_text(self) -> bool:
        """True if at least one block contains non-blank text."""
        return any(block.text.strip() for block in self.blocks)


class OCRBackend(ABC):
    """Abstract base class for OCR backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this OCR backend."""
        ...

    @abstractmethod
    def recognize(self, image: np.ndarray) -> OCRResult:
        """
        Recognize positioned text in an image.

        Args:
            image: BGR or grayscale image array.

        Returns:
            OCRResult whose block boxes are normalized to 0-1 page units.

        Raises:
            ValueError: If the image cannot be processed.
        """
        ...
