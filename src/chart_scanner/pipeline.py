"""Main chord chart scanning controller."""

import logging
import time
from pathlib import Path

import numpy as np

from chart_scanner.errors import (
    ChartScanError,
    InvalidImageError,
    NoTextFoundError,
    RecognitionError,
)
from chart_scanner.layout.analyzer import LayoutAnalyzer
from chart_scanner.layout.chordpro import to_chordpro
from chart_scanner.models.chart import ScanMetadata, ScanResult
from chart_scanner.ocr.base import OCRBackend, OCRResult
from chart_scanner.preprocessing.enhancer import UPRIGHT, ImageEnhancer
from chart_scanner.preprocessing.image_io import load_image
from chart_scanner.preprocessing.quality import is_readable

logger = logging.getLogger(__name__)


class ChartScanner:
    """Main controller: enhance an image, recognize its text, analyze the layout."""

    def __init__(
        self,
        ocr: OCRBackend,
        enhancer: ImageEnhancer | None = None,
        analyzer: LayoutAnalyzer | None = None,
        title: str = "Untitled",
    ):
        """
        Initialize the scanner with its engines.

        Args:
            ocr: OCR backend producing positioned text blocks.
            enhancer: Image enhancer; a default one is built if omitted.
            analyzer: Layout analyzer; a default one is built if omitted.
            title: Title written into the ChordPro output.
        """
        self._ocr = ocr
        self._enhancer = enhancer or ImageEnhancer()
        self._analyzer = analyzer or LayoutAnalyzer()
        self._title = title

    def scan(self, image: str | Path | np.ndarray, page_number: int = 0) -> ScanResult:
        """
        Scan a chord chart image into a structured chart.

        Args:
            image: Path to the image, or an already decoded image array.
            page_number: Page index recorded on the detected sections.

        Returns:
            ScanResult with layout, quality metrics and ChordPro text.

        Raises:
            FileNotFoundError: If the image file does not exist.
            InvalidImageError: If the image cannot be decoded.
            NoTextFoundError: If OCR finds no text.
            RecognitionError: If the OCR backend fails.
        """
        start_time = time.perf_counter()

        # Step 1: Enhancement
        pixels, orientation = self._load(image)
        enhanced = self._enhancer.enhance(pixels, orientation)

        # Step 2: OCR
        ocr_result = self._recognize(enhanced.image)
        if not ocr_result.has_text:
            raise NoTextFoundError("OCR extracted no text from the image")

        # Step 3: Layout analysis
        layout = self._analyzer.analyze_layout(ocr_result.blocks, page_number=page_number)
        chart = to_chordpro(layout, title=self._title, analyzer=self._analyzer)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        return ScanResult(
            layout=layout,
            quality=enhanced.metrics,
            initial_quality=enhanced.initial_metrics,
            raw_text=ocr_result.text,
            confidence=min(max(ocr_result.confidence, 0.0), 1.0),
            chart=chart,
            metadata=ScanMetadata(
                ocr_backend=self._ocr.name,
                enhancements_applied=enhanced.applied,
                processing_time_ms=round(elapsed_ms, 2),
                page_number=page_number,
            ),
        )

    def scan_ocr_only(self, image: str | Path | np.ndarray) -> str:
        """
        Run enhancement and OCR only, without layout analysis.

        Useful for debugging or checking OCR quality.

        Args:
            image: Path to the image, or an image array.

        Returns:
            Raw OCR text.
        """
        pixels, orientation = self._load(image)
        enhanced, _ = self._enhancer.enhance_image(pixels, orientation)
        return self._recognize(enhanced).text

    def _load(self, image: str | Path | np.ndarray) -> tuple[np.ndarray, int]:
        if isinstance(image, (str, Path)):
            return load_image(image)
        if not is_readable(image):
            raise InvalidImageError("Image has no readable 8-bit pixel buffer")
        return image, UPRIGHT

    def _recognize(self, image: np.ndarray) -> OCRResult:
        try:
            return self._ocr.recognize(image)
        except ChartScanError:
            raise
        except Exception as e:
            logger.warning("OCR backend %s failed: %s", self._ocr.name, e)
            raise RecognitionError(f"OCR processing failed: {e}") from e
