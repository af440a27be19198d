"""OCR backends producing positioned text blocks."""

from chart_scanner.ocr.base import OCRBackend, OCRResult

__all__ = ["OCRBackend", "OCRResult"]
