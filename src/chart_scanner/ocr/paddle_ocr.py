"""PaddleOCR backend implementation."""

import logging
import os
import threading

import numpy as np
from paddleocr import PaddleOCR

from chart_scanner.models.chart import BoundingBox, RecognizedTextBlock
from chart_scanner.ocr.base import OCRBackend, OCRResult

logger = logging.getLogger(__name__)


# Disable OneDNN/MKLDNN to avoid PIR compatibility issues with PaddlePaddle 3.x
# See: https://github.com/PaddlePaddle/PaddleOCR/discussions/17350
os.environ.setdefault("FLAGS_use_mkldnn", "0")


def polygon_to_box(poly, width: int, height: int) -> BoundingBox:
    """Convert a pixel polygon to a page-normalized bounding box."""
    points = poly.tolist() if hasattr(poly, "tolist") else poly
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return BoundingBox(
        min_x=min(xs) / width,
        min_y=min(ys) / height,
        max_x=max(xs) / width,
        max_y=max(ys) / height,
    )


class PaddleOCRBackend(OCRBackend):
    """OCR backend using PaddleOCR."""

    def __init__(self, lang: str = "en"):
        """
        Initialize PaddleOCR backend.

        Args:
            lang: Language for OCR. Default is "en" for English.
        """
        self._lang = lang
        self._ocr = PaddleOCR(lang=lang, enable_mkldnn=False)
        # Batch workers share this backend; the predictor takes one image at a time
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"paddleocr:{self._lang}"

    def recognize(self, image: np.ndarray) -> OCRResult:
        """Recognize positioned text using PaddleOCR. Safe to call from several threads."""
        if image is None or image.size == 0:
            raise ValueError("Cannot run OCR on an empty image")

        height, width = image.shape[:2]
        with self._lock:
            result = self._ocr.predict(image)

        if not result or not result[0]:
            return OCRResult(text="", confidence=0.0, blocks=[])

        # PaddleOCR 3.x returns OCRResult objects with rec_texts, rec_scores, rec_polys
        ocr_result = result[0]
        texts = ocr_result.get("rec_texts", [])
        scores = ocr_result.get("rec_scores", [])
        polys = ocr_result.get("rec_polys", [])

        if not texts:
            return OCRResult(text="", confidence=0.0, blocks=[])

        blocks = [
            RecognizedTextBlock(
                text=text,
                bounding_box=polygon_to_box(poly, width, height),
                confidence=min(max(float(score), 0.0), 1.0),
            )
            for text, score, poly in zip(texts, scores, polys)
        ]
        logger.debug("PaddleOCR recognized %d block(s)", len(blocks))

        avg_confidence = sum(b.confidence for b in blocks) / len(blocks)

        return OCRResult(
            text="\n".join(texts),
            confidence=float(avg_confidence),
            blocks=blocks,
        )
