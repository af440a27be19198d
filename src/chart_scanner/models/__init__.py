"""Data models for chart scanning."""

from chart_scanner.models.batch import (
    BatchOCRError,
    BatchOCRJob,
    BatchStatus,
    QueueStatus,
)
from chart_scanner.models.chart import (
    BoundingBox,
    ChordPlacement,
    ImageQualityMetrics,
    LayoutStructure,
    LayoutType,
    OCRSectionType,
    OCRSongSection,
    Point,
    RecognizedTextBlock,
    ScanMetadata,
    ScanResult,
    SpacingRule,
)

__all__ = [
    "BatchOCRError",
    "BatchOCRJob",
    "BatchStatus",
    "QueueStatus",
    "BoundingBox",
    "ChordPlacement",
    "ImageQualityMetrics",
    "LayoutStructure",
    "LayoutType",
    "OCRSectionType",
    "OCRSongSection",
    "Point",
    "RecognizedTextBlock",
    "ScanMetadata",
    "ScanResult",
    "SpacingRule",
]
