"""Chord chart image scanner: enhancement, layout analysis and batch processing."""

from chart_scanner.batch import BatchScheduler
from chart_scanner.layout.analyzer import LayoutAnalyzer
from chart_scanner.models.chart import LayoutStructure, ScanResult
from chart_scanner.pipeline import ChartScanner
from chart_scanner.preprocessing.enhancer import ImageEnhancer

__version__ = "0.1.0"
__all__ = [
    "BatchScheduler",
    "ChartScanner",
    "ImageEnhancer",
    "LayoutAnalyzer",
    "LayoutStructure",
    "ScanResult",
]
