"""Image quality scoring and enhancement."""

from chart_scanner.preprocessing.enhancer import EnhancementResult, ImageEnhancer
from chart_scanner.preprocessing.image_io import load_image
from chart_scanner.preprocessing.quality import QualityAnalyzer

__all__ = ["EnhancementResult", "ImageEnhancer", "QualityAnalyzer", "load_image"]
