"""Image quality scoring on a sparse pixel grid."""

import logging

import numpy as np

from chart_scanner.models.chart import ImageQualityMetrics

logger = logging.getLogger(__name__)

# Fixed stand-in: no line-angle detection is performed
SKEW_ANGLE_STAND_IN = 0.0

FALLBACK_METRICS = ImageQualityMetrics(
    brightness=0.5,
    contrast=0.3,
    sharpness=0.0,
    skew_angle=SKEW_ANGLE_STAND_IN,
    noise_level=50.0,
)
EMPTY_NOISE_LEVEL = 25.0


def is_readable(image) -> bool:
    """Check that an image is a non-empty 8-bit grayscale, BGR or BGRA array."""
    if not isinstance(image, np.ndarray) or image.size == 0:
        return False
    if image.dtype != np.uint8:
        return False
    if image.ndim == 2:
        return True
    return image.ndim == 3 and image.shape[2] in (1, 3, 4)


def sample_luma(image: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """
    Perceptual luma (0-255) of the pixels on the grid ys x xs.

    Args:
        image: Grayscale or BGR(A) image.
        ys: Row indices.
        xs: Column indices.

    Returns:
        Float array of shape (len(ys), len(xs)).
    """
    patch = image[np.ix_(ys, xs)].astype(np.float64)
    if patch.ndim == 2:
        return patch
    if patch.shape[2] == 1:
        return patch[..., 0]
    return 0.299 * patch[..., 2] + 0.587 * patch[..., 1] + 0.114 * patch[..., 0]


class QualityAnalyzer:
    """Estimate brightness, contrast, sharpness and noise of an image.

    Only pixels on a fixed stride are read, so the cost grows with
    (height / stride) * (width / stride) rather than with the full frame.
    """

    def __init__(self, sample_stride: int = 10):
        """
        Initialize QualityAnalyzer.

        Args:
            sample_stride: Distance in pixels between sampled rows and columns.
        """
        if sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")
        self._stride = sample_stride

    @property
    def sample_stride(self) -> int:
        return self._stride

    def calculate_quality_metrics(self, image: np.ndarray) -> ImageQualityMetrics:
        """
        Calculate quality metrics for an image.

        Args:
            image: Grayscale or BGR(A) uint8 array.

        Returns:
            ImageQualityMetrics; fallback values when the pixels are unreadable.
        """
        if not is_readable(image):
            logger.warning("Unreadable pixel buffer, using fallback quality metrics")
            return FALLBACK_METRICS

        brightness, contrast = self._brightness_and_contrast(image)
        metrics = ImageQualityMetrics(
            brightness=brightness,
            contrast=contrast,
            sharpness=self._sharpness(image),
            skew_angle=self._detect_skew(image),
            noise_level=self._noise(image),
        )
        logger.debug(
            "Quality: brightness=%.3f contrast=%.3f sharpness=%.1f noise=%.1f score=%.3f",
            metrics.brightness,
            metrics.contrast,
            metrics.sharpness,
            metrics.noise_level,
            metrics.overall_score,
        )
        return metrics

    def _brightness_and_contrast(self, image: np.ndarray) -> tuple[float, float]:
        h, w = image.shape[:2]
        ys = np.arange(0, h, self._stride)
        xs = np.arange(0, w, self._stride)
        luma = sample_luma(image, ys, xs) / 255.0

        # Clamp float drift from the luma weights
        brightness = min(float(luma.mean()), 1.0)
        contrast = min(float(luma.std()), 1.0)
        return brightness, contrast

    def _sharpness(self, image: np.ndarray) -> float:
        """Mean absolute 4-neighbour Laplacian at interior grid points."""
        h, w = image.shape[:2]
        ys = np.arange(self._stride, h - 1, self._stride)
        xs = np.arange(self._stride, w - 1, self._stride)
        if ys.size == 0 or xs.size == 0:
            return 0.0

        center = sample_luma(image, ys, xs)
        top = sample_luma(image, ys - 1, xs)
        bottom = sample_luma(image, ys + 1, xs)
        left = sample_luma(image, ys, xs - 1)
        right = sample_luma(image, ys, xs + 1)

        laplacian = np.abs(center * 4.0 - (top + bottom + left + right))
        return float(laplacian.mean())

    def _noise(self, image: np.ndarray) -> float:
        """Mean luma difference to the right and bottom neighbours, 0-100."""
        h, w = image.shape[:2]
        ys = np.arange(1, h - 1, self._stride)
        xs = np.arange(1, w - 1, self._stride)
        if ys.size == 0 or xs.size == 0:
            return EMPTY_NOISE_LEVEL

        center = sample_luma(image, ys, xs)
        right = sample_luma(image, ys, xs + 1)
        bottom = sample_luma(image, ys + 1, xs)

        differences = np.concatenate(
            [np.abs(center - right).ravel(), np.abs(center - bottom).ravel()]
        )
        return min(float(differences.mean()) * 100.0 / 255.0, 100.0)

    def _detect_skew(self, image: np.ndarray) -> float:
        # Known limitation: skew is not measured from the image content
        return SKEW_ANGLE_STAND_IN
