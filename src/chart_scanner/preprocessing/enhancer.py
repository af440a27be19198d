"""Conditional image enhancement ahead of OCR."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import cv2
import numpy as np

from chart_scanner.config import EnhancementConfig
from chart_scanner.models.chart import ImageQualityMetrics
from chart_scanner.preprocessing.quality import QualityAnalyzer, is_readable

logger = logging.getLogger(__name__)

# S-curve control points (input level -> output level, both 0-1)
TONE_CURVE_POINTS = ((0.0, 0.0), (0.25, 0.15), (0.5, 0.5), (0.75, 0.85), (1.0, 1.0))

UPRIGHT = 1

# Enhancement step names, in the order they are applied
STEP_ROTATE = "rotate"
STEP_DESKEW = "deskew"
STEP_CONTRAST = "contrast"
STEP_DENOISE = "denoise"
STEP_SHARPEN = "sharpen"


def _build_tone_curve_lut() -> np.ndarray:
    xs = np.array([p[0] for p in TONE_CURVE_POINTS])
    ys = np.array([p[1] for p in TONE_CURVE_POINTS])
    levels = np.arange(256, dtype=np.float64) / 255.0
    curve = np.interp(levels, xs, ys) * 255.0
    return np.clip(np.round(curve), 0, 255).astype(np.uint8)


TONE_CURVE_LUT = _build_tone_curve_lut()


def _apply_to_color(image: np.ndarray, fn: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
    """Apply fn to the gray or BGR planes, leaving an alpha channel untouched."""
    if image.ndim == 3 and image.shape[2] == 1:
        return fn(np.ascontiguousarray(image[..., 0]))[..., np.newaxis]
    if image.ndim == 3 and image.shape[2] == 4:
        color = fn(np.ascontiguousarray(image[..., :3]))
        return np.dstack([color, image[..., 3]])
    return fn(image)


def _unsharp(plane: np.ndarray, sigma: float, amount: float) -> np.ndarray:
    blurred = cv2.GaussianBlur(plane, (0, 0), sigma)
    return cv2.addWeighted(plane, 1.0 + amount, blurred, -amount, 0)


@dataclass
class EnhancementResult:
    """Output of the enhancement pipeline."""

    image: np.ndarray
    """Enhanced image (always a new array)."""

    initial_metrics: ImageQualityMetrics
    """Metrics of the source image, used to choose the steps."""

    metrics: ImageQualityMetrics
    """Metrics recomputed from the enhanced image."""

    applied: list[str] = field(default_factory=list)
    """Names of the steps that changed the image."""


class ImageEnhancer:
    """Score an image and apply only the corrections it needs.

    Steps run in a fixed order: rotate, deskew, contrast, denoise, sharpen.
    Each step is chosen from the metrics of the source image and can fail
    independently; a failed step leaves the image as it was.
    """

    def __init__(
        self,
        config: EnhancementConfig | None = None,
        analyzer: QualityAnalyzer | None = None,
    ):
        """
        Initialize ImageEnhancer.

        Args:
            config: Step thresholds and filter strengths.
            analyzer: Quality analyzer; built from config.sample_stride if omitted.
        """
        self._config = config or EnhancementConfig()
        self._analyzer = analyzer or QualityAnalyzer(self._config.sample_stride)

    @property
    def analyzer(self) -> QualityAnalyzer:
        return self._analyzer

    def calculate_quality_metrics(self, image: np.ndarray) -> ImageQualityMetrics:
        """Calculate quality metrics with this enhancer's analyzer."""
        return self._analyzer.calculate_quality_metrics(image)

    def plan_steps(self, metrics: ImageQualityMetrics, orientation: int = UPRIGHT) -> list[str]:
        """
        Decide which enhancement steps an image needs.

        Args:
            metrics: Quality metrics of the source image.
            orientation: EXIF orientation tag (1 = upright).

        Returns:
            Step names in application order.
        """
        cfg = self._config
        steps = []
        if orientation not in (None, UPRIGHT):
            steps.append(STEP_ROTATE)
        if abs(metrics.skew_angle) > cfg.deskew_threshold:
            steps.append(STEP_DESKEW)
        if metrics.contrast < cfg.contrast_threshold:
            steps.append(STEP_CONTRAST)
        if metrics.noise_level > cfg.noise_threshold:
            steps.append(STEP_DENOISE)
        if metrics.sharpness < cfg.sharpness_threshold:
            steps.append(STEP_SHARPEN)
        return steps

    def enhance(self, image: np.ndarray, orientation: int = UPRIGHT) -> EnhancementResult:
        """
        Run the enhancement pipeline.

        Args:
            image: Grayscale or BGR(A) uint8 array. Never modified.
            orientation: EXIF orientation tag of the source file.

        Returns:
            EnhancementResult with the new image and before/after metrics.
        """
        initial = self._analyzer.calculate_quality_metrics(image)
        if not is_readable(image):
            return EnhancementResult(image=image, initial_metrics=initial, metrics=initial)

        steps = {
            STEP_ROTATE: lambda img: self.auto_rotate(img, orientation),
            STEP_DESKEW: lambda img: self.deskew_image(img, initial.skew_angle),
            STEP_CONTRAST: self.enhance_contrast,
            STEP_DENOISE: self.reduce_noise,
            STEP_SHARPEN: self.sharpen_image,
        }

        current = image
        applied = []
        for name in self.plan_steps(initial, orientation):
            output = self._run_step(name, steps[name], current)
            if output is not None:
                current = output
                applied.append(name)

        if current is image:
            current = image.copy()

        final = self._analyzer.calculate_quality_metrics(current)
        logger.debug(
            "Enhancement applied %s, score %.3f -> %.3f",
            applied or "nothing",
            initial.overall_score,
            final.overall_score,
        )
        return EnhancementResult(
            image=current, initial_metrics=initial, metrics=final, applied=applied
        )

    def enhance_image(
        self, image: np.ndarray, orientation: int = UPRIGHT
    ) -> tuple[np.ndarray, ImageQualityMetrics]:
        """Enhance an image and return it with its recomputed metrics."""
        result = self.enhance(image, orientation)
        return result.image, result.metrics

    def _run_step(
        self, name: str, step: Callable[[np.ndarray], np.ndarray | None], image: np.ndarray
    ) -> np.ndarray | None:
        try:
            return step(image)
        except cv2.error as e:
            logger.warning("Enhancement step '%s' failed, skipping: %s", name, e)
            return None

    def auto_rotate(self, image: np.ndarray, orientation: int) -> np.ndarray | None:
        """
        Turn an image upright according to its EXIF orientation tag.

        Args:
            image: Image as stored in the file.
            orientation: EXIF orientation tag (1-8).

        Returns:
            Upright image, or None if no rotation is needed or the tag is unknown.
        """
        if not is_readable(image) or orientation in (None, UPRIGHT):
            return None

        if orientation == 2:
            return cv2.flip(image, 1)
        if orientation == 3:
            return cv2.rotate(image, cv2.ROTATE_180)
        if orientation == 4:
            return cv2.flip(image, 0)
        if orientation == 5:
            return cv2.transpose(image)
        if orientation == 6:
            return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
        if orientation == 7:
            return cv2.rotate(cv2.transpose(image), cv2.ROTATE_180)
        if orientation == 8:
            return cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)

        logger.warning("Unknown EXIF orientation %s, leaving image as is", orientation)
        return None

    def deskew_image(self, image: np.ndarray, angle: float) -> np.ndarray | None:
        """
        Rotate an image to undo a skew.

        The canvas grows so no content is clipped; new border pixels
        replicate the edge.

        Args:
            image: Input image.
            angle: Skew in degrees; positive means text lines fall to the right.

        Returns:
            Deskewed image, or None if the pixels are unreadable.
        """
        if not is_readable(image):
            return None

        h, w = image.shape[:2]
        matrix = cv2.getRotationMatrix2D((w / 2, h / 2), angle, 1.0)

        cos_a = abs(matrix[0, 0])
        sin_a = abs(matrix[0, 1])
        new_w = int(h * sin_a + w * cos_a)
        new_h = int(h * cos_a + w * sin_a)
        matrix[0, 2] += (new_w - w) / 2
        matrix[1, 2] += (new_h - h) / 2

        return cv2.warpAffine(
            image,
            matrix,
            (new_w, new_h),
            flags=cv2.INTER_CUBIC,
            borderMode=cv2.BORDER_REPLICATE,
        )

    def enhance_contrast(self, image: np.ndarray) -> np.ndarray | None:
        """Stretch mid-tones with an S-shaped tone curve."""
        if not is_readable(image):
            return None
        return _apply_to_color(image, lambda plane: cv2.LUT(plane, TONE_CURVE_LUT))

    def reduce_noise(self, image: np.ndarray) -> np.ndarray | None:
        """Slight Gaussian blur followed by an unsharp mask to restore edges."""
        if not is_readable(image):
            return None
        sigma = self._config.denoise_sigma
        amount = self._config.denoise_amount

        def denoise(plane: np.ndarray) -> np.ndarray:
            blurred = cv2.GaussianBlur(plane, (0, 0), sigma)
            return _unsharp(blurred, sigma, amount)

        return _apply_to_color(image, denoise)

    def sharpen_image(self, image: np.ndarray) -> np.ndarray | None:
        """Sharpen the luminance channel, leaving colour untouched."""
        if not is_readable(image):
            return None
        sigma = self._config.sharpen_sigma
        amount = self._config.sharpen_amount

        def sharpen(plane: np.ndarray) -> np.ndarray:
            if plane.ndim == 2:
                return _unsharp(plane, sigma, amount)
            y, cr, cb = cv2.split(cv2.cvtColor(plane, cv2.COLOR_BGR2YCrCb))
            y = _unsharp(y, sigma, amount)
            return cv2.cvtColor(cv2.merge([y, cr, cb]), cv2.COLOR_YCrCb2BGR)

        return _apply_to_color(image, sharpen)
