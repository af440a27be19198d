"""Tests for image quality scoring and enhancement."""

import cv2
import numpy as np
import pytest
from PIL import Image

from chart_scanner.config import EnhancementConfig
from chart_scanner.errors import InvalidImageError
from chart_scanner.models.chart import ImageQualityMetrics
from chart_scanner.preprocessing import ImageEnhancer, QualityAnalyzer, load_image
from chart_scanner.preprocessing.enhancer import TONE_CURVE_LUT
from chart_scanner.preprocessing.quality import FALLBACK_METRICS


def checkerboard(size: int = 100, block: int = 10) -> np.ndarray:
    """Grayscale checkerboard of black and white blocks."""
    ys, xs = np.indices((size, size))
    return (((ys // block + xs // block) % 2) * 255).astype(np.uint8)


def uniform(value: int = 128, shape: tuple = (100, 100)) -> np.ndarray:
    return np.full(shape, value, dtype=np.uint8)


def text_page() -> np.ndarray:
    """Light gray page with soft, anti-aliased dark text."""
    page = np.full((200, 300), 235, dtype=np.uint8)
    for i, line in enumerate(["C     G", "Amazing grace", "Am    F", "how sweet"]):
        cv2.putText(page, line, (10, 40 + i * 45), cv2.FONT_HERSHEY_SIMPLEX, 1.0, 40, 2, cv2.LINE_AA)
    return cv2.GaussianBlur(page, (0, 0), 1.2)


class TestQualityAnalyzer:
    """Test QualityAnalyzer metrics."""

    def test_uniform_gray_image(self):
        """Test a flat image has no contrast, sharpness or noise."""
        metrics = QualityAnalyzer().calculate_quality_metrics(uniform(128))

        assert metrics.brightness == pytest.approx(128 / 255)
        assert metrics.contrast == pytest.approx(0.0, abs=1e-9)
        assert metrics.sharpness == 0.0
        assert metrics.noise_level == 0.0
        assert metrics.skew_angle == 0.0
        assert metrics.overall_score == pytest.approx(0.2 * (1 - (128 / 255 - 0.5) * 2) + 0.2)

    def test_checkerboard_is_sharp_and_contrasty(self):
        """Test block corners on the sample grid give a strong Laplacian."""
        metrics = QualityAnalyzer().calculate_quality_metrics(checkerboard())

        assert metrics.brightness == 0.5
        assert metrics.contrast == 0.5
        assert metrics.sharpness == pytest.approx(510.0)
        assert metrics.noise_level == 0.0
        assert metrics.overall_score == pytest.approx(1.0)

    def test_color_image_uses_bgr_luma(self):
        """Test luma weights are applied to the B, G, R channels."""
        img = np.zeros((50, 50, 3), dtype=np.uint8)
        img[..., 2] = 255  # pure red

        metrics = QualityAnalyzer().calculate_quality_metrics(img)
        assert metrics.brightness == pytest.approx(0.299)

    def test_only_sampled_pixels_are_read(self):
        """Test a pixel off the sampling grid does not change any metric."""
        base = np.zeros((50, 50), dtype=np.uint8)
        spotted = base.copy()
        spotted[5, 5] = 255

        analyzer = QualityAnalyzer()
        assert analyzer.calculate_quality_metrics(spotted) == analyzer.calculate_quality_metrics(base)

    def test_random_images_stay_in_range(self):
        """Test metric bounds on noisy color images."""
        rng = np.random.default_rng(0)
        analyzer = QualityAnalyzer()
        for _ in range(5):
            img = rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8)
            metrics = analyzer.calculate_quality_metrics(img)
            assert 0.0 <= metrics.brightness <= 1.0
            assert 0.0 <= metrics.contrast <= 1.0
            assert 0.0 <= metrics.noise_level <= 100.0
            assert 0.0 <= metrics.overall_score <= 1.0

    def test_white_image_brightness_is_clamped(self):
        """Test full-white images stay within [0, 1]."""
        img = np.full((30, 30, 3), 255, dtype=np.uint8)
        metrics = QualityAnalyzer().calculate_quality_metrics(img)
        assert metrics.brightness == pytest.approx(1.0)
        assert metrics.brightness <= 1.0

    def test_tiny_image_uses_empty_grid_defaults(self):
        """Test images too small for the interior grids."""
        metrics = QualityAnalyzer().calculate_quality_metrics(uniform(200, (2, 2)))
        assert metrics.sharpness == 0.0
        assert metrics.noise_level == 25.0

    @pytest.mark.parametrize(
        "image",
        [None, np.array([]), np.zeros((10, 10), dtype=np.float32), np.zeros((10, 10, 2), dtype=np.uint8)],
    )
    def test_unreadable_image_falls_back(self, image):
        """Test unreadable input returns fallback metrics."""
        assert QualityAnalyzer().calculate_quality_metrics(image) == FALLBACK_METRICS

    def test_custom_stride(self):
        """Test stride is configurable and validated."""
        assert QualityAnalyzer(sample_stride=5).sample_stride == 5
        with pytest.raises(ValueError):
            QualityAnalyzer(sample_stride=0)


class TestImageEnhancer:
    """Test ImageEnhancer step selection and filters."""

    def _metrics(self, **overrides) -> ImageQualityMetrics:
        values = dict(brightness=0.5, contrast=0.6, sharpness=80.0, skew_angle=0.0, noise_level=5.0)
        values.update(overrides)
        return ImageQualityMetrics(**values)

    def test_plan_nothing_for_good_image(self):
        """Test no step is planned when every threshold is satisfied."""
        assert ImageEnhancer().plan_steps(self._metrics()) == []

    def test_plan_all_steps_in_order(self):
        """Test every step is planned in fixed order."""
        metrics = self._metrics(skew_angle=-5.0, contrast=0.1, noise_level=40.0, sharpness=10.0)
        steps = ImageEnhancer().plan_steps(metrics, orientation=6)
        assert steps == ["rotate", "deskew", "contrast", "denoise", "sharpen"]

    def test_plan_thresholds_are_strict(self):
        """Test values exactly at a threshold do not trigger the step."""
        metrics = self._metrics(skew_angle=2.0, contrast=0.5, noise_level=20.0, sharpness=50.0)
        assert ImageEnhancer().plan_steps(metrics) == []

    def test_plan_uses_config(self):
        """Test thresholds come from the injected config."""
        enhancer = ImageEnhancer(EnhancementConfig(contrast_threshold=0.7))
        assert enhancer.plan_steps(self._metrics(contrast=0.6)) == ["contrast"]

    def test_good_image_is_left_unchanged(self):
        """Test an image that needs nothing is returned as an equal copy."""
        img = checkerboard()
        result = ImageEnhancer().enhance(img)

        assert result.applied == []
        assert result.image is not img
        np.testing.assert_array_equal(result.image, img)

    def test_clean_image_is_stable(self):
        """Test an image that passes every threshold is untouched on every pass."""
        enhancer = ImageEnhancer()
        first, _ = enhancer.enhance_image(checkerboard())
        second = enhancer.enhance(first)

        assert second.applied == []
        np.testing.assert_array_equal(second.image, first)

    def test_soft_text_page_is_enhanced_again(self):
        """Test a second pass re-plans from the first pass's output metrics.

        Contrast is a standard deviation capped at 0.5, so a page that is
        mostly background stays below the contrast threshold and keeps
        getting the tone curve and sharpening.
        """
        enhancer = ImageEnhancer()
        first = enhancer.enhance(text_page())
        second = enhancer.enhance(first.image)

        assert first.applied == ["contrast", "sharpen"]
        assert second.applied == ["contrast", "sharpen"]
        assert second.initial_metrics == first.metrics
        assert first.metrics.contrast > first.initial_metrics.contrast
        assert second.metrics.contrast > first.metrics.contrast
        assert not np.array_equal(second.image, first.image)

    def test_flat_image_runs_contrast_and_sharpen(self):
        """Test step choice for a flat gray image."""
        result = ImageEnhancer().enhance(uniform(128))
        assert result.applied == ["contrast", "sharpen"]
        assert result.initial_metrics.contrast == pytest.approx(0.0, abs=1e-9)

    def test_source_image_is_not_mutated(self):
        """Test enhancement never writes into the input array."""
        rng = np.random.default_rng(1)
        img = rng.integers(0, 80, size=(60, 80, 3), dtype=np.uint8)
        original = img.copy()

        ImageEnhancer().enhance_image(img)
        np.testing.assert_array_equal(img, original)

    def test_final_metrics_are_recomputed(self):
        """Test returned metrics describe the returned image."""
        rng = np.random.default_rng(2)
        img = rng.integers(90, 160, size=(60, 80, 3), dtype=np.uint8)
        enhancer = ImageEnhancer()

        enhanced, metrics = enhancer.enhance_image(img)
        assert metrics == enhancer.calculate_quality_metrics(enhanced)

    def test_failed_step_is_skipped(self):
        """Test an OpenCV error inside a step degrades to a no-op."""
        enhancer = ImageEnhancer()

        def broken(image):
            raise cv2.error("boom")

        enhancer.enhance_contrast = broken
        result = enhancer.enhance(uniform(128))
        assert result.applied == ["sharpen"]

    def test_unreadable_image(self):
        """Test unreadable input is returned as is with fallback metrics."""
        result = ImageEnhancer().enhance(None)
        assert result.image is None
        assert result.applied == []
        assert result.metrics == FALLBACK_METRICS

    def test_rotation_from_orientation(self):
        """Test EXIF orientation triggers the rotate step."""
        result = ImageEnhancer().enhance(checkerboard(), orientation=3)
        assert result.applied == ["rotate"]

    def test_auto_rotate_clockwise(self):
        """Test orientation 6 rotates 90 degrees clockwise."""
        img = np.zeros((2, 3), dtype=np.uint8)
        img[0, 0] = 255

        rotated = ImageEnhancer().auto_rotate(img, 6)
        assert rotated.shape == (3, 2)
        assert rotated[0, 1] == 255

    def test_auto_rotate_upright_or_unknown(self):
        """Test upright and unknown orientations return None."""
        enhancer = ImageEnhancer()
        assert enhancer.auto_rotate(checkerboard(), 1) is None
        assert enhancer.auto_rotate(checkerboard(), 42) is None

    def test_deskew_grows_canvas(self):
        """Test deskewing keeps all content by enlarging the canvas."""
        img = np.full((100, 200, 3), 200, dtype=np.uint8)
        enhancer = ImageEnhancer()

        assert enhancer.deskew_image(img, 0.0).shape == img.shape
        deskewed = enhancer.deskew_image(img, 10.0)
        assert deskewed.shape[0] > 100
        assert deskewed.shape[1] > 200

    def test_tone_curve_is_s_shaped(self):
        """Test the lookup table darkens shadows and brightens highlights."""
        assert TONE_CURVE_LUT[0] == 0
        assert TONE_CURVE_LUT[255] == 255
        assert TONE_CURVE_LUT[64] < 64
        assert TONE_CURVE_LUT[192] > 192
        assert np.all(np.diff(TONE_CURVE_LUT.astype(int)) >= 0)

    def test_contrast_keeps_alpha(self):
        """Test the tone curve leaves the alpha channel alone."""
        img = np.zeros((10, 10, 4), dtype=np.uint8)
        img[..., :3] = 64
        img[..., 3] = 77

        out = ImageEnhancer().enhance_contrast(img)
        assert out.shape == img.shape
        assert np.all(out[..., :3] == TONE_CURVE_LUT[64])
        assert np.all(out[..., 3] == 77)

    def test_denoise_and_sharpen_keep_shape(self):
        """Test filters return arrays shaped like their input."""
        rng = np.random.default_rng(3)
        enhancer = ImageEnhancer()
        for shape in ((40, 50), (40, 50, 1), (40, 50, 3), (40, 50, 4)):
            img = rng.integers(0, 256, size=shape, dtype=np.uint8)
            assert enhancer.reduce_noise(img).shape == shape
            assert enhancer.sharpen_image(img).shape == shape


class TestLoadImage:
    """Test image loading."""

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "missing.png")

    def test_undecodable_file(self, tmp_path):
        """Test garbage bytes raise InvalidImageError."""
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")

        with pytest.raises(InvalidImageError):
            load_image(path)

    def test_png_without_exif(self, tmp_path):
        """Test a plain PNG loads as BGR with upright orientation."""
        path = tmp_path / "chart.png"
        cv2.imwrite(str(path), np.full((20, 30, 3), 100, dtype=np.uint8))

        image, orientation = load_image(path)
        assert image.shape == (20, 30, 3)
        assert orientation == 1

    def test_exif_orientation_is_reported_not_applied(self, tmp_path):
        """Test the EXIF orientation is returned and pixels stay as stored."""
        path = tmp_path / "photo.jpg"
        exif = Image.Exif()
        exif[0x0112] = 6
        Image.new("RGB", (40, 20), color="white").save(path, exif=exif)

        image, orientation = load_image(path)
        assert orientation == 6
        assert image.shape == (20, 40, 3)
