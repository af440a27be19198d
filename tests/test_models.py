"""Tests for data models and errors."""

import json

import pytest
from pydantic import ValidationError

from chart_scanner.errors import (
    BatchTooLargeError,
    InvalidImageError,
    NoTextFoundError,
    RecognitionError,
    is_recoverable,
)
from chart_scanner.models.chart import (
    BoundingBox,
    ImageQualityMetrics,
    LayoutType,
    OCRSectionType,
    OCRSongSection,
    RecognizedTextBlock,
)


class TestBoundingBox:
    """Test BoundingBox geometry."""

    def test_size(self):
        box = BoundingBox(min_x=0.1, min_y=0.2, max_x=0.5, max_y=0.3)
        assert box.width == pytest.approx(0.4)
        assert box.height == pytest.approx(0.1)

    def test_union(self):
        """Test union covers both boxes."""
        a = BoundingBox(min_x=0.1, min_y=0.1, max_x=0.3, max_y=0.2)
        b = BoundingBox(min_x=0.2, min_y=0.15, max_x=0.6, max_y=0.4)
        assert a.union(b) == BoundingBox(min_x=0.1, min_y=0.1, max_x=0.6, max_y=0.4)

    def test_zero(self):
        assert BoundingBox.zero().width == 0.0

    def test_frozen(self):
        """Test boxes are immutable."""
        box = BoundingBox.zero()
        with pytest.raises(ValidationError):
            box.min_x = 1.0


class TestImageQualityMetrics:
    """Test the derived quality score."""

    def test_perfect_score(self):
        metrics = ImageQualityMetrics(
            brightness=0.5, contrast=0.5, sharpness=100.0, skew_angle=0.0, noise_level=0.0
        )
        assert metrics.overall_score == pytest.approx(1.0)
        assert metrics.quality_level == "excellent"

    def test_weighted_score(self):
        """Test each component contributes by its weight."""
        metrics = ImageQualityMetrics(
            brightness=0.25, contrast=0.25, sharpness=50.0, skew_angle=22.5, noise_level=25.0
        )
        assert metrics.overall_score == pytest.approx(0.5)
        assert metrics.quality_level == "fair"

    def test_components_are_clamped(self):
        """Test extreme skew and noise do not push the score below zero."""
        metrics = ImageQualityMetrics(
            brightness=0.0, contrast=0.0, sharpness=0.0, skew_angle=90.0, noise_level=100.0
        )
        assert metrics.overall_score == 0.0
        assert metrics.quality_level == "poor"

    def test_score_is_serialized(self):
        """Test the derived score appears in the JSON dump."""
        metrics = ImageQualityMetrics(
            brightness=0.5, contrast=0.5, sharpness=100.0, skew_angle=0.0, noise_level=0.0
        )
        data = json.loads(metrics.model_dump_json())
        assert data["overall_score"] == pytest.approx(1.0)

    def test_bounds_are_validated(self):
        """Test out-of-range measurements are rejected."""
        with pytest.raises(ValidationError):
            ImageQualityMetrics(
                brightness=1.5, contrast=0.5, sharpness=0.0, skew_angle=0.0, noise_level=0.0
            )
        with pytest.raises(ValidationError):
            ImageQualityMetrics(
                brightness=0.5, contrast=0.5, sharpness=0.0, skew_angle=0.0, noise_level=120.0
            )


class TestChartModels:
    """Test chart structure models."""

    def test_text_block_defaults(self):
        block = RecognizedTextBlock(text="Am", bounding_box=BoundingBox.zero())
        assert block.confidence == 1.0

    def test_text_block_confidence_bounds(self):
        with pytest.raises(ValidationError):
            RecognizedTextBlock(text="Am", bounding_box=BoundingBox.zero(), confidence=1.5)

    def test_section_defaults(self):
        section = OCRSongSection(type=OCRSectionType.VERSE)
        assert section.content == ""
        assert section.bounding_box == BoundingBox.zero()
        assert section.page_number == 0

    def test_display_names(self):
        assert LayoutType.CHORD_OVER_LYRIC.description == "Chord Over Lyric"
        assert OCRSectionType.PRE_CHORUS.display_name == "Pre-Chorus"
        assert OCRSectionType.VERSE.display_name == "Verse"


class TestErrors:
    """Test the error taxonomy."""

    def test_recoverable_errors(self):
        assert is_recoverable(NoTextFoundError())
        assert is_recoverable(InvalidImageError())

    def test_unrecoverable_errors(self):
        assert not is_recoverable(RecognitionError("boom"))
        assert not is_recoverable(RuntimeError("boom"))

    def test_default_messages(self):
        assert str(NoTextFoundError()) == "No text found in image"
        assert str(InvalidImageError()) == "Invalid image"

    def test_batch_too_large(self):
        """Test the size error carries its numbers and is a ValueError."""
        error = BatchTooLargeError(51, 50)
        assert isinstance(error, ValueError)
        assert error.count == 51
        assert error.maximum == 50
        assert str(error) == "Batch size 51 exceeds maximum of 50 images"
