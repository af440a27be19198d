"""Tunable thresholds for enhancement, layout analysis and batch scheduling."""

from pydantic import BaseModel, Field


class EnhancementConfig(BaseModel):
    """Quality sampling and enhancement step thresholds."""

    sample_stride: int = Field(
        default=10, ge=1, description="Pixel stride used when sampling quality metrics"
    )
    deskew_threshold: float = Field(
        default=2.0, ge=0.0, description="Deskew when |skew angle| exceeds this (degrees)"
    )
    contrast_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Apply tone curve below this contrast"
    )
    noise_threshold: float = Field(
        default=20.0, ge=0.0, le=100.0, description="Denoise above this noise level"
    )
    sharpness_threshold: float = Field(
        default=50.0, ge=0.0, description="Sharpen below this sharpness"
    )
    denoise_sigma: float = Field(
        default=0.5, gt=0.0, description="Gaussian sigma for blur and unsharp mask"
    )
    denoise_amount: float = Field(
        default=0.5, ge=0.0, description="Unsharp mask amount after denoising"
    )
    sharpen_sigma: float = Field(
        default=1.0, gt=0.0, description="Gaussian sigma for luminance sharpening"
    )
    sharpen_amount: float = Field(
        default=0.7, ge=0.0, description="Luminance sharpening amount"
    )


class LayoutConfig(BaseModel):
    """Heuristic ratios used by the layout analyzer."""

    nashville_ratio: float = Field(
        default=0.4, ge=0.0, le=1.0, description="Share of pure-number blocks for Nashville"
    )
    chord_line_ratio: float = Field(
        default=0.6, ge=0.0, le=1.0, description="Share of chord-like tokens for a chord line"
    )
    alternation_threshold: float = Field(
        default=0.7, gt=0.0, description="Gap is large when above this multiple of the mean gap"
    )
    alternation_ratio: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Share of gap pairs that must alternate"
    )
    min_gaps_for_alternation: int = Field(
        default=4, ge=2, description="Minimum vertical gaps before checking alternation"
    )
    lyric_gap_tolerance: float = Field(
        default=0.05, gt=0.0, description="Max gap between a chord line and its lyric"
    )
    max_chord_length: int = Field(
        default=6, ge=1, description="Longest token still considered chord-like"
    )


class BatchConfig(BaseModel):
    """Batch scheduler limits."""

    max_concurrent: int = Field(
        default=3, ge=1, description="Processor calls in flight per job"
    )
    max_batch_size: int = Field(
        default=50, ge=1, description="Largest accepted number of images per job"
    )
