"""Pydantic models for recognized text, layout structure and image quality."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class BoundingBox(BaseModel):
    """Axis-aligned rectangle in page-normalized coordinates (y grows downward)."""

    model_config = ConfigDict(frozen=True)

    min_x: float = Field(description="Left edge")
    min_y: float = Field(description="Top edge")
    max_x: float = Field(description="Right edge")
    max_y: float = Field(description="Bottom edge")

    @classmethod
    def zero(cls) -> "BoundingBox":
        return cls(min_x=0.0, min_y=0.0, max_x=0.0, max_y=0.0)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest rectangle containing both boxes."""
        return BoundingBox(
            min_x=min(self.min_x, other.min_x),
            min_y=min(self.min_y, other.min_y),
            max_x=max(self.max_x, other.max_x),
            max_y=max(self.max_y, other.max_y),
        )


class Point(BaseModel):
    """Position on the page."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class RecognizedTextBlock(BaseModel):
    """A positioned text block produced by an OCR backend."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Recognized text")
    bounding_box: BoundingBox = Field(description="Block location on the page")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0, description="OCR confidence")


class LayoutType(str, Enum):
    """How chords are written on the page."""

    UNKNOWN = "unknown"
    INLINE = "inline"
    NASHVILLE = "nashville"
    TABLATURE = "tablature"
    CHORD_OVER_LYRIC = "chord_over_lyric"

    @property
    def description(self) -> str:
        return _LAYOUT_DESCRIPTIONS[self]


_LAYOUT_DESCRIPTIONS = {
    LayoutType.UNKNOWN: "Unknown Layout",
    LayoutType.INLINE: "Inline Chords",
    LayoutType.NASHVILLE: "Nashville Number",
    LayoutType.TABLATURE: "Tablature",
    LayoutType.CHORD_OVER_LYRIC: "Chord Over Lyric",
}


class OCRSectionType(str, Enum):
    """Song section detected from a header line."""

    VERSE = "verse"
    CHORUS = "chorus"
    BRIDGE = "bridge"
    INTRO = "intro"
    OUTRO = "outro"
    PRE_CHORUS = "pre-chorus"
    INTERLUDE = "interlude"
    SOLO = "solo"
    INSTRUMENTAL = "instrumental"
    REFRAIN = "refrain"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        if self is OCRSectionType.PRE_CHORUS:
            return "Pre-Chorus"
        return self.value.capitalize()


class OCRSongSection(BaseModel):
    """A run of lines belonging to one song section."""

    type: OCRSectionType = Field(description="Section kind")
    content: str = Field(default="", description="Section lines joined by newlines")
    bounding_box: BoundingBox = Field(
        default_factory=BoundingBox.zero, description="Union of the section's blocks"
    )
    page_number: int = Field(default=0, ge=0, description="Page the section was found on")


class ChordPlacement(BaseModel):
    """A chord symbol and where it sits relative to the lyrics."""

    chord: str = Field(description="Chord symbol, e.g. 'Am7'")
    position: Point = Field(description="Normalized page position of the chord")
    aligned_with_lyric: str | None = Field(
        default=None, description="Lyric text the chord belongs to"
    )
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="OCR confidence")


class SpacingRule(BaseModel):
    """Indentation and vertical spacing of one line."""

    line_number: int = Field(ge=0, description="0-based index in vertical order")
    indentation: float = Field(description="Left x of the line")
    top_spacing: float = Field(description="Gap from the previous line's bottom")


class LayoutStructure(BaseModel):
    """Structured chart reconstructed from one page of text blocks."""

    layout_type: LayoutType = LayoutType.UNKNOWN
    sections: list[OCRSongSection] = Field(default_factory=list)
    chord_placements: list[ChordPlacement] = Field(default_factory=list)
    preserved_spacing: list[SpacingRule] = Field(default_factory=list)


class ImageQualityMetrics(BaseModel):
    """Image quality measurements; the overall score is always derived."""

    model_config = ConfigDict(frozen=True)

    brightness: float = Field(ge=0.0, le=1.0, description="Mean luma, 0 = black")
    contrast: float = Field(ge=0.0, le=1.0, description="Std deviation of luma")
    sharpness: float = Field(ge=0.0, description="Mean absolute Laplacian response")
    skew_angle: float = Field(default=0.0, description="Skew in degrees")
    noise_level: float = Field(ge=0.0, le=100.0, description="Neighbour difference, 0-100")

    @computed_field
    @property
    def overall_score(self) -> float:
        brightness_score = 1.0 - abs(0.5 - self.brightness) * 2.0
        contrast_score = min(self.contrast / 0.5, 1.0)
        sharpness_score = min(self.sharpness / 100.0, 1.0)
        skew_score = max(0.0, 1.0 - abs(self.skew_angle) / 45.0)
        noise_score = max(0.0, 1.0 - self.noise_level / 50.0)
        score = (
            brightness_score * 0.2
            + contrast_score * 0.3
            + sharpness_score * 0.3
            + skew_score * 0.1
            + noise_score * 0.1
        )
        return min(max(score, 0.0), 1.0)

    @property
    def quality_level(self) -> Literal["excellent", "good", "fair", "poor"]:
        score = self.overall_score
        if score >= 0.8:
            return "excellent"
        if score >= 0.6:
            return "good"
        if score >= 0.4:
            return "fair"
        return "poor"


class ScanMetadata(BaseModel):
    """Processing metadata."""

    ocr_backend: str = Field(description="OCR backend used")
    enhancements_applied: list[str] = Field(
        default_factory=list, description="Enhancement steps that ran"
    )
    processing_time_ms: float = Field(description="Total processing time in ms")
    page_number: int = Field(default=0, ge=0)


class ScanResult(BaseModel):
    """Everything recovered from one chart image."""

    layout: LayoutStructure = Field(description="Detected chart structure")
    quality: ImageQualityMetrics = Field(description="Quality after enhancement")
    initial_quality: ImageQualityMetrics = Field(description="Quality before enhancement")
    raw_text: str = Field(description="Raw OCR text for reference")
    confidence: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Mean OCR block confidence"
    )
    chart: str = Field(default="", description="Chart serialized as ChordPro text")
    metadata: ScanMetadata | None = Field(default=None, description="Processing metadata")
