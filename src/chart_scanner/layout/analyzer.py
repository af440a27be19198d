"""Layout analysis: turn positioned OCR blocks into a structured chord chart."""

import logging
import re
from collections.abc import Sequence

from chart_scanner.config import LayoutConfig
from chart_scanner.models.chart import (
    BoundingBox,
    ChordPlacement,
    LayoutStructure,
    LayoutType,
    OCRSectionType,
    OCRSongSection,
    Point,
    RecognizedTextBlock,
    SpacingRule,
)

logger = logging.getLogger(__name__)

CHORD_ROOTS = frozenset("ABCDEFG")

# Longest keywords first so "pre-chorus" is never read as "chorus"
SECTION_KEYWORDS: tuple[tuple[str, OCRSectionType], ...] = (
    ("instrumental", OCRSectionType.INSTRUMENTAL),
    ("pre-chorus", OCRSectionType.PRE_CHORUS),
    ("prechorus", OCRSectionType.PRE_CHORUS),
    ("interlude", OCRSectionType.INTERLUDE),
    ("refrain", OCRSectionType.REFRAIN),
    ("chorus", OCRSectionType.CHORUS),
    ("bridge", OCRSectionType.BRIDGE),
    ("verse", OCRSectionType.VERSE),
    ("intro", OCRSectionType.INTRO),
    ("outro", OCRSectionType.OUTRO),
    ("solo", OCRSectionType.SOLO),
)

TAB_STRING_PATTERN = re.compile(r"[eadgb] ?\|")
TAB_FRET_PATTERN = re.compile(r"[-\d]")
INLINE_CHORD_PATTERN = re.compile(r"\[(.*?)\]", re.DOTALL)


def sort_by_top(blocks: Sequence[RecognizedTextBlock]) -> list[RecognizedTextBlock]:
    """Blocks in vertical reading order (stable for equal tops)."""
    return sorted(blocks, key=lambda block: block.bounding_box.min_y)


class LayoutAnalyzer:
    """Analyze the layout of one page of recognized chord chart text.

    Every method is a pure function of its arguments and the configuration,
    so identical input always yields identical output.
    """

    def __init__(self, config: LayoutConfig | None = None):
        """
        Initialize LayoutAnalyzer.

        Args:
            config: Heuristic thresholds; defaults are used if omitted.
        """
        self._config = config or LayoutConfig()

    @property
    def config(self) -> LayoutConfig:
        return self._config

    def analyze_layout(
        self, blocks: Sequence[RecognizedTextBlock], page_number: int = 0
    ) -> LayoutStructure:
        """
        Detect the full layout structure of a page.

        Args:
            blocks: Recognized text blocks of the page, in any order.
            page_number: Page index recorded on each section.

        Returns:
            LayoutStructure with layout type, sections, chords and spacing.
        """
        layout_type = self.detect_layout_type(blocks)
        structure = LayoutStructure(
            layout_type=layout_type,
            sections=self.extract_sections(blocks, page_number),
            chord_placements=self.map_chord_placements(blocks, layout_type),
            preserved_spacing=self.preserve_structure(blocks),
        )
        logger.debug(
            "Page %d: layout=%s sections=%d chords=%d",
            page_number,
            layout_type.value,
            len(structure.sections),
            len(structure.chord_placements),
        )
        return structure

    # Layout type detection

    def detect_layout_type(self, blocks: Sequence[RecognizedTextBlock]) -> LayoutType:
        """
        Classify how chords are written on the page.

        Rules are checked in priority order and the first match wins:
        inline brackets, Nashville numbers, tablature, alternating
        chord/lyric spacing, then any chord-like block.
        """
        if not blocks:
            return LayoutType.UNKNOWN

        if any("[" in block.text and "]" in block.text for block in blocks):
            return LayoutType.INLINE

        if self._has_nashville_numbers(blocks):
            return LayoutType.NASHVILLE

        if self._has_tablature(blocks):
            return LayoutType.TABLATURE

        gaps = self._vertical_gaps(sort_by_top(blocks))
        if self._has_alternating_gaps(gaps):
            return LayoutType.CHORD_OVER_LYRIC

        if any(self.is_chord_like(block.text) for block in blocks):
            return LayoutType.CHORD_OVER_LYRIC
        return LayoutType.UNKNOWN

    def is_chord_like(self, text: str) -> bool:
        """True for short, space-free text starting with a note letter A-G."""
        trimmed = text.strip()
        if not trimmed or trimmed[0] not in CHORD_ROOTS:
            return False
        return len(trimmed) <= self._config.max_chord_length and " " not in trimmed

    def is_chord_line(self, text: str) -> bool:
        """True if enough whitespace-separated tokens look like chords."""
        tokens = text.split()
        if not tokens:
            return False
        chord_count = sum(1 for token in tokens if self.is_chord_like(token))
        return chord_count > len(tokens) * self._config.chord_line_ratio

    def _has_nashville_numbers(self, blocks: Sequence[RecognizedTextBlock]) -> bool:
        number_count = 0
        for block in blocks:
            trimmed = block.text.strip()
            if trimmed and trimmed.isdecimal():
                number_count += 1
        return number_count > len(blocks) * self._config.nashville_ratio

    def _has_tablature(self, blocks: Sequence[RecognizedTextBlock]) -> bool:
        for block in blocks:
            text = block.text.lower()
            if TAB_STRING_PATTERN.search(text) and TAB_FRET_PATTERN.search(text):
                return True
        return False

    def _vertical_gaps(self, sorted_blocks: Sequence[RecognizedTextBlock]) -> list[float]:
        return [
            below.bounding_box.min_y - above.bounding_box.max_y
            for above, below in zip(sorted_blocks, sorted_blocks[1:])
        ]

    def _has_alternating_gaps(self, gaps: Sequence[float]) -> bool:
        """Detect the small/large gap rhythm of chord lines over lyric lines."""
        if len(gaps) < self._config.min_gaps_for_alternation:
            return False

        threshold = sum(gaps) / len(gaps) * self._config.alternation_threshold
        pairs = list(zip(gaps, gaps[1:]))
        alternating = sum(
            1
            for current, following in pairs
            if current < threshold < following or current > threshold > following
        )
        return alternating > len(pairs) * self._config.alternation_ratio

    # Section extraction

    def detect_section_type(self, text: str) -> OCRSectionType | None:
        """Return the section type named in a header line, or None."""
        lowered = text.lower()
        for keyword, section_type in SECTION_KEYWORDS:
            if keyword in lowered:
                return section_type
        return None

    def extract_sections(
        self, blocks: Sequence[RecognizedTextBlock], page_number: int = 0
    ) -> list[OCRSongSection]:
        """
        Split the page into sections at header lines.

        Lines before the first header are dropped when the page has a
        header; a page without headers becomes one unknown section.
        """
        sections: list[OCRSongSection] = []
        current_type: OCRSectionType | None = None
        lines: list[str] = []
        box: BoundingBox | None = None

        for block in sort_by_top(blocks):
            text = block.text.strip()
            section_type = self.detect_section_type(text)

            if section_type is not None:
                if current_type is not None:
                    sections.append(
                        self._close_section(current_type, lines, box, page_number)
                    )
                current_type = section_type
                lines = []
                box = block.bounding_box
            else:
                lines.append(text)
                box = block.bounding_box if box is None else box.union(block.bounding_box)

        if current_type is not None:
            sections.append(self._close_section(current_type, lines, box, page_number))
        elif lines:
            sections.append(
                self._close_section(OCRSectionType.UNKNOWN, lines, box, page_number)
            )

        return sections

    def _close_section(
        self,
        section_type: OCRSectionType,
        lines: list[str],
        box: BoundingBox | None,
        page_number: int,
    ) -> OCRSongSection:
        return OCRSongSection(
            type=section_type,
            content="\n".join(lines),
            bounding_box=box or BoundingBox.zero(),
            page_number=page_number,
        )

    # Chord placement

    def map_chord_placements(
        self, blocks: Sequence[RecognizedTextBlock], layout_type: LayoutType
    ) -> list[ChordPlacement]:
        """
        Locate chords and the lyric each one belongs to.

        Chord-over-lyric pages pair chord lines with the lyric line below;
        every other layout reads chords from [bracketed] inline symbols.
        """
        if layout_type is not LayoutType.CHORD_OVER_LYRIC:
            return self._extract_inline_chords(blocks)

        sorted_blocks = sort_by_top(blocks)
        placements = []

        for index, block in enumerate(sorted_blocks):
            if not self.is_chord_line(block.text):
                continue

            lyric = self._find_lyric_below(block, sorted_blocks, index)
            tokens = block.text.split()
            box = block.bounding_box

            for position, token in enumerate(tokens):
                if not self.is_chord_like(token):
                    continue
                placements.append(
                    ChordPlacement(
                        chord=token,
                        position=Point(
                            x=box.min_x + position / len(tokens) * box.width,
                            y=box.min_y,
                        ),
                        aligned_with_lyric=lyric.text if lyric else None,
                        confidence=block.confidence,
                    )
                )

        return placements

    def _find_lyric_below(
        self,
        chord_block: RecognizedTextBlock,
        sorted_blocks: Sequence[RecognizedTextBlock],
        start_index: int,
    ) -> RecognizedTextBlock | None:
        for block in sorted_blocks[start_index + 1:]:
            gap = block.bounding_box.min_y - chord_block.bounding_box.max_y
            if gap >= self._config.lyric_gap_tolerance:
                break
            if not self.is_chord_line(block.text):
                return block
        return None

    def _extract_inline_chords(
        self, blocks: Sequence[RecognizedTextBlock]
    ) -> list[ChordPlacement]:
        placements = []
        for block in blocks:
            for match in INLINE_CHORD_PATTERN.finditer(block.text):
                chord = match.group(1)
                if not self.is_chord_like(chord):
                    continue
                placements.append(
                    ChordPlacement(
                        chord=chord.strip(),
                        position=Point(
                            x=block.bounding_box.min_x, y=block.bounding_box.min_y
                        ),
                        aligned_with_lyric=block.text,
                        confidence=block.confidence,
                    )
                )
        return placements

    # Spacing

    def preserve_structure(self, blocks: Sequence[RecognizedTextBlock]) -> list[SpacingRule]:
        """Record indentation and the gap above each line, in vertical order."""
        rules = []
        previous: RecognizedTextBlock | None = None
        for line_number, block in enumerate(sort_by_top(blocks)):
            top_spacing = 0.0
            if previous is not None:
                top_spacing = block.bounding_box.min_y - previous.bounding_box.max_y
            rules.append(
                SpacingRule(
                    line_number=line_number,
                    indentation=block.bounding_box.min_x,
                    top_spacing=top_spacing,
                )
            )
            previous = block
        return rules
