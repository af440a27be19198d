"""Serialize a layout structure to ChordPro text."""

import re
from collections.abc import Callable

from chart_scanner.layout.analyzer import LayoutAnalyzer
from chart_scanner.models.chart import LayoutStructure, LayoutType, OCRSectionType

TOKEN_PATTERN = re.compile(r"\S+")


def merge_chord_line(chord_line: str, lyric: str) -> str:
    """
    Insert the chords of a chord line into the lyric below as [inline] chords.

    Each chord lands at the character column it occupies in the chord line;
    short lyrics are padded with spaces.

    Args:
        chord_line: Line of chord symbols, e.g. "C     G".
        lyric: Lyric line printed under the chords.

    Returns:
        Lyric with bracketed chords, e.g. "[C]Hello [G]world".
    """
    merged = lyric
    chords = [(match.start(), match.group()) for match in TOKEN_PATTERN.finditer(chord_line)]
    for column, chord in reversed(chords):
        if column > len(merged):
            merged = merged.ljust(column)
        merged = f"{merged[:column]}[{chord}]{merged[column:]}"
    return merged


def merge_chord_lines(lines: list[str], is_chord_line: Callable[[str], bool]) -> list[str]:
    """Merge every chord line that sits directly above a lyric line."""
    merged = []
    index = 0
    while index < len(lines):
        line = lines[index]
        following = lines[index + 1] if index + 1 < len(lines) else None
        if following is not None and is_chord_line(line) and not is_chord_line(following):
            merged.append(merge_chord_line(line, following))
            index += 2
        else:
            merged.append(line)
            index += 1
    return merged


def to_chordpro(
    layout: LayoutStructure,
    title: str = "Untitled",
    analyzer: LayoutAnalyzer | None = None,
) -> str:
    """
    Convert a layout structure to ChordPro text.

    A title directive comes first. Each section with a known type opens
    with a directive naming it, followed by its lines and a blank line.

    Args:
        layout: Analyzed page layout.
        title: Value of the title directive.
        analyzer: Supplies the chord-line test for chord-over-lyric merging.

    Returns:
        ChordPro document as a string.
    """
    analyzer = analyzer or LayoutAnalyzer()
    output = [f"{{title: {title}}}", ""]

    for section in layout.sections:
        if section.type is not OCRSectionType.UNKNOWN:
            output.append(f"{{{section.type.value}}}")

        lines = [line for line in section.content.split("\n") if line]
        if layout.layout_type is LayoutType.CHORD_OVER_LYRIC:
            lines = merge_chord_lines(lines, analyzer.is_chord_line)
        output.extend(lines)
        output.append("")

    return "\n".join(output)
