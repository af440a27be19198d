"""Chord chart layout analysis and serialization."""

from chart_scanner.layout.analyzer import LayoutAnalyzer
from chart_scanner.layout.chordpro import merge_chord_line, to_chordpro

__all__ = ["LayoutAnalyzer", "merge_chord_line", "to_chordpro"]
