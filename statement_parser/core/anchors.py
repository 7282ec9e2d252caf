"""
Marker finding in page text using fuzzy matching.
"""
import re
from typing import Dict, List, Optional, Sequence
from rapidfuzz import fuzz
import logging

logger = logging.getLogger(__name__)

# Markers this short are matched as whole words only; fuzzy matching
# "NAB" would fire inside words like "enable".
SHORT_MARKER_LENGTH = 4


class MarkerMatch:
    """Represents a found marker with its line and confidence."""
    def __init__(self, target: str, line: str, line_index: int, confidence: float):
        self.target = target
        self.line = line
        self.line_index = line_index
        self.confidence = confidence

    def __repr__(self):
        return (f"MarkerMatch('{self.target}', line={self.line_index}, "
                f"confidence={self.confidence:.1f})")


def header_lines(page_text: str, limit: int) -> List[str]:
    """Return the first ``limit`` non-blank lines of a page."""
    lines = []
    for line in page_text.splitlines():
        if line.strip():
            lines.append(line.strip())
            if len(lines) >= limit:
                break
    return lines


def find_marker(lines: Sequence[str], target: str,
                fuzzy_threshold: float = 90) -> Optional[MarkerMatch]:
    """
    Find the best matching line for a marker string.

    Args:
        lines: Lines to search through
        target: Marker text to find
        fuzzy_threshold: Minimum confidence score (0-100)

    Returns:
        MarkerMatch if found, None otherwise
    """
    needle = target.lower().strip()
    if not needle:
        return None

    best_match = None
    best_confidence = 0.0

    if len(needle) <= SHORT_MARKER_LENGTH:
        word = re.compile(rf"\b{re.escape(needle)}\b", re.IGNORECASE)
        for index, line in enumerate(lines):
            if word.search(line):
                return MarkerMatch(target, line, index, 100.0)
        return None

    for index, line in enumerate(lines):
        haystack = line.lower()

        # Try exact substring first
        if needle in haystack:
            return MarkerMatch(target, line, index, 100.0)

        confidence = fuzz.partial_ratio(needle, haystack)
        if confidence > best_confidence and confidence >= fuzzy_threshold:
            best_confidence = confidence
            best_match = MarkerMatch(target, line, index, confidence)

    return best_match


def find_markers(lines: Sequence[str], targets: Sequence[str],
                 fuzzy_threshold: float = 90) -> Dict[str, MarkerMatch]:
    """
    Find multiple markers in a block of lines.

    Args:
        lines: Lines to search
        targets: Marker strings to find
        fuzzy_threshold: Minimum confidence score

    Returns:
        Dictionary mapping marker strings to MarkerMatch objects
    """
    results = {}

    for target in targets:
        match = find_marker(lines, target, fuzzy_threshold)
        if match:
            results[target] = match
            logger.debug(f"Found marker '{target}' with confidence {match.confidence:.1f}")

    return results
