"""
Bank detection: score page text against every registered bank config.
"""
from typing import List, Optional, Sequence
import logging

from .anchors import find_markers, header_lines
from .registry import BankFormatRegistry, get_registry
from .settings import ParserSettings
from ..models.schema import BankConfig, DetectionCandidate, DetectionResult

logger = logging.getLogger(__name__)


class BankDetector:
    """Detects which bank config matches a statement's page text."""

    def __init__(self, registry: Optional[BankFormatRegistry] = None,
                 settings: Optional[ParserSettings] = None):
        self.registry = registry or get_registry()
        self.settings = settings or ParserSettings()

    def score(self, lines: Sequence[str], config: BankConfig,
              hint: Optional[str] = None) -> float:
        """
        Weighted count of the config's header markers found in ``lines``.

        Args:
            lines: Header lines of page 1
            config: Candidate bank config
            hint: Caller-supplied bank id

        Returns:
            Score (0 when nothing matched)
        """
        targets = [marker.text for marker in config.header_markers]
        found = find_markers(lines, targets, self.settings.marker_fuzzy_threshold)

        score = sum(marker.weight for marker in config.header_markers if marker.text in found)
        if hint and hint.lower() == config.bank_id:
            score += self.settings.hint_bonus

        return score

    def detect(self, page_text: Sequence[str], hint: Optional[str] = None) -> DetectionResult:
        """
        Pick the best matching bank for the statement.

        Confidence is the winner's relative lead over the runner-up,
        ``(top - second) / top``. A lead below ``ambiguity_margin`` marks the
        result ambiguous; a top score below ``min_detection_score`` means no
        bank was recognised.

        Args:
            page_text: Page-segmented statement text, index 0 is page 1
            hint: Optional bank id supplied by the caller

        Returns:
            DetectionResult
        """
        first_page = page_text[0] if page_text else ""
        lines = header_lines(first_page, self.settings.header_scan_lines)

        candidates: List[DetectionCandidate] = []
        for config in self.registry.list_banks(detectable_only=True):
            score = self.score(lines, config, hint)
            if score > 0:
                candidates.append(DetectionCandidate(bank_id=config.bank_id, score=score))

        # Stable sort keeps registry order for ties
        candidates.sort(key=lambda c: c.score, reverse=True)

        if not candidates or candidates[0].score < self.settings.min_detection_score:
            logger.info("No bank config cleared the minimum detection score")
            return DetectionResult(bank_id=None, confidence=0.0, candidates=candidates, hint=hint)

        top = candidates[0].score
        runner_up = candidates[1].score if len(candidates) > 1 else 0.0
        confidence = max(0.0, min(1.0, (top - runner_up) / top))
        ambiguous = confidence < self.settings.ambiguity_margin

        if ambiguous:
            logger.warning(
                f"Ambiguous bank detection: {candidates[0].bank_id} ({top}) vs "
                f"{candidates[1].bank_id} ({runner_up})"
            )
        else:
            logger.info(f"Detected bank: {candidates[0].bank_id} (confidence {confidence:.2f})")

        return DetectionResult(
            bank_id=candidates[0].bank_id,
            confidence=confidence,
            candidates=candidates,
            hint=hint,
            ambiguous=ambiguous
        )


def detect_bank(page_text: Sequence[str], hint: Optional[str] = None,
                settings: Optional[ParserSettings] = None) -> DetectionResult:
    """
    Convenience function to detect the bank for a statement.

    Args:
        page_text: Page-segmented statement text
        hint: Optional bank id

    Returns:
        DetectionResult
    """
    registry = get_registry(settings.templates_dir if settings else None)
    return BankDetector(registry, settings).detect(page_text, hint)
