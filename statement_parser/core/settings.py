"""
Tunable policy constants for detection, extraction and de-duplication.
"""
from pathlib import Path
from typing import Optional, Union
import logging

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ParserSettings(BaseModel):
    """Engine-wide settings; every field can be overridden from YAML."""
    # Detection
    header_scan_lines: int = Field(40, ge=1)
    marker_fuzzy_threshold: float = Field(90, ge=0, le=100)
    min_detection_score: float = Field(2.0, ge=0)
    ambiguity_margin: float = Field(0.25, ge=0, le=1)
    hint_bonus: float = Field(1.5, ge=0)

    # Extraction / validation
    unparsed_ratio_threshold: float = Field(0.10, ge=0, le=1)
    date_fallback_fatal_ratio: float = Field(0.5, ge=0, le=1)

    # De-duplication
    duplicate_max_distance: int = Field(2, ge=0)

    # Progress
    progress_channel_size: int = Field(64, ge=1)

    templates_dir: Optional[Path] = None


def load_settings(path: Optional[Union[str, Path]] = None) -> ParserSettings:
    """
    Load settings from a YAML file.

    Args:
        path: YAML file with any subset of ``ParserSettings`` fields

    Returns:
        ParserSettings (defaults when no path is given)
    """
    if path is None:
        return ParserSettings()

    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    logger.debug(f"Loaded settings overrides from {path}: {sorted(data)}")
    return ParserSettings(**data)
