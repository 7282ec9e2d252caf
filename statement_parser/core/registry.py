"""
Bank format registry: one immutable BankConfig per supported issuer.
"""
import yaml
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import logging

from pydantic import ValidationError

from ..models.schema import BankConfig

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class BankFormatRegistry:
    """Holds the bank configs loaded from the templates directory."""

    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir) if templates_dir else DEFAULT_TEMPLATES_DIR
        self._configs: Dict[str, BankConfig] = {}
        self._load_templates()

    def _load_templates(self):
        """Load all available bank templates, in file name order."""
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")
            return

        for yaml_file in sorted(self.templates_dir.glob("*.yaml")):
            with open(yaml_file, 'r', encoding='utf-8') as f:
                template_data = yaml.safe_load(f)

            try:
                config = BankConfig(**template_data)
            except (TypeError, ValidationError) as e:
                logger.error(f"Invalid bank template {yaml_file.name}: {e}")
                raise

            if config.bank_id in self._configs:
                raise ValueError(f"Duplicate bank_id '{config.bank_id}' in {yaml_file.name}")

            self._configs[config.bank_id] = config
            logger.debug(f"Loaded bank template: {config.bank_id}")

    def get(self, bank_id: Optional[str]) -> Optional[BankConfig]:
        """Get a bank config by id (case-insensitive)."""
        if not bank_id:
            return None
        return self._configs.get(bank_id.lower())

    def list_banks(self, detectable_only: bool = False) -> List[BankConfig]:
        """List configs in registration order."""
        return [
            config for config in self._configs.values()
            if config.detectable or not detectable_only
        ]

    def bank_ids(self) -> List[str]:
        return list(self._configs.keys())

    def __contains__(self, bank_id: str) -> bool:
        return self.get(bank_id) is not None

    def __iter__(self) -> Iterator[BankConfig]:
        return iter(self._configs.values())

    def __len__(self) -> int:
        return len(self._configs)


_default_registry: Optional[BankFormatRegistry] = None


def get_registry(templates_dir: Optional[Path] = None) -> BankFormatRegistry:
    """
    Return the process-wide registry, loading it on first use.

    Args:
        templates_dir: Alternative template directory; bypasses the shared instance

    Returns:
        BankFormatRegistry
    """
    global _default_registry

    if templates_dir is not None:
        return BankFormatRegistry(templates_dir)

    if _default_registry is None:
        _default_registry = BankFormatRegistry()
    return _default_registry
