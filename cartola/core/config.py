"""
Runtime settings and YAML template loading.
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from ..models.schema import AmountConvention

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class Settings(BaseModel):
    """Parser settings, normally read from CARTOLA_* environment variables."""
    registry_url: Optional[str] = None
    lookup_timeout: float = 5.0
    max_concurrency: int = 8
    amount_convention: AmountConvention = AmountConvention.LATAM
    templates_dir: Path = TEMPLATES_DIR

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """
        Build settings from the environment, loading a .env file first.

        Args:
            env_file: Explicit .env path; the current directory is searched otherwise

        Returns:
            Settings object
        """
        load_dotenv(env_file)

        values: Dict[str, Any] = {}
        if os.getenv("CARTOLA_REGISTRY_URL"):
            values['registry_url'] = os.getenv("CARTOLA_REGISTRY_URL")
        if os.getenv("CARTOLA_LOOKUP_TIMEOUT"):
            values['lookup_timeout'] = float(os.getenv("CARTOLA_LOOKUP_TIMEOUT"))
        if os.getenv("CARTOLA_MAX_CONCURRENCY"):
            values['max_concurrency'] = int(os.getenv("CARTOLA_MAX_CONCURRENCY"))
        if os.getenv("CARTOLA_AMOUNT_CONVENTION"):
            values['amount_convention'] = os.getenv("CARTOLA_AMOUNT_CONVENTION").lower()
        if os.getenv("CARTOLA_TEMPLATES_DIR"):
            values['templates_dir'] = Path(os.getenv("CARTOLA_TEMPLATES_DIR"))

        return cls(**values)


def load_template(name: str, templates_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load a YAML data table shipped with the package.

    Each file is read once per process; the returned mapping is shared and
    must not be modified.

    Args:
        name: Template file name without extension (e.g. "banks")
        templates_dir: Alternative directory to read from

    Returns:
        Parsed YAML mapping

    Raises:
        ValueError: If the file is missing or is not a mapping
    """
    return _read_template(Path(templates_dir or TEMPLATES_DIR).resolve() / f"{name}.yaml")


@lru_cache(maxsize=None)
def _read_template(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ValueError(f"Template not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Template {path} must contain a mapping")

    logger.debug(f"Loaded template: {path}")
    return data
