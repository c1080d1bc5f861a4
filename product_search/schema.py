"""Loading of index settings and mappings documents."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from .config import Settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSchema:
    settings: dict
    mappings: dict


def read_json_resource(path: str | Path) -> object:
    """Read a JSON resource, turning every I/O or parse failure into ``ConfigurationError``."""
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigurationError(f"File not found: {file_path}")
    try:
        with file_path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except OSError as exc:
        raise ConfigurationError(f"Can not read resource file: {file_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Resource file is not valid JSON: {file_path}: {exc}") from exc


def _read_object(path: str | Path) -> dict:
    body = read_json_resource(path)
    if not isinstance(body, dict):
        raise ConfigurationError(f"Expected a JSON object in {path}")
    return body


def load_schema(settings: Settings) -> IndexSchema:
    index_settings = _read_object(settings.settings_path)
    mappings = _read_object(settings.mappings_path)
    logger.debug("Loaded index schema from %s and %s", settings.settings_path, settings.mappings_path)
    return IndexSchema(settings=index_settings, mappings=mappings)
