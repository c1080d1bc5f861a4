"""Catalog loading and bulk action construction."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import ValidationError

from .errors import ConfigurationError
from .models import Product
from .schema import read_json_resource

logger = logging.getLogger(__name__)


def load_products(path: str | Path) -> list[dict]:
    """Read and validate the product data file.

    Every invalid entry is reported at once so a broken catalog fails the
    rebuild before any backend call is made.
    """
    raw = read_json_resource(path)
    if not isinstance(raw, list):
        raise ConfigurationError(f"Expected a JSON array of products in {path}")

    documents: list[dict] = []
    problems: list[str] = []
    for position, item in enumerate(raw):
        try:
            documents.append(Product.model_validate(item).to_document())
        except ValidationError as exc:
            problems.append(f"#{position}: {exc.errors()[0]['msg']}")
    if problems:
        raise ConfigurationError(f"Invalid products in {path}: {'; '.join(problems)}")
    logger.info("Loaded %s products from %s", len(documents), path)
    return documents


def document_identifier(document: dict, position: int) -> str:
    """Identifier used when reporting a failed bulk item."""
    return str(document.get("id") or f"#{position}")


def iter_actions(index: str, documents: Iterable[dict]) -> Iterator[dict]:
    for document in documents:
        action = {"_index": index, "_source": document}
        # Catalog ids are carried forward so the ``id`` sort tie-break is stable.
        if document.get("id"):
            action["_id"] = str(document["id"])
        yield action
