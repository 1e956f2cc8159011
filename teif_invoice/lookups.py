"""
Reference-data adapter.

The reference-data service owns the enumerated TEIF code lists (document
types, tax types, payment means, ...). This module turns one fetch per
category into plain code -> description maps used by validation, document
assembly and the template builder. Maps are fetched fresh for every
invocation and never cached here.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from .config import REFERENCE_DATA_PATH, CollaboratorError, logger


class LookupCategory(str, Enum):
    """Reference-data categories consumed by the pipeline."""
    DOCUMENT_TYPE = "document_type"
    TAX_TYPE = "tax_type"
    PAYMENT_MEANS = "payment_means"
    PARTNER_IDENTIFIER_TYPE = "partner_identifier_type"
    DATE_FUNCTION = "date_function"
    PARTNER_FUNCTION = "partner_function"
    PAYMENT_TERMS_TYPE = "payment_terms_type"
    COMMUNICATION_MEANS = "communication_means"
    FREE_TEXT_SUBJECT = "free_text_subject"


class LookupEntry(BaseModel):
    """One row of a reference table."""
    code: str
    description: str


class LookupUnavailableError(CollaboratorError):
    """Reference data could not be fetched."""
    user_message = "Service de données de référence indisponible."


class LookupSource(Protocol):
    """Anything able to return the entries of one reference category."""

    async def fetch(self, category: LookupCategory) -> list[LookupEntry]:
        ...


@dataclass(frozen=True)
class LookupMaps:
    """Code -> description maps for every reference category."""
    tables: dict[LookupCategory, dict[str, str]]

    def codes(self, category: LookupCategory) -> list[str]:
        return list(self.tables.get(category, {}))

    def describe(self, category: LookupCategory, code: str) -> str:
        """Description for a code, or an empty string when unknown."""
        return self.tables.get(category, {}).get(code, "")

    def guidance(self, category: LookupCategory) -> str:
        """Human-readable list of valid codes, e.g. 'I-01 (Matricule fiscal), ...'."""
        return ", ".join(
            f"{code} ({description or 'N/A'})"
            for code, description in self.tables.get(category, {}).items()
        )


async def load_lookup_maps(source: LookupSource) -> LookupMaps:
    """
    Fetch all reference categories concurrently and build the lookup maps.

    Raises:
        LookupUnavailableError: if any category cannot be fetched
    """
    categories = list(LookupCategory)
    try:
        results = await asyncio.gather(*(source.fetch(category) for category in categories))
    except LookupUnavailableError:
        raise
    except (OSError, ValueError) as e:
        logger.error(f"Reference data fetch failed: {e}")
        raise LookupUnavailableError(f"Reference data unavailable: {e}") from e

    tables = {
        category: {entry.code: entry.description for entry in entries}
        for category, entries in zip(categories, results)
    }
    logger.debug(f"Loaded {sum(len(t) for t in tables.values())} reference codes")
    return LookupMaps(tables=tables)


class JsonLookupSource:
    """
    Reference data stored as a JSON object of category -> list of entries.

    Example:
        {"tax_type": [{"code": "I-1602", "description": "TVA"}], ...}
    """

    def __init__(self, path: Path = REFERENCE_DATA_PATH):
        self.path = Path(path)

    async def fetch(self, category: LookupCategory) -> list[LookupEntry]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LookupUnavailableError(f"Cannot read reference data from {self.path}: {e}") from e

        try:
            return [LookupEntry.model_validate(item) for item in data.get(category.value, [])]
        except ValidationError as e:
            raise LookupUnavailableError(f"Malformed reference data for {category.value}: {e}") from e
