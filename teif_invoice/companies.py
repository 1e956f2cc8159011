"""
Sender company records.

Company CRUD lives elsewhere; the pipeline only needs a read-only view of one
record, resolved by company id and the authenticated owner.
"""

import json
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .config import COMPANIES_PATH, CollaboratorError
from .schemas import SenderCompany


class CompanyNotFoundError(CollaboratorError):
    """The company does not exist or does not belong to the owner."""


class CompanyStoreUnavailableError(CollaboratorError):
    """Company records could not be read."""
    user_message = "Registre des entreprises indisponible."


class CompanyStore(Protocol):
    def get_company(self, company_id: str, owner_id: str) -> SenderCompany:
        ...


class InMemoryCompanyStore:
    """Company records held in memory, keyed by company id."""

    def __init__(self, companies: list[SenderCompany]):
        self._companies = {company.company_id: company for company in companies}

    def get_company(self, company_id: str, owner_id: str) -> SenderCompany:
        company = self._companies.get(company_id)
        if company is None or company.owner_id != owner_id:
            raise CompanyNotFoundError(
                f"Company {company_id} not found or not authorized"
            )
        return company


class JsonCompanyStore(InMemoryCompanyStore):
    """Company records loaded from a JSON list on each lookup."""

    def __init__(self, path: Path = COMPANIES_PATH):
        self.path = Path(path)

    def get_company(self, company_id: str, owner_id: str) -> SenderCompany:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
            companies = [SenderCompany.model_validate(record) for record in records]
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise CompanyStoreUnavailableError(f"Cannot read company records from {self.path}: {e}") from e

        self._companies = {company.company_id: company for company in companies}
        return super().get_company(company_id, owner_id)
