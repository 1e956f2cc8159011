"""
Shared fixtures: reference data, a sender company and pasted-text builders.
"""

import asyncio
from typing import Optional

import pytest

from teif_invoice.lookups import JsonLookupSource, LookupMaps, load_lookup_maps
from teif_invoice.schemas import SenderCompany
from teif_invoice.tables import HEADER_FIELDS, HEADER_FIELDS_SCHEMA, LINE_ITEMS_SCHEMA, HeaderPath

VALID_HEADER_VALUES: dict[HeaderPath, str] = {
    HeaderPath.TEIF_VERSION: "1.8.8",
    HeaderPath.RECEIVER_IDENTIFIER: "1234567A001",
    HeaderPath.RECEIVER_IDENTIFIER_TYPE: "I-01",
    HeaderPath.DOCUMENT_IDENTIFIER: "INV-2024-001",
    HeaderPath.DOCUMENT_TYPE_CODE: "I-11",
    HeaderPath.DATE_FUNCTION_CODE: "I-31",
    HeaderPath.DATE_FORMAT: "ddMMyy",
    HeaderPath.DATE_TEXT: "250624",
    HeaderPath.RECEIVER_NAME: "Client Alpha S.A.",
    HeaderPath.RECEIVER_ADDRESS: "456 Rue Principale, Sfax",
    HeaderPath.RECEIVER_STREET: "Rue Principale",
    HeaderPath.RECEIVER_CITY: "Sfax",
    HeaderPath.RECEIVER_POSTAL_CODE: "3000",
    HeaderPath.RECEIVER_COUNTRY: "TN",
    HeaderPath.RECEIVER_EMAIL: "client@alpha.com",
    HeaderPath.PAYMENT_TERMS_CODE: "I-111",
    HeaderPath.PAYMENT_MEANS_CODE: "I-135",
    HeaderPath.BANK_ACCOUNT_NUMBER: "TN591000010000000012345678",
    HeaderPath.FREE_TEXT_SUBJECT: "I-41",
    HeaderPath.TOTAL_HT: "[CALCULÉ]",
    HeaderPath.INVOICE_TAX_TYPE_CODE: "I-1602",
    HeaderPath.INVOICE_TAX_RATE: "19.00",
}

FIRST_LINE = ["ARTICLE001", "PROD-A", "Services de consultation Logiciel", "10.00", "H87", "30.000", "I-1602", "19.00"]
SECOND_LINE = ["ARTICLE002", "SERV-B", "Maintenance annuelle", "1.00", "C62", "300.000", "I-1602", "19.00"]


def header_table(values: dict[HeaderPath, str]) -> str:
    """Header-Fields table text as copied from the spreadsheet."""
    lines = ["\t".join(HEADER_FIELDS_SCHEMA.display_names)]
    for path, value in values.items():
        lines.append(f"{path.value}\t{HEADER_FIELDS[path].description}\t{value}\t\t")
    return "\n".join(lines)


def line_items_table(rows: list[list[str]]) -> str:
    lines = ["\t".join(LINE_ITEMS_SCHEMA.display_names)]
    for row in rows:
        lines.append("\t".join(row + ["[CALCULÉ]"] * 3))
    return "\n".join(lines)


def build_pasted_text(
    header_values: Optional[dict[HeaderPath, str]] = None,
    line_rows: Optional[list[list[str]]] = None,
    include_header: bool = True,
    include_lines: bool = True,
    lines_first: bool = False,
) -> str:
    """Both tables surrounded by the template's instruction and legend text."""
    if header_values is None:
        header_values = VALID_HEADER_VALUES
    if line_rows is None:
        line_rows = [FIRST_LINE]

    blocks = []
    if include_header:
        blocks.append(
            "Instructions pour l'En-tête Facture\n\n"
            "Copiez toutes les lignes de ce tableau pour l'importation.\n\n"
            + header_table(header_values)
            + "\n\n\nLégende des Couleurs:\n\tÀ Remplir (Données Requises / Obligatoires)"
        )
    if include_lines:
        blocks.append(
            "Instructions pour les Lignes de Facture\n\n"
            + line_items_table(line_rows)
            + "\n\nLégende des Couleurs:\n\tCalculé (Ne pas modifier)"
        )
    if lines_first:
        blocks.reverse()
    return "\n\n".join(blocks)


@pytest.fixture
def maps() -> LookupMaps:
    """Reference data bundled with the package."""
    return asyncio.run(load_lookup_maps(JsonLookupSource()))


@pytest.fixture
def company() -> SenderCompany:
    return SenderCompany(
        company_id="cmp-001",
        owner_id="user-42",
        name="Société Exemple SARL",
        tax_id="0000000M000",
        tax_id_type_code="I-01",
        address="12 Avenue Habib Bourguiba, Centre Ville",
        city="Tunis",
        postal_code="1000",
        country="tn",
        email="contact@exemple.tn",
        phone="+216 71 000 000",
    )


@pytest.fixture
def valid_header_values() -> dict[HeaderPath, str]:
    return dict(VALID_HEADER_VALUES)


@pytest.fixture
def pasted_text() -> str:
    """A complete, valid paste with a single line."""
    return build_pasted_text()
