"""
Pipeline orchestration for invoice templates, validation and generation.

This module wires extraction, assembly and serialization together and
exposes the three operations used by the API and the CLI:
- build_template_for: the pre-filled xlsx template of a sender
- validate_pasted_data: validation-only run over pasted tables
- generate_invoice_xml: full run producing the TEIF XML document
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .assembler import AssemblyResult, assemble_invoice
from .config import MAX_PASTED_SIZE_KB, logger
from .document import Leaf
from .extractor import extract_tables
from .lookups import LookupMaps
from .schemas import SenderCompany, ValidationResponse
from .serializer import serialize
from .template import render_template, template_filename

VALIDATION_SUCCESS_MESSAGE = "Validation des données réussie."
VALIDATION_FAILURE_MESSAGE = "Des erreurs de validation ont été trouvées dans vos données."
GENERATION_FAILURE_MESSAGE = "La génération XML a échoué en raison d'erreurs de validation."


@dataclass
class TemplateFile:
    content: bytes
    filename: str


@dataclass
class GenerationResult:
    """Outcome of generating the XML invoice."""
    success: bool
    errors: list[str] = field(default_factory=list)
    xml: Optional[str] = None
    filename: Optional[str] = None


def run_pipeline(raw_text: str, company: SenderCompany, maps: LookupMaps) -> AssemblyResult:
    """
    Extract both tables from pasted text and assemble the invoice.

    Structural errors (oversized input, missing tables) stop the run before
    any field is validated: no document is built and no line is counted.
    """
    size_kb = len(raw_text.encode("utf-8")) / 1024
    if size_kb > MAX_PASTED_SIZE_KB:
        return AssemblyResult(
            success=False,
            errors=[f"Les données collées dépassent la taille maximale de {MAX_PASTED_SIZE_KB} Ko."],
        )

    extracted = extract_tables(raw_text)
    if extracted.errors:
        logger.info(f"Pasted data rejected: {len(extracted.errors)} structural error(s)")
        return AssemblyResult(success=False, errors=extracted.errors)

    return assemble_invoice(extracted.header_entries, extracted.line_rows, company, maps)


def build_template_for(
    company: SenderCompany, maps: LookupMaps, today: Optional[date] = None
) -> TemplateFile:
    """Render the template workbook and its suggested filename."""
    return TemplateFile(
        content=render_template(company, maps, today),
        filename=template_filename(today),
    )


def validate_pasted_data(raw_text: str, company: SenderCompany, maps: LookupMaps) -> ValidationResponse:
    """
    Validate pasted tables without producing XML.

    Args:
        raw_text: Text copied from both template sheets
        company: Sender record
        maps: Reference data for this invocation

    Returns:
        ValidationResponse with the line-item row count and every error
    """
    result = run_pipeline(raw_text, company, maps)
    return ValidationResponse(
        success=result.success,
        message=VALIDATION_SUCCESS_MESSAGE if result.success else VALIDATION_FAILURE_MESSAGE,
        row_count=result.row_count,
        errors=result.errors,
    )


def suggest_filename(document_identifier: str, now: Optional[datetime] = None) -> str:
    """Download name of a generated invoice, e.g. 'invoice_INV-001_1719310000000.xml'."""
    now = now or datetime.now()
    return f"invoice_{document_identifier}_{int(now.timestamp() * 1000)}.xml"


def generate_invoice_xml(
    raw_text: str,
    company: SenderCompany,
    maps: LookupMaps,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """
    Validate pasted tables and serialize the invoice.

    XML is only produced when the run has no error at all.
    """
    result = run_pipeline(raw_text, company, maps)
    if not result.success or result.document is None:
        return GenerationResult(success=False, errors=result.errors)

    identifier = result.document.find("InvoiceBody/Bgm/DocumentIdentifier")
    document_identifier = identifier.text if isinstance(identifier, Leaf) else "facture"

    xml = serialize(result.document)
    logger.info(f"Generated TEIF XML for invoice {document_identifier} ({result.line_count} line(s))")

    return GenerationResult(
        success=True,
        xml=xml,
        filename=suggest_filename(document_identifier, now),
    )


def format_errors_text(success: bool, errors: list[str], row_count: Optional[int] = None) -> str:
    """
    Format a validation outcome as human-readable text for CLI output.

    Args:
        success: Whether the run succeeded
        errors: Errors to list
        row_count: Number of parsed line-item rows, when known

    Returns:
        Formatted string for display
    """
    lines = [
        "=" * 50,
        "VALIDATION",
        "=" * 50,
        VALIDATION_SUCCESS_MESSAGE if success else VALIDATION_FAILURE_MESSAGE,
    ]

    if row_count is not None:
        lines.append(f"Line item rows parsed: {row_count}")
    lines.append("")

    if errors:
        lines.append(f"Errors ({len(errors)}):")
        lines.append("-" * 40)
        for error in errors:
            lines.append(f"  - {error}")
        lines.append("")

    lines.append("=" * 50)

    return "\n".join(lines)
