"""
TEIF Invoice Service

A Python service that turns data pasted from a pre-filled spreadsheet
template into Tunisian electronic invoices (TEIF 1.8.8 XML).
"""

__version__ = "0.1.0"
__author__ = "TEIF Invoice Team"

from .schemas import SenderCompany, LineItem, ValidationResponse
from .assembler import assemble_invoice
from .extractor import extract_tables
from .serializer import serialize
from .template import build_template
from .validator import build_template_for, validate_pasted_data, generate_invoice_xml

__all__ = [
    "SenderCompany",
    "LineItem",
    "ValidationResponse",
    "assemble_invoice",
    "extract_tables",
    "serialize",
    "build_template",
    "build_template_for",
    "validate_pasted_data",
    "generate_invoice_xml",
]
