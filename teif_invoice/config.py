"""
Configuration constants and enums for the TEIF Invoice Service.
"""

import logging
import os
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Final

# ============================================================================
# TEIF Document Constants
# ============================================================================

TEIF_VERSION: Final[str] = "1.8.8"
CONTROLLING_AGENCY: Final[str] = "TTN"

CURRENCY: Final[str] = "TND"
CURRENCY_CODE_LIST: Final[str] = "ISO_4217"
COUNTRY_CODE_LIST: Final[str] = "ISO_3166-1"

# Partner functions
SELLER_FUNCTION_CODE: Final[str] = "I-61"
BUYER_FUNCTION_CODE: Final[str] = "I-62"
PARTNER_NAME_TYPE: Final[str] = "Qualification"

# Communication means
PHONE_MEANS_CODE: Final[str] = "I-101"
EMAIL_MEANS_CODE: Final[str] = "I-102"

# Amount type codes
AMOUNT_TYPE_TOTAL_HT: Final[str] = "I-171"
AMOUNT_TYPE_TOTAL_TTC: Final[str] = "I-172"
AMOUNT_TYPE_TOTAL_TAX: Final[str] = "I-173"

PAYMENT_ACCOUNT_FUNCTION_CODE: Final[str] = "I-141"
INSTITUTION_NAME_CODE: Final[str] = "SWIFT"
ITEM_LANGUAGE: Final[str] = "fr"
DEFAULT_FREE_TEXT_SUBJECT: Final[str] = "I-41"

# Date formats accepted for InvoiceBody.Dtm.DateText
DATE_FORMAT_CODE: Final[str] = "ddMMyy"
ACCEPTED_DATE_FORMATS: Final[tuple[str, ...]] = (DATE_FORMAT_CODE,)

# Receiver countries accepted in the Header-Fields table
RECEIVER_COUNTRIES: Final[tuple[str, ...]] = ("TN", "FR", "DZ", "MA", "US", "GB")

# ============================================================================
# Decimal Precision
# ============================================================================

AMOUNT_QUANTUM: Final[Decimal] = Decimal("0.00001")  # 5 decimal places
RATE_QUANTUM: Final[Decimal] = Decimal("0.01")  # 2 decimal places

# Amounts carry at most this many integer digits, pasted or computed
MAX_AMOUNT_INTEGER_DIGITS: Final[int] = 15

# Working precision for amount arithmetic; wide enough for two 20-digit operands
AMOUNT_PRECISION: Final[int] = 50

# ============================================================================
# Pasted Data Markers
# ============================================================================

# Lines starting with these (case-insensitive) end a located data block
BLOCK_END_MARKERS: Final[tuple[str, ...]] = (
    "légende",
    "instructions",
    "copiez toutes les lignes",
)

CALCULATED_PLACEHOLDER: Final[str] = "[CALCULÉ]"

# ============================================================================
# Error Categories
# ============================================================================

class ErrorCategory(str, Enum):
    """Categories of failures reported outside the accumulated error list."""
    COLLABORATOR = "collaborator"


class CollaboratorError(Exception):
    """An external collaborator (company records, reference data) failed."""
    category = ErrorCategory.COLLABORATOR
    user_message = "Service externe indisponible."


# ============================================================================
# Collaborator Data Sources
# ============================================================================

PACKAGE_DIR: Final[Path] = Path(__file__).resolve().parent

REFERENCE_DATA_PATH: Final[Path] = Path(
    os.getenv("REFERENCE_DATA_PATH", str(PACKAGE_DIR / "data" / "reference_data.json"))
)
COMPANIES_PATH: Final[Path] = Path(os.getenv("COMPANIES_PATH", "companies.json"))

# ============================================================================
# API Configuration
# ============================================================================

API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "8000"))
MAX_PASTED_SIZE_KB: Final[int] = int(os.getenv("MAX_PASTED_SIZE_KB", "512"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("teif_invoice")


logger = setup_logging()
