"""
Pydantic models for invoice input data and service payloads.

This module defines the core data structures used throughout the TEIF Invoice Service:
- SenderCompany for the pre-filled seller record
- HeaderFieldEntry and LineItem for parsed pasted data
- Request/response bodies for the validate and generate endpoints
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SenderCompany(BaseModel):
    """
    The seller's company record, copied verbatim into the document.

    Never parsed from user input.
    """
    company_id: str = Field(..., min_length=1, description="Company record identifier")
    owner_id: str = Field(..., min_length=1, description="User owning the record")
    name: str = Field(..., min_length=1, description="Legal name of the seller")
    tax_id: str = Field(..., min_length=1, description="Seller tax identifier (matricule fiscal)")
    tax_id_type_code: str = Field("I-01", description="Partner identifier type code of tax_id")
    address: str = Field("", description="Full postal address")
    city: str = Field("", description="City name")
    postal_code: str = Field("", description="Postal code")
    country: str = Field("TN", description="ISO 3166-1 alpha-2 country code")
    email: Optional[str] = Field(None, description="Contact e-mail")
    phone: Optional[str] = Field(None, description="Contact phone number")
    contact_name: Optional[str] = Field(None, description="Optional contact person")

    @field_validator("country")
    @classmethod
    def normalize_country(cls, v: str) -> str:
        """Normalize country code to uppercase."""
        return v.upper().strip()

    @property
    def street(self) -> str:
        """Text before the first comma of the full address."""
        return self.address.split(",")[0].strip()

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "company_id": "cmp-001",
                    "owner_id": "user-42",
                    "name": "Société Exemple SARL",
                    "tax_id": "1234567A001",
                    "tax_id_type_code": "I-01",
                    "address": "12 Avenue Habib Bourguiba, Centre Ville",
                    "city": "Tunis",
                    "postal_code": "1000",
                    "country": "TN",
                    "email": "contact@exemple.tn",
                    "phone": "+216 71 000 000",
                }
            ]
        }
    }


class HeaderFieldEntry(BaseModel):
    """One row of the Header-Fields table, reduced to its XML path and value."""
    xml_path: str
    value: str = ""


class LineItem(BaseModel):
    """
    A validated invoice line with its derived amounts.

    Attributes:
        identifier: Line identifier (ItemIdentifier)
        code: Article code
        description: Article description
        quantity: Number of units
        unit: Measurement unit code (e.g. "H87")
        unit_price_ht: Net unit price
        tax_type_code: Tax type reference code (e.g. "I-1602")
        tax_rate: Tax rate percentage
        net_amount: quantity × unit_price_ht
        tax_amount: net_amount × tax_rate / 100
        gross_amount: net_amount + tax_amount
    """
    line_number: int = Field(..., ge=1, description="1-based position in the pasted table")
    identifier: str = Field(..., min_length=1, max_length=35)
    code: str = Field(..., min_length=1, max_length=35)
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal
    unit: str = Field(..., min_length=1, max_length=8)
    unit_price_ht: Decimal
    tax_type_code: str
    tax_rate: Decimal
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal


class InvoiceTotals(BaseModel):
    """Invoice-level aggregates over valid lines."""
    total_ht: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")

    @property
    def total_ttc(self) -> Decimal:
        return self.total_ht + self.total_tax


# ============================================================================
# API Request/Response Models
# ============================================================================

class PastedDataRequest(BaseModel):
    """Request body for the /validate and /generate endpoints."""
    company_id: Optional[str] = Field(None, description="Sender company record identifier")
    pasted_data: Optional[str] = Field(
        None,
        description="Tab-separated text copied from both template sheets",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [{
                "company_id": "cmp-001",
                "pasted_data": "Champ XML\tDescription\tValeur\tNotes / Contraintes\tExemple\n...",
            }]
        }
    }


class ValidationResponse(BaseModel):
    """Outcome of validating pasted data."""
    success: bool
    message: str
    row_count: int = Field(0, ge=0, description="Number of line-item rows parsed")
    errors: list[str] = Field(default_factory=list)


class GenerationErrorResponse(BaseModel):
    """Returned by /generate when no document can be produced."""
    success: bool = False
    message: str
    errors: list[str] = Field(default_factory=list)
