"""
Field validation rules for pasted invoice data.

This module defines:
- FieldRule: a declarative rule (required-ness, length, pattern, enumerated
  codes, value kind)
- validate_field: the rule engine, returning every failure for a value
- HEADER_RULES / LINE_ITEM_RULES: one rule per user-supplied field
- Receiver identifier format assertions keyed by identifier type

Rules never raise for invalid input; every outcome is a returned message list.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from re import Pattern
from typing import Optional

from .config import ACCEPTED_DATE_FORMATS, MAX_AMOUNT_INTEGER_DIGITS, RECEIVER_COUNTRIES
from .lookups import LookupCategory, LookupMaps
from .tables import HeaderPath


class FieldKind(str, Enum):
    """Value kinds with dedicated format checks."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"  # ddMMyy
    MONETARY_AMOUNT = "monetary_amount"
    PERCENTAGE_RATE = "percentage_rate"


MONETARY_AMOUNT_PATTERN: Pattern[str] = re.compile(
    rf"^[-+]?[0-9]{{1,{MAX_AMOUNT_INTEGER_DIGITS}}}(\.[0-9]{{1,5}})?$"
)
PERCENTAGE_RATE_PATTERN: Pattern[str] = re.compile(r"^[0-9]{1,2}(\.[0-9]{1,2})?$")
DATE_PATTERN: Pattern[str] = re.compile(r"^[0-9]{6}$")

# Characters XML 1.0 cannot carry; tab, newline and carriage return are allowed
XML_INCOMPATIBLE_PATTERN: Pattern[str] = re.compile(
    r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]"
)


@dataclass(frozen=True)
class FieldRule:
    """
    Declarative validation rule for one logical field.

    Attributes:
        required: Value must be non-empty
        min_length: Minimum length of the trimmed value
        max_length: Maximum length of the trimmed value
        pattern: Regular expression the value must match
        enum_values: Allowed values; empty means unrestricted
        kind: Value kind with its own format check
        lookup: Reference category whose codes become enum_values
    """
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[Pattern[str]] = None
    enum_values: tuple[str, ...] = field(default_factory=tuple)
    kind: FieldKind = FieldKind.TEXT
    lookup: Optional[LookupCategory] = None

    def resolve(self, maps: LookupMaps) -> "FieldRule":
        """Bind lookup-backed rules to the codes of the current invocation."""
        if self.lookup is None:
            return self
        return replace(self, enum_values=tuple(maps.codes(self.lookup)))


@dataclass
class FieldCheckResult:
    valid: bool
    messages: list[str] = field(default_factory=list)


# ============================================================================
# Kind Checks
# ============================================================================

def _check_number(value: str, label: str) -> Optional[str]:
    try:
        number = Decimal(value)
    except InvalidOperation:
        return f"{label}: Doit être un nombre valide."
    if not number.is_finite():
        return f"{label}: Doit être un nombre valide."
    return None


def _check_date(value: str, label: str) -> Optional[str]:
    """ddMMyy with a real calendar date in the 2000s."""
    if not DATE_PATTERN.match(value):
        return f"{label}: Le format de date doit être 'ddMMyy' (ex: 250624)."

    day, month, year = int(value[0:2]), int(value[2:4]), 2000 + int(value[4:6])
    if not (1 <= day <= 31) or not (1 <= month <= 12):
        return f"{label}: Jour ou mois invalide dans '{value}'."

    try:
        date(year, month, day)
    except ValueError:
        return f"{label}: Date '{value}' invalide (ex: 31 février)."
    return None


def _check_monetary_amount(value: str, label: str) -> Optional[str]:
    if not MONETARY_AMOUNT_PATTERN.match(value):
        return (
            f"{label}: Le format du montant '{value}' est invalide. "
            "Attendu: NNNN.NNNNN (max 15 chiffres entiers, max 5 décimales)."
        )
    return None


def _check_percentage_rate(value: str, label: str) -> Optional[str]:
    if not PERCENTAGE_RATE_PATTERN.match(value):
        return f"{label}: Le taux '{value}' est invalide. Attendu: NN.NN (ex: 19.00)."
    return None


KIND_CHECKS = {
    FieldKind.NUMBER: _check_number,
    FieldKind.DATE: _check_date,
    FieldKind.MONETARY_AMOUNT: _check_monetary_amount,
    FieldKind.PERCENTAGE_RATE: _check_percentage_rate,
}


# ============================================================================
# Rule Engine
# ============================================================================

def validate_field(value: Optional[str], rule: FieldRule, label: str) -> FieldCheckResult:
    """
    Validate a raw value against a rule, collecting every failure.

    Empty values only ever fail the required check; all other checks are
    skipped for them. Non-empty values are rejected when they hold characters
    XML cannot carry, whatever the rule.

    Args:
        value: Raw cell value (None is treated as empty)
        rule: Rule to apply
        label: Human-readable field name used as message prefix

    Returns:
        FieldCheckResult with valid flag and messages
    """
    trimmed = value.strip() if value else ""
    messages: list[str] = []

    if not trimmed:
        if rule.required:
            messages.append(f"{label}: Ce champ est requis.")
        return FieldCheckResult(valid=not messages, messages=messages)

    if XML_INCOMPATIBLE_PATTERN.search(trimmed):
        messages.append(f"{label}: Contient des caractères de contrôle non autorisés.")

    if rule.max_length is not None and len(trimmed) > rule.max_length:
        messages.append(
            f"{label}: La longueur maximale est de {rule.max_length} caractères "
            f"(actuel: {len(trimmed)})."
        )

    if rule.min_length is not None and len(trimmed) < rule.min_length:
        messages.append(
            f"{label}: La longueur minimale est de {rule.min_length} caractères "
            f"(actuel: {len(trimmed)})."
        )

    if rule.pattern is not None and not rule.pattern.search(trimmed):
        messages.append(
            f"{label}: Le format '{trimmed}' est invalide. Attendu: {rule.pattern.pattern}."
        )

    if rule.enum_values and trimmed not in rule.enum_values:
        messages.append(
            f"{label}: La valeur '{trimmed}' est invalide. "
            f"Les valeurs permises sont: {', '.join(rule.enum_values)}."
        )

    kind_check = KIND_CHECKS.get(rule.kind)
    if kind_check is not None:
        message = kind_check(trimmed, label)
        if message:
            messages.append(message)

    return FieldCheckResult(valid=not messages, messages=messages)


# ============================================================================
# Header Field Rules
# ============================================================================

HEADER_RULES: dict[HeaderPath, FieldRule] = {
    HeaderPath.RECEIVER_IDENTIFIER: FieldRule(required=True, max_length=35),
    HeaderPath.RECEIVER_IDENTIFIER_TYPE: FieldRule(
        required=True, lookup=LookupCategory.PARTNER_IDENTIFIER_TYPE
    ),
    HeaderPath.DOCUMENT_IDENTIFIER: FieldRule(required=True, max_length=70),
    HeaderPath.DOCUMENT_TYPE_CODE: FieldRule(required=True, lookup=LookupCategory.DOCUMENT_TYPE),
    HeaderPath.DATE_FUNCTION_CODE: FieldRule(required=True, lookup=LookupCategory.DATE_FUNCTION),
    HeaderPath.DATE_FORMAT: FieldRule(required=True, enum_values=ACCEPTED_DATE_FORMATS),
    HeaderPath.DATE_TEXT: FieldRule(required=True, kind=FieldKind.DATE),

    HeaderPath.RECEIVER_NAME: FieldRule(required=True, max_length=200),
    HeaderPath.RECEIVER_ADDRESS: FieldRule(required=True, max_length=500),
    HeaderPath.RECEIVER_STREET: FieldRule(max_length=35),
    HeaderPath.RECEIVER_CITY: FieldRule(required=True, max_length=35),
    HeaderPath.RECEIVER_POSTAL_CODE: FieldRule(max_length=17),
    HeaderPath.RECEIVER_COUNTRY: FieldRule(required=True, enum_values=RECEIVER_COUNTRIES),
    HeaderPath.RECEIVER_CONTACT_NAME: FieldRule(max_length=200),
    HeaderPath.RECEIVER_EMAIL: FieldRule(max_length=500),
    HeaderPath.RECEIVER_PHONE: FieldRule(max_length=500),

    HeaderPath.PAYMENT_TERMS_CODE: FieldRule(required=True, lookup=LookupCategory.PAYMENT_TERMS_TYPE),
    HeaderPath.PAYMENT_TERMS_DESCRIPTION: FieldRule(max_length=500),
    HeaderPath.PAYMENT_MEANS_CODE: FieldRule(required=True, lookup=LookupCategory.PAYMENT_MEANS),
    HeaderPath.BANK_ACCOUNT_NUMBER: FieldRule(max_length=35),
    HeaderPath.BANK_NAME: FieldRule(max_length=70),

    HeaderPath.FREE_TEXT_SUBJECT: FieldRule(lookup=LookupCategory.FREE_TEXT_SUBJECT),
    HeaderPath.FREE_TEXT: FieldRule(max_length=500),

    HeaderPath.INVOICE_TAX_TYPE_CODE: FieldRule(required=True, lookup=LookupCategory.TAX_TYPE),
    HeaderPath.INVOICE_TAX_RATE: FieldRule(required=True, kind=FieldKind.PERCENTAGE_RATE),
}


# ============================================================================
# Line Item Rules
# ============================================================================

# Keyed by LINE_ITEMS_SCHEMA column key
LINE_ITEM_RULES: dict[str, FieldRule] = {
    "identifier": FieldRule(required=True, max_length=35),
    "code": FieldRule(required=True, max_length=35),
    "description": FieldRule(required=True, max_length=500),
    "quantity": FieldRule(required=True, kind=FieldKind.MONETARY_AMOUNT),
    "unit": FieldRule(required=True, max_length=8),
    "unit_price_ht": FieldRule(required=True, kind=FieldKind.MONETARY_AMOUNT),
    "tax_type_code": FieldRule(required=True, lookup=LookupCategory.TAX_TYPE),
    "tax_rate": FieldRule(required=True, kind=FieldKind.PERCENTAGE_RATE),
}


# ============================================================================
# Receiver Identifier Formats
# ============================================================================

@dataclass(frozen=True)
class IdentifierFormat:
    label: str
    pattern: Pattern[str]
    expected: str


RECEIVER_ID_FORMATS: dict[str, IdentifierFormat] = {
    "I-01": IdentifierFormat(
        label="Matricule Fiscal Tunisien",
        pattern=re.compile(r"^(?:[0-9]{7}[A-Z][0-9]{3}|[0-9]{7,13})$", re.IGNORECASE),
        expected="7 chiffres + 1 lettre + 3 chiffres (Ex: 1234567A001) OU 7 à 13 chiffres",
    ),
    "I-02": IdentifierFormat(
        label="CIN",
        pattern=re.compile(r"^[0-9]{8}$"),
        expected="8 chiffres",
    ),
    "I-03": IdentifierFormat(
        label="Carte de Séjour",
        pattern=re.compile(r"^[0-9]{9}$"),
        expected="9 chiffres",
    ),
}


def check_receiver_identifier(identifier_type: str, identifier: str) -> Optional[str]:
    """
    The receiver identifier must match the format implied by its type.

    Types without a known format are accepted as-is.
    """
    fmt = RECEIVER_ID_FORMATS.get(identifier_type)
    if fmt is None or fmt.pattern.match(identifier):
        return None
    return (
        f"Identifiant Destinataire: Le format du {fmt.label} (Type {identifier_type}) "
        f"est invalide pour '{identifier}'. Attendu: {fmt.expected}."
    )
