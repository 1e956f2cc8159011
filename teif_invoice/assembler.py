"""
Invoice assembly and calculation.

Turns parsed header entries and line-item rows into a TEIF document tree:

1. Header pass: every pasted XML path is dispatched to the handler of its
   HeaderPath. User-input fields are validated and stored; pre-filled and
   calculated fields are ignored, since their values come from the sender
   record and from the line items.
2. Cross-field checks: receiver identifier format, jointly required groups.
3. Line pass: each row is validated on its own; failing rows are reported and
   left out of the totals, the rest are priced at fixed precision.
4. Finalization: invoice totals and the invoice-level tax block, only when no
   error has been found.

Errors accumulate in one list; its emptiness is the success signal.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Callable, Optional

from .config import (
    AMOUNT_PRECISION,
    AMOUNT_QUANTUM,
    AMOUNT_TYPE_TOTAL_HT,
    AMOUNT_TYPE_TOTAL_TAX,
    AMOUNT_TYPE_TOTAL_TTC,
    BUYER_FUNCTION_CODE,
    CONTROLLING_AGENCY,
    COUNTRY_CODE_LIST,
    CURRENCY,
    CURRENCY_CODE_LIST,
    DEFAULT_FREE_TEXT_SUBJECT,
    EMAIL_MEANS_CODE,
    INSTITUTION_NAME_CODE,
    ITEM_LANGUAGE,
    MAX_AMOUNT_INTEGER_DIGITS,
    PARTNER_NAME_TYPE,
    PAYMENT_ACCOUNT_FUNCTION_CODE,
    PHONE_MEANS_CODE,
    RATE_QUANTUM,
    SELLER_FUNCTION_CODE,
    TEIF_VERSION,
    logger,
)
from .document import Element, Leaf, element, leaf
from .extractor import RawParsedRow
from .lookups import LookupCategory, LookupMaps
from .rules import HEADER_RULES, LINE_ITEM_RULES, check_receiver_identifier, validate_field
from .schemas import HeaderFieldEntry, InvoiceTotals, LineItem, SenderCompany
from .tables import (
    HEADER_FIELDS,
    LINE_ITEMS_SCHEMA,
    FieldClassification,
    HeaderPath,
    header_paths_by_classification,
)

NO_VALID_LINES_ERROR = (
    "Aucune ligne de facture valide détectée. Une facture doit contenir au moins une ligne."
)
MISSING_INVOICE_TAX_ERROR = (
    "Le code et le taux de la taxe au niveau de la facture sont requis pour le calcul global."
)
LINE_AMOUNT_TOO_WIDE_MESSAGE = (
    f"Le montant calculé de la ligne dépasse {MAX_AMOUNT_INTEGER_DIGITS} chiffres entiers."
)
TOTALS_TOO_WIDE_ERROR = (
    f"Le total de la facture dépasse {MAX_AMOUNT_INTEGER_DIGITS} chiffres entiers."
)


# ============================================================================
# Formatting
# ============================================================================

def quantize_amount(value: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def amount_fits(value: Decimal) -> bool:
    """True when the amount has no more integer digits than a pasted amount may have."""
    return abs(value) < Decimal(10) ** MAX_AMOUNT_INTEGER_DIGITS


def format_amount(value: Decimal) -> str:
    """Amounts are always written with 5 decimals, e.g. '300.00000'."""
    return format(quantize_amount(value), "f")


def format_rate(value: Decimal) -> str:
    """Rates are always written with 2 decimals, e.g. '19.00'."""
    return format(value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP), "f")


def compute_line_amounts(
    quantity: Decimal, unit_price_ht: Decimal, tax_rate: Decimal
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Net, tax and gross amounts of one line, each at 5 decimal places.

    Returns:
        Tuple of (net_amount, tax_amount, gross_amount)
    """
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        net_amount = quantize_amount(quantity * unit_price_ht)
        tax_amount = quantize_amount(net_amount * tax_rate / Decimal(100))
        return net_amount, tax_amount, net_amount + tax_amount


def sum_amounts(amounts: list[Decimal]) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return sum(amounts, Decimal("0"))


# ============================================================================
# Header Pass
# ============================================================================

@dataclass
class HeaderState:
    """Validated user-supplied header values."""
    receiver_identifier: str = ""
    receiver_identifier_type: str = ""
    document_identifier: str = ""
    document_type_code: str = ""
    date_function_code: str = ""
    date_format: str = ""
    date_text: str = ""
    receiver_name: str = ""
    receiver_address: str = ""
    receiver_street: str = ""
    receiver_city: str = ""
    receiver_postal_code: str = ""
    receiver_country: str = ""
    receiver_contact_name: str = ""
    receiver_email: str = ""
    receiver_phone: str = ""
    payment_terms_code: str = ""
    payment_terms_description: str = ""
    payment_means_code: str = ""
    bank_account_number: str = ""
    bank_name: str = ""
    free_text_subject: str = ""
    free_text: str = ""
    invoice_tax_type_code: str = ""
    invoice_tax_rate: Optional[Decimal] = None


HeaderHandler = Callable[[HeaderState, str], None]


def _store(attribute: str) -> HeaderHandler:
    def handler(state: HeaderState, value: str) -> None:
        setattr(state, attribute, value)
    return handler


def _store_tax_rate(state: HeaderState, value: str) -> None:
    state.invoice_tax_rate = Decimal(value)


HEADER_HANDLERS: dict[HeaderPath, HeaderHandler] = {
    HeaderPath.RECEIVER_IDENTIFIER: _store("receiver_identifier"),
    HeaderPath.RECEIVER_IDENTIFIER_TYPE: _store("receiver_identifier_type"),
    HeaderPath.DOCUMENT_IDENTIFIER: _store("document_identifier"),
    HeaderPath.DOCUMENT_TYPE_CODE: _store("document_type_code"),
    HeaderPath.DATE_FUNCTION_CODE: _store("date_function_code"),
    HeaderPath.DATE_FORMAT: _store("date_format"),
    HeaderPath.DATE_TEXT: _store("date_text"),
    HeaderPath.RECEIVER_NAME: _store("receiver_name"),
    HeaderPath.RECEIVER_ADDRESS: _store("receiver_address"),
    HeaderPath.RECEIVER_STREET: _store("receiver_street"),
    HeaderPath.RECEIVER_CITY: _store("receiver_city"),
    HeaderPath.RECEIVER_POSTAL_CODE: _store("receiver_postal_code"),
    HeaderPath.RECEIVER_COUNTRY: _store("receiver_country"),
    HeaderPath.RECEIVER_CONTACT_NAME: _store("receiver_contact_name"),
    HeaderPath.RECEIVER_EMAIL: _store("receiver_email"),
    HeaderPath.RECEIVER_PHONE: _store("receiver_phone"),
    HeaderPath.PAYMENT_TERMS_CODE: _store("payment_terms_code"),
    HeaderPath.PAYMENT_TERMS_DESCRIPTION: _store("payment_terms_description"),
    HeaderPath.PAYMENT_MEANS_CODE: _store("payment_means_code"),
    HeaderPath.BANK_ACCOUNT_NUMBER: _store("bank_account_number"),
    HeaderPath.BANK_NAME: _store("bank_name"),
    HeaderPath.FREE_TEXT_SUBJECT: _store("free_text_subject"),
    HeaderPath.FREE_TEXT: _store("free_text"),
    HeaderPath.INVOICE_TAX_TYPE_CODE: _store("invoice_tax_type_code"),
    HeaderPath.INVOICE_TAX_RATE: _store_tax_rate,
}

# Every user-input field must have both a rule and a handler. Other template
# paths are pre-filled or calculated and never read from the paste.
_USER_INPUT_PATHS = set(header_paths_by_classification(FieldClassification.USER_INPUT))
if _USER_INPUT_PATHS != set(HEADER_HANDLERS) or _USER_INPUT_PATHS != set(HEADER_RULES):
    raise RuntimeError(
        "Header dispatch out of sync with the field registry: "
        f"unhandled={sorted(_USER_INPUT_PATHS - set(HEADER_HANDLERS))}, "
        f"unruled={sorted(_USER_INPUT_PATHS - set(HEADER_RULES))}, "
        f"unexpected={sorted((set(HEADER_HANDLERS) | set(HEADER_RULES)) - _USER_INPUT_PATHS)}"
    )


def read_header_fields(
    entries: list[HeaderFieldEntry], maps: LookupMaps, errors: list[str]
) -> HeaderState:
    """Validate and store every user-input header field, appending failures to errors."""
    state = HeaderState()

    for entry in entries:
        path = HeaderPath.parse(entry.xml_path)
        if path is None:
            logger.debug(f"Ignoring unknown header path: {entry.xml_path!r}")
            continue

        handler = HEADER_HANDLERS.get(path)
        if handler is None:
            continue

        value = entry.value.strip()
        check = validate_field(value, HEADER_RULES[path].resolve(maps), HEADER_FIELDS[path].description)
        errors.extend(check.messages)
        if check.valid and value:
            handler(state, value)

    return state


def check_header_state(state: HeaderState, errors: list[str]) -> None:
    """Cross-field assertions once every header field has been read."""
    if state.receiver_identifier and state.receiver_identifier_type:
        message = check_receiver_identifier(state.receiver_identifier_type, state.receiver_identifier)
        if message:
            errors.append(message)
    else:
        errors.append("L'identifiant et le type de l'identifiant du destinataire sont requis.")

    if not state.document_identifier:
        errors.append("Le numéro de facture est requis.")
    if not state.document_type_code:
        errors.append("Le code du type de document est requis.")
    if not (state.date_function_code and state.date_format and state.date_text):
        errors.append("La date de facture, sa fonction et son format sont requis.")
    if not (
        state.receiver_name
        and state.receiver_address
        and state.receiver_city
        and state.receiver_country
    ):
        errors.append("Le nom, l'adresse, la ville et le pays du récepteur sont requis.")


# ============================================================================
# Line Pass
# ============================================================================

# A row is worth validating only if one of these holds a value
_LINE_CONTENT_KEYS = ("identifier", "code", "description", "quantity", "unit_price_ht")


def read_line_items(
    rows: list[RawParsedRow], maps: LookupMaps, errors: list[str]
) -> list[LineItem]:
    """
    Validate and price every line-item row.

    A row with any failing field contributes its messages to errors and is
    skipped; later rows are still processed.
    """
    rules = {key: rule.resolve(maps) for key, rule in LINE_ITEM_RULES.items()}
    items: list[LineItem] = []

    for line_number, row in enumerate(rows, start=1):
        values = {
            column.key: row.get(column.display_name, "").strip()
            for column in LINE_ITEMS_SCHEMA.columns
        }
        if not any(values[key] for key in _LINE_CONTENT_KEYS):
            continue

        item_errors: list[str] = []
        for key, rule in rules.items():
            label = f"Ligne {line_number}: {LINE_ITEMS_SCHEMA.display_name(key)}"
            item_errors.extend(validate_field(values[key], rule, label).messages)

        if item_errors:
            errors.extend(item_errors)
            logger.debug(f"Line {line_number} rejected with {len(item_errors)} error(s)")
            continue

        quantity = Decimal(values["quantity"])
        unit_price_ht = Decimal(values["unit_price_ht"])
        tax_rate = Decimal(values["tax_rate"])
        net_amount, tax_amount, gross_amount = compute_line_amounts(quantity, unit_price_ht, tax_rate)

        if not all(amount_fits(amount) for amount in (net_amount, tax_amount, gross_amount)):
            errors.append(f"Ligne {line_number}: {LINE_AMOUNT_TOO_WIDE_MESSAGE}")
            logger.debug(f"Line {line_number} rejected: computed amount too wide")
            continue

        items.append(LineItem(
            line_number=line_number,
            identifier=values["identifier"],
            code=values["code"],
            description=values["description"],
            quantity=quantity,
            unit=values["unit"],
            unit_price_ht=unit_price_ht,
            tax_type_code=values["tax_type_code"],
            tax_rate=tax_rate,
            net_amount=net_amount,
            tax_amount=tax_amount,
            gross_amount=gross_amount,
        ))

    return items


# ============================================================================
# Document Construction
# ============================================================================

def _moa(amount: Decimal, amount_type_code: str) -> Element:
    return element(
        "Moa",
        Leaf("Amount", format_amount(amount), {"currencyIdentifier": CURRENCY}),
        currencyCodeList=CURRENCY_CODE_LIST,
        amountTypeCode=amount_type_code,
    )


def _communications(email: Optional[str], phone: Optional[str]) -> list[Element]:
    communications = []
    if email:
        communications.append(element(
            "Communication", leaf("ComMeansType", EMAIL_MEANS_CODE), leaf("ComAdress", email)
        ))
    if phone:
        communications.append(element(
            "Communication", leaf("ComMeansType", PHONE_MEANS_CODE), leaf("ComAdress", phone)
        ))
    return communications


def _address(description: str, street: str, city: str, postal_code: str, country: str) -> Element:
    return element(
        "PartnerAdresses",
        leaf("AdressDescription", description),
        leaf("Street", street),
        leaf("CityName", city),
        leaf("PostalCode", postal_code),
        leaf("Country", country, codeList=COUNTRY_CODE_LIST),
    )


def build_seller_partner(company: SenderCompany) -> Element:
    """Seller block, copied from the company record."""
    return element(
        "PartnerDetails",
        element(
            "Nad",
            Leaf("PartnerIdentifier", company.tax_id, {"type": company.tax_id_type_code}),
            Leaf("PartnerName", company.name, {"nameType": PARTNER_NAME_TYPE}),
            _address(company.address, company.street, company.city, company.postal_code, company.country),
        ),
        element(
            "CtaSection",
            element("Contact", leaf("ContactName", company.contact_name)),
            *_communications(company.email, company.phone),
        ),
        functionCode=SELLER_FUNCTION_CODE,
    )


def build_receiver_partner(state: HeaderState) -> Element:
    return element(
        "PartnerDetails",
        element(
            "Nad",
            Leaf("PartnerName", state.receiver_name, {"nameType": PARTNER_NAME_TYPE}),
            _address(
                state.receiver_address,
                state.receiver_street,
                state.receiver_city,
                state.receiver_postal_code,
                state.receiver_country,
            ),
        ),
        element(
            "CtaSection",
            element("Contact", leaf("ContactName", state.receiver_contact_name)),
            *_communications(state.receiver_email, state.receiver_phone),
        ),
        functionCode=BUYER_FUNCTION_CODE,
    )


def build_payment_section(state: HeaderState) -> Optional[Element]:
    if not (state.payment_terms_code and state.payment_means_code):
        return None
    return element(
        "PytSection",
        element(
            "PytSectionDetails",
            element(
                "Pyt",
                leaf("PaymentTearmsTypeCode", state.payment_terms_code),
                leaf("PaymentTearmsDescription", state.payment_terms_description),
            ),
            element("PytPai", leaf("PaiMeansCode", state.payment_means_code)),
            element(
                "PytFii",
                element("AccountHolder", leaf("AccountNumber", state.bank_account_number)),
                element(
                    "InstitutionIdentification",
                    leaf("InstitutionName", state.bank_name),
                    nameCode=INSTITUTION_NAME_CODE,
                ),
                functionCode=PAYMENT_ACCOUNT_FUNCTION_CODE,
            ),
        ),
    )


def build_free_text(state: HeaderState) -> Optional[Element]:
    if not state.free_text:
        return None
    return element(
        "Ftx",
        element(
            "FreeTextDetail",
            leaf("FreeTexts", state.free_text),
            subjectCode=state.free_text_subject or DEFAULT_FREE_TEXT_SUBJECT,
        ),
    )


def build_line(item: LineItem, maps: LookupMaps) -> Element:
    return element(
        "Lin",
        Leaf("ItemIdentifier", item.identifier),
        element(
            "LinImd",
            leaf("ItemCode", item.code),
            leaf("ItemDescription", item.description),
            lang=ITEM_LANGUAGE,
        ),
        element(
            "LinQty",
            Leaf("Quantity", format_amount(item.quantity), {"measurementUnit": item.unit}),
        ),
        element(
            "LinTax",
            Leaf(
                "TaxTypeName",
                maps.describe(LookupCategory.TAX_TYPE, item.tax_type_code),
                {"code": item.tax_type_code},
            ),
            element(
                "TaxDetails",
                Leaf("TaxRate", format_rate(item.tax_rate)),
                Leaf("TaxRateBasis", format_amount(item.net_amount)),
            ),
        ),
        element(
            "LinMoa",
            element("MoaDetails", _moa(item.net_amount, AMOUNT_TYPE_TOTAL_HT)),
            element("MoaDetails", _moa(item.gross_amount, AMOUNT_TYPE_TOTAL_TTC)),
        ),
    )


def build_totals(state: HeaderState, totals: InvoiceTotals, maps: LookupMaps) -> tuple[Element, Element]:
    """InvoiceMoa and InvoiceTax blocks; the tax classification comes from the header."""
    invoice_moa = element(
        "InvoiceMoa",
        element("AmountDetails", _moa(totals.total_ht, AMOUNT_TYPE_TOTAL_HT)),
        element("AmountDetails", _moa(totals.total_ttc, AMOUNT_TYPE_TOTAL_TTC)),
    )
    invoice_tax = element(
        "InvoiceTax",
        element(
            "InvoiceTaxDetails",
            element(
                "Tax",
                Leaf(
                    "TaxTypeName",
                    maps.describe(LookupCategory.TAX_TYPE, state.invoice_tax_type_code),
                    {"code": state.invoice_tax_type_code},
                ),
                element("TaxDetails", Leaf("TaxRate", format_rate(state.invoice_tax_rate))),
            ),
            element("AmountDetails", _moa(totals.total_tax, AMOUNT_TYPE_TOTAL_TAX)),
        ),
    )
    return invoice_moa, invoice_tax


def build_document(
    state: HeaderState,
    company: SenderCompany,
    maps: LookupMaps,
    items: list[LineItem],
    totals: Optional[InvoiceTotals],
) -> Element:
    """
    Assemble the TEIF tree from validated values.

    Receiver, date and document type blocks are only present when their
    fields were all valid; totals only when finalization succeeded.
    """
    receiver_identifier = None
    if state.receiver_identifier and state.receiver_identifier_type:
        receiver_identifier = Leaf(
            "MessageRecieverIdentifier",
            state.receiver_identifier,
            {"type": state.receiver_identifier_type},
        )

    document_type = None
    if state.document_type_code:
        document_type = Leaf(
            "DocumentType",
            maps.describe(LookupCategory.DOCUMENT_TYPE, state.document_type_code),
            {"code": state.document_type_code},
        )

    date_text = None
    if state.date_function_code and state.date_format and state.date_text:
        date_text = Leaf(
            "DateText",
            state.date_text,
            {"functionCode": state.date_function_code, "format": state.date_format},
        )

    receiver = None
    if state.receiver_name and state.receiver_address and state.receiver_city and state.receiver_country:
        receiver = build_receiver_partner(state)

    invoice_moa = invoice_tax = None
    if totals is not None:
        invoice_moa, invoice_tax = build_totals(state, totals, maps)

    return element(
        "TEIF",
        element(
            "InvoiceHeader",
            Leaf("MessageSenderIdentifier", company.tax_id, {"type": company.tax_id_type_code}),
            receiver_identifier,
        ),
        element(
            "InvoiceBody",
            element("Bgm", leaf("DocumentIdentifier", state.document_identifier), document_type),
            element("Dtm", date_text),
            element("PartnerSection", build_seller_partner(company), receiver),
            build_payment_section(state),
            build_free_text(state),
            element("LinSection", *(build_line(item, maps) for item in items)),
            invoice_moa,
            invoice_tax,
        ),
        version=TEIF_VERSION,
        controlingAgency=CONTROLLING_AGENCY,
    )


# ============================================================================
# Assembler
# ============================================================================

@dataclass
class AssemblyResult:
    """Outcome of assembling one invoice."""
    success: bool
    errors: list[str] = field(default_factory=list)
    document: Optional[Element] = None
    line_count: int = 0
    row_count: int = 0
    line_items: list[LineItem] = field(default_factory=list)
    totals: Optional[InvoiceTotals] = None


def assemble_invoice(
    header_entries: list[HeaderFieldEntry],
    line_rows: list[RawParsedRow],
    company: SenderCompany,
    maps: LookupMaps,
) -> AssemblyResult:
    """
    Validate parsed tables and assemble the invoice document.

    Args:
        header_entries: Parsed Header-Fields rows
        line_rows: Parsed Line-Items rows
        company: Sender record, copied into the seller block
        maps: Reference data for this invocation

    Returns:
        AssemblyResult; success is True only when errors is empty
    """
    errors: list[str] = []

    state = read_header_fields(header_entries, maps, errors)
    check_header_state(state, errors)

    items = read_line_items(line_rows, maps, errors)
    totals = InvoiceTotals(
        total_ht=sum_amounts([item.net_amount for item in items]),
        total_tax=sum_amounts([item.tax_amount for item in items]),
    )

    if not items and not errors:
        errors.append(NO_VALID_LINES_ERROR)
    if not all(amount_fits(amount) for amount in (totals.total_ht, totals.total_tax, totals.total_ttc)):
        errors.append(TOTALS_TOO_WIDE_ERROR)

    finalized_totals: Optional[InvoiceTotals] = None
    if not errors:
        if state.invoice_tax_type_code and state.invoice_tax_rate is not None:
            finalized_totals = totals
        else:
            errors.append(MISSING_INVOICE_TAX_ERROR)

    document = build_document(state, company, maps, items, finalized_totals)

    logger.info(
        f"Assembled invoice {state.document_identifier or '<no number>'}: "
        f"{len(items)} valid line(s), {len(errors)} error(s)"
    )

    return AssemblyResult(
        success=not errors,
        errors=errors,
        document=document,
        line_count=len(items),
        row_count=len(line_rows),
        line_items=items,
        totals=finalized_totals,
    )
