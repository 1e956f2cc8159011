"""
Spreadsheet template generation.

The template has two sheets whose table header rows are exactly the column
schemas the parser looks for. Header-Fields rows come from the HeaderPath
registry: pre-filled rows carry the sender record and TEIF constants,
user-input rows carry defaults and guidance, calculated rows a placeholder.
"""

from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .config import (
    AMOUNT_TYPE_TOTAL_HT,
    AMOUNT_TYPE_TOTAL_TAX,
    AMOUNT_TYPE_TOTAL_TTC,
    BUYER_FUNCTION_CODE,
    CALCULATED_PLACEHOLDER,
    CONTROLLING_AGENCY,
    CURRENCY,
    CURRENCY_CODE_LIST,
    DATE_FORMAT_CODE,
    DEFAULT_FREE_TEXT_SUBJECT,
    EMAIL_MEANS_CODE,
    PARTNER_NAME_TYPE,
    PHONE_MEANS_CODE,
    SELLER_FUNCTION_CODE,
    TEIF_VERSION,
    logger,
)
from .lookups import LookupCategory, LookupMaps
from .rules import HEADER_RULES
from .schemas import SenderCompany
from .tables import (
    HEADER_FIELDS,
    HEADER_FIELDS_SCHEMA,
    LINE_ITEMS_SCHEMA,
    ColumnSchema,
    FieldClassification,
    HeaderPath,
)

HEADER_SHEET_TITLE = "En-tête Facture"
LINE_ITEMS_SHEET_TITLE = "Lignes de Facture"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# ============================================================================
# Styles
# ============================================================================

USER_INPUT_FONT_COLOR = "FFC00000"
USER_INPUT_FILL_COLOR = "FFFFFFCC"
PRE_FILLED_FONT_COLOR = "FF0000FF"
CALCULATED_FONT_COLOR = "FF808080"

TITLE_FONT = Font(bold=True, size=16, color="FF3366FF")
INSTRUCTION_FONT = Font(italic=True, color="FF666666")
LEGEND_TITLE_FONT = Font(bold=True, size=12)
HEADER_ROW_FONT = Font(bold=True)
HEADER_ROW_FILL = PatternFill(fill_type="solid", fgColor="FFD3D3D3")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
USER_INPUT_FILL = PatternFill(fill_type="solid", fgColor=USER_INPUT_FILL_COLOR)

CLASSIFICATION_FONT_COLORS = {
    FieldClassification.USER_INPUT: USER_INPUT_FONT_COLOR,
    FieldClassification.PRE_FILLED: PRE_FILLED_FONT_COLOR,
    FieldClassification.CALCULATED: CALCULATED_FONT_COLOR,
}

LEGEND_LABELS = {
    FieldClassification.USER_INPUT: "À Remplir (Données Requises / Obligatoires) (Fond jaune clair)",
    FieldClassification.PRE_FILLED: "Pré-rempli / Statique (Ne pas modifier)",
    FieldClassification.CALCULATED: "Calculé (Ne pas modifier)",
}


def style_value_cell(cell, classification: FieldClassification) -> None:
    cell.font = Font(color=CLASSIFICATION_FONT_COLORS[classification])
    if classification is FieldClassification.USER_INPUT:
        cell.fill = USER_INPUT_FILL


# ============================================================================
# Header-Fields Rows
# ============================================================================

@dataclass
class TemplateRow:
    path: HeaderPath
    value: str
    notes: str
    example: str

    @property
    def classification(self) -> FieldClassification:
        return HEADER_FIELDS[self.path].classification

    def as_cells(self) -> list[str]:
        return [self.path.value, HEADER_FIELDS[self.path].description, self.value, self.notes, self.example]


# User-input fields that start with a sensible value
USER_INPUT_DEFAULTS: dict[HeaderPath, str] = {
    HeaderPath.DOCUMENT_TYPE_CODE: "I-11",
    HeaderPath.DATE_FUNCTION_CODE: "I-31",
    HeaderPath.DATE_FORMAT: DATE_FORMAT_CODE,
    HeaderPath.RECEIVER_COUNTRY: "TN",
    HeaderPath.PAYMENT_TERMS_CODE: "I-111",
    HeaderPath.PAYMENT_MEANS_CODE: "I-131",
    HeaderPath.FREE_TEXT_SUBJECT: DEFAULT_FREE_TEXT_SUBJECT,
    HeaderPath.INVOICE_TAX_TYPE_CODE: "I-1602",
    HeaderPath.INVOICE_TAX_RATE: "19.00",
}

USER_INPUT_HINTS: dict[HeaderPath, str] = {
    HeaderPath.RECEIVER_IDENTIFIER: "Doit correspondre au Type d'Identifiant Destinataire.",
    HeaderPath.DOCUMENT_IDENTIFIER: "Numéro unique de la facture.",
    HeaderPath.DATE_FORMAT: "Format accepté: ddMMyy (250624).",
    HeaderPath.DATE_TEXT: "Date de la facture selon le format spécifié.",
    HeaderPath.RECEIVER_NAME: "Nom de l'entreprise ou personne recevant la facture.",
    HeaderPath.RECEIVER_STREET: "Partie de l'adresse (rue, avenue).",
    HeaderPath.RECEIVER_COUNTRY: "Code ISO 3166-1 alpha-2 (Ex: TN pour Tunisie).",
    HeaderPath.BANK_ACCOUNT_NUMBER: "IBAN ou numéro de compte de l'émetteur.",
    HeaderPath.INVOICE_TAX_RATE: "Taux de la taxe (Ex: 19.00 pour 19%). Format: NN.NN",
}

EXAMPLES: dict[HeaderPath, str] = {
    HeaderPath.RECEIVER_IDENTIFIER: "7890123456789",
    HeaderPath.RECEIVER_IDENTIFIER_TYPE: "I-01",
    HeaderPath.DOCUMENT_IDENTIFIER: "INV-2024-001",
    HeaderPath.RECEIVER_NAME: "Client Alpha S.A.",
    HeaderPath.RECEIVER_ADDRESS: "456 Rue Principale, Sfax",
    HeaderPath.RECEIVER_STREET: "Rue Principale",
    HeaderPath.RECEIVER_CITY: "Sfax",
    HeaderPath.RECEIVER_POSTAL_CODE: "3000",
    HeaderPath.RECEIVER_CONTACT_NAME: "Mme. Sarah Ben Ali",
    HeaderPath.RECEIVER_EMAIL: "client@alpha.com",
    HeaderPath.RECEIVER_PHONE: "+216 XX XXX XXX",
    HeaderPath.PAYMENT_TERMS_DESCRIPTION: "Net 30 jours",
    HeaderPath.BANK_ACCOUNT_NUMBER: "TN591000010000000012345678",
    HeaderPath.BANK_NAME: "Banque de Tunisie",
    HeaderPath.FREE_TEXT: "Merci de votre confiance.",
    HeaderPath.SELLER_CONTACT_NAME: "M. Jean Dupont",
    HeaderPath.TOTAL_HT: "300.00000",
    HeaderPath.TOTAL_TTC: "357.00000",
    HeaderPath.INVOICE_TAX_AMOUNT: "57.00000",
}

# Pre-filled rows copied from the sender record rather than TEIF constants
COMPANY_PATHS = frozenset({
    HeaderPath.SENDER_IDENTIFIER,
    HeaderPath.SENDER_IDENTIFIER_TYPE,
    HeaderPath.SELLER_NAME,
    HeaderPath.SELLER_ADDRESS,
    HeaderPath.SELLER_STREET,
    HeaderPath.SELLER_CITY,
    HeaderPath.SELLER_POSTAL_CODE,
    HeaderPath.SELLER_COUNTRY,
    HeaderPath.SELLER_CONTACT_NAME,
    HeaderPath.SELLER_EMAIL,
    HeaderPath.SELLER_PHONE,
})


def prefilled_values(company: SenderCompany, maps: LookupMaps) -> dict[HeaderPath, str]:
    """Values of every pre-filled header path for this sender."""
    document_type_code = USER_INPUT_DEFAULTS[HeaderPath.DOCUMENT_TYPE_CODE]
    tax_type_code = USER_INPUT_DEFAULTS[HeaderPath.INVOICE_TAX_TYPE_CODE]
    return {
        HeaderPath.TEIF_VERSION: TEIF_VERSION,
        HeaderPath.CONTROLLING_AGENCY: CONTROLLING_AGENCY,
        HeaderPath.SENDER_IDENTIFIER: company.tax_id,
        HeaderPath.SENDER_IDENTIFIER_TYPE: company.tax_id_type_code,
        HeaderPath.DOCUMENT_TYPE_NAME: maps.describe(LookupCategory.DOCUMENT_TYPE, document_type_code),
        HeaderPath.SELLER_FUNCTION_CODE: SELLER_FUNCTION_CODE,
        HeaderPath.SELLER_NAME: company.name,
        HeaderPath.SELLER_NAME_TYPE: PARTNER_NAME_TYPE,
        HeaderPath.SELLER_ADDRESS: company.address,
        HeaderPath.SELLER_STREET: company.street,
        HeaderPath.SELLER_CITY: company.city,
        HeaderPath.SELLER_POSTAL_CODE: company.postal_code,
        HeaderPath.SELLER_COUNTRY: company.country,
        HeaderPath.SELLER_CONTACT_NAME: company.contact_name or "",
        HeaderPath.SELLER_EMAIL: company.email or "",
        HeaderPath.SELLER_EMAIL_MEANS: EMAIL_MEANS_CODE,
        HeaderPath.SELLER_PHONE: company.phone or "",
        HeaderPath.SELLER_PHONE_MEANS: PHONE_MEANS_CODE,
        HeaderPath.RECEIVER_FUNCTION_CODE: BUYER_FUNCTION_CODE,
        HeaderPath.RECEIVER_NAME_TYPE: PARTNER_NAME_TYPE,
        HeaderPath.RECEIVER_EMAIL_MEANS: EMAIL_MEANS_CODE,
        HeaderPath.RECEIVER_PHONE_MEANS: PHONE_MEANS_CODE,
        HeaderPath.TOTAL_HT_CURRENCY: CURRENCY,
        HeaderPath.TOTAL_HT_CODE_LIST: CURRENCY_CODE_LIST,
        HeaderPath.TOTAL_HT_AMOUNT_TYPE: AMOUNT_TYPE_TOTAL_HT,
        HeaderPath.TOTAL_TTC_CURRENCY: CURRENCY,
        HeaderPath.TOTAL_TTC_CODE_LIST: CURRENCY_CODE_LIST,
        HeaderPath.TOTAL_TTC_AMOUNT_TYPE: AMOUNT_TYPE_TOTAL_TTC,
        HeaderPath.INVOICE_TAX_TYPE_NAME: maps.describe(LookupCategory.TAX_TYPE, tax_type_code),
        HeaderPath.INVOICE_TAX_CURRENCY: CURRENCY,
        HeaderPath.INVOICE_TAX_CODE_LIST: CURRENCY_CODE_LIST,
        HeaderPath.INVOICE_TAX_AMOUNT_TYPE: AMOUNT_TYPE_TOTAL_TAX,
    }


def user_input_notes(path: HeaderPath, maps: LookupMaps) -> str:
    """Guidance text derived from the field's rule and the reference data."""
    rule = HEADER_RULES[path]
    parts = ["Requis." if rule.required else "Optionnel."]
    if path in USER_INPUT_HINTS:
        parts.append(USER_INPUT_HINTS[path])
    if rule.lookup is not None:
        parts.append(f"Choisir parmi: {maps.guidance(rule.lookup)}.")
    elif rule.enum_values:
        parts.append(f"Valeurs permises: {', '.join(rule.enum_values)}.")
    if rule.max_length is not None:
        parts.append(f"(Max {rule.max_length} caractères)")
    return " ".join(parts)


def header_template_rows(
    company: SenderCompany, maps: LookupMaps, today: Optional[date] = None
) -> list[TemplateRow]:
    """One row per HeaderPath, in template order."""
    today = today or date.today()
    prefilled = prefilled_values(company, maps)
    rows = []

    for path in HeaderPath:
        classification = HEADER_FIELDS[path].classification

        if classification is FieldClassification.USER_INPUT:
            if path is HeaderPath.DATE_TEXT:
                value = today.strftime("%d%m%y")
            else:
                value = USER_INPUT_DEFAULTS.get(path, "")
            notes = user_input_notes(path, maps)
        elif classification is FieldClassification.CALCULATED:
            value = CALCULATED_PLACEHOLDER
            notes = "Ne pas modifier. Calculé à partir des lignes. Format: NNNN.NNNNN"
        else:
            value = prefilled[path]
            if path in COMPANY_PATHS:
                notes = "Pré-rempli depuis votre entreprise sélectionnée."
            else:
                notes = "Valeur statique, ne pas modifier."

        rows.append(TemplateRow(path=path, value=value, notes=notes, example=EXAMPLES.get(path, value)))

    return rows


# ============================================================================
# Line-Items Rows
# ============================================================================

EXAMPLE_LINE_ITEMS: list[dict[str, str]] = [
    {
        "identifier": "ARTICLE001",
        "code": "PROD-A",
        "description": "Services de consultation Logiciel",
        "quantity": "10.00",
        "unit": "H87",
        "unit_price_ht": "30.000",
        "tax_type_code": "I-1602",
        "tax_rate": "19.00",
    },
    {
        "identifier": "ARTICLE002",
        "code": "SERV-B",
        "description": "Maintenance annuelle",
        "quantity": "1.00",
        "unit": "C62",
        "unit_price_ht": "250.000",
        "tax_type_code": "I-1602",
        "tax_rate": "19.00",
    },
]


# ============================================================================
# Workbook Assembly
# ============================================================================

def _start_sheet(sheet: Worksheet, title: str, schema: ColumnSchema) -> None:
    """Title, instruction and spacer rows, column widths, then the styled table header row."""
    last_column = get_column_letter(schema.width)

    sheet.append([title])
    sheet["A1"].font = TITLE_FONT
    sheet.merge_cells(f"A1:{last_column}1")
    sheet.append([])
    sheet.append(["Copiez toutes les lignes de ce tableau pour l'importation."])
    sheet["A3"].font = INSTRUCTION_FONT
    sheet.merge_cells(f"A3:{last_column}3")
    sheet.append([])
    sheet.append([])

    for index, column in enumerate(schema.columns, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = column.width

    sheet.append(schema.display_names)
    for cell in sheet[sheet.max_row]:
        cell.font = HEADER_ROW_FONT
        cell.fill = HEADER_ROW_FILL
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _append_legend(sheet: Worksheet, classifications: list[FieldClassification]) -> None:
    sheet.append([])
    sheet.append([])
    sheet.append(["Légende des Couleurs:"])
    sheet.cell(row=sheet.max_row, column=1).font = LEGEND_TITLE_FONT

    for classification in classifications:
        sheet.append(["", LEGEND_LABELS[classification]])
        cell = sheet.cell(row=sheet.max_row, column=2)
        style_value_cell(cell, classification)
        cell.font = Font(bold=True, color=CLASSIFICATION_FONT_COLORS[classification])


def _wrap_data_cells(sheet: Worksheet, first_row: int, last_row: int) -> None:
    for row in sheet.iter_rows(min_row=first_row, max_row=last_row):
        for cell in row:
            cell.alignment = Alignment(wrap_text=True, vertical="top")


def build_header_sheet(
    sheet: Worksheet, company: SenderCompany, maps: LookupMaps, today: Optional[date] = None
) -> None:
    sheet.title = HEADER_SHEET_TITLE
    _start_sheet(sheet, "Instructions pour l'En-tête Facture", HEADER_FIELDS_SCHEMA)
    first_data_row = sheet.max_row + 1

    for template_row in header_template_rows(company, maps, today):
        sheet.append(template_row.as_cells())
        style_value_cell(sheet.cell(row=sheet.max_row, column=3), template_row.classification)

    _wrap_data_cells(sheet, first_data_row, sheet.max_row)
    _append_legend(sheet, list(FieldClassification))


def build_line_items_sheet(sheet: Worksheet) -> None:
    sheet.title = LINE_ITEMS_SHEET_TITLE
    _start_sheet(sheet, "Instructions pour les Lignes de Facture", LINE_ITEMS_SCHEMA)
    first_data_row = sheet.max_row + 1

    for example in EXAMPLE_LINE_ITEMS:
        sheet.append([
            example.get(column.key, CALCULATED_PLACEHOLDER) for column in LINE_ITEMS_SCHEMA.columns
        ])
        for index, column in enumerate(LINE_ITEMS_SCHEMA.columns, start=1):
            style_value_cell(sheet.cell(row=sheet.max_row, column=index), column.classification)

    _wrap_data_cells(sheet, first_data_row, sheet.max_row)
    _append_legend(sheet, [FieldClassification.USER_INPUT, FieldClassification.CALCULATED])


def build_template(
    company: SenderCompany, maps: LookupMaps, today: Optional[date] = None
) -> Workbook:
    """
    Build the two-sheet invoice template for a sender.

    Args:
        company: Sender record used for pre-filled rows
        maps: Reference data used for guidance text and code names
        today: Date used for the default invoice date (defaults to today)

    Returns:
        openpyxl Workbook with the header and line-items sheets
    """
    workbook = Workbook()
    build_header_sheet(workbook.active, company, maps, today)
    build_line_items_sheet(workbook.create_sheet())

    logger.info(f"Built invoice template for company {company.company_id}")
    return workbook


def render_template(
    company: SenderCompany, maps: LookupMaps, today: Optional[date] = None
) -> bytes:
    """Template workbook serialized as xlsx bytes."""
    buffer = BytesIO()
    build_template(company, maps, today).save(buffer)
    return buffer.getvalue()


def template_filename(today: Optional[date] = None) -> str:
    """Suggested download name, e.g. 'Facture_Template_250624.xlsx'."""
    today = today or date.today()
    return f"Facture_Template_{today.strftime('%d%m%y')}.xlsx"
