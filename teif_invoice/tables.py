"""
Table schemas shared by the template builder and the pasted-data parser.

The display names below are the literal header rows of the two template
sheets. The locator matches them byte-for-byte in pasted text, so any change
here changes the contract with every template already handed out.
"""

from dataclasses import dataclass
from enum import Enum


class FieldClassification(str, Enum):
    """How a template field is filled, and therefore how the pipeline treats it."""
    USER_INPUT = "user_input"  # supplied by the user, validated
    PRE_FILLED = "pre_filled"  # taken from the sender record or TEIF constants
    CALCULATED = "calculated"  # derived from line items, never read from input


@dataclass(frozen=True)
class Column:
    display_name: str
    key: str
    width: int
    classification: FieldClassification = FieldClassification.USER_INPUT


@dataclass(frozen=True)
class ColumnSchema:
    """Ordered column layout of one pasted/templated table."""
    name: str
    columns: tuple[Column, ...]

    def __post_init__(self) -> None:
        names = self.display_names
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate display names in {self.name} schema")

    @property
    def display_names(self) -> list[str]:
        return [column.display_name for column in self.columns]

    @property
    def width(self) -> int:
        return len(self.columns)

    def display_name(self, key: str) -> str:
        for column in self.columns:
            if column.key == key:
                return column.display_name
        raise KeyError(key)


# ============================================================================
# Column Schemas
# ============================================================================

HEADER_FIELDS_SCHEMA = ColumnSchema(
    name="Header-Fields",
    columns=(
        Column("Champ XML", "xml_path", 40),
        Column("Description", "description", 50),
        Column("Valeur", "value", 40),
        Column("Notes / Contraintes", "notes", 60),
        Column("Exemple", "example", 30),
    ),
)

LINE_ITEMS_SCHEMA = ColumnSchema(
    name="Line-Items",
    columns=(
        Column("ID Ligne (Article)", "identifier", 20),
        Column("Code Article", "code", 20),
        Column("Description Article", "description", 50),
        Column("Quantité", "quantity", 15),
        Column("Unité de Mesure (Ex: H87)", "unit", 25),
        Column("Prix Unitaire HT", "unit_price_ht", 20),
        Column("Code Type Taxe Ligne (Ex: I-1602)", "tax_type_code", 30),
        Column("Taux de Taxe Ligne (Ex: 19.00)", "tax_rate", 30),
        Column("Montant Net Ligne [CALCULÉ]", "net_amount", 30, FieldClassification.CALCULATED),
        Column("Montant Taxe Ligne [CALCULÉ]", "tax_amount", 30, FieldClassification.CALCULATED),
        Column("Montant TTC Ligne [CALCULÉ]", "gross_amount", 30, FieldClassification.CALCULATED),
    ),
)


# ============================================================================
# Header Field Registry
# ============================================================================

class HeaderPath(str, Enum):
    """XML paths appearing in the 'Champ XML' column, in template order."""

    TEIF_VERSION = "TEIF.@version"
    CONTROLLING_AGENCY = "TEIF.@controlingAgency"
    SENDER_IDENTIFIER = "InvoiceHeader.MessageSenderIdentifier"
    SENDER_IDENTIFIER_TYPE = "InvoiceHeader.MessageSenderIdentifier.@type"
    RECEIVER_IDENTIFIER = "InvoiceHeader.MessageRecieverIdentifier"
    RECEIVER_IDENTIFIER_TYPE = "InvoiceHeader.MessageRecieverIdentifier.@type"

    DOCUMENT_IDENTIFIER = "InvoiceBody.Bgm.DocumentIdentifier"
    DOCUMENT_TYPE_CODE = "InvoiceBody.Bgm.DocumentType.@code"
    DOCUMENT_TYPE_NAME = "InvoiceBody.Bgm.DocumentType"
    DATE_FUNCTION_CODE = "InvoiceBody.Dtm.DateText.functionCode"
    DATE_FORMAT = "InvoiceBody.Dtm.DateText.format"
    DATE_TEXT = "InvoiceBody.Dtm.DateText"

    SELLER_FUNCTION_CODE = "InvoiceBody.PartnerSection.PartnerDetails.0.functionCode"
    SELLER_NAME = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerName"
    SELLER_NAME_TYPE = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerName.@nameType"
    SELLER_ADDRESS = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerAdresses.0.AdressDescription"
    SELLER_STREET = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerAdresses.0.Street"
    SELLER_CITY = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerAdresses.0.CityName"
    SELLER_POSTAL_CODE = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerAdresses.0.PostalCode"
    SELLER_COUNTRY = "InvoiceBody.PartnerSection.PartnerDetails.0.Nad.PartnerAdresses.0.Country"
    SELLER_CONTACT_NAME = "InvoiceBody.PartnerSection.PartnerDetails.0.CtaSection.Contact.ContactName"
    SELLER_EMAIL = "InvoiceBody.PartnerSection.PartnerDetails.0.CtaSection.Communication.ComAdress"
    SELLER_EMAIL_MEANS = "InvoiceBody.PartnerSection.PartnerDetails.0.CtaSection.Communication.ComMeansType"
    SELLER_PHONE = "InvoiceBody.PartnerSection.PartnerDetails.0.CtaSection.Communication.1.ComAdress"
    SELLER_PHONE_MEANS = "InvoiceBody.PartnerSection.PartnerDetails.0.CtaSection.Communication.1.ComMeansType"

    RECEIVER_FUNCTION_CODE = "InvoiceBody.PartnerSection.PartnerDetails.1.functionCode"
    RECEIVER_NAME = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerName"
    RECEIVER_NAME_TYPE = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerName.@nameType"
    RECEIVER_ADDRESS = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerAdresses.0.AdressDescription"
    RECEIVER_STREET = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerAdresses.0.Street"
    RECEIVER_CITY = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerAdresses.0.CityName"
    RECEIVER_POSTAL_CODE = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerAdresses.0.PostalCode"
    RECEIVER_COUNTRY = "InvoiceBody.PartnerSection.PartnerDetails.1.Nad.PartnerAdresses.0.Country"
    RECEIVER_CONTACT_NAME = "InvoiceBody.PartnerSection.PartnerDetails.1.CtaSection.Contact.ContactName"
    RECEIVER_EMAIL = "InvoiceBody.PartnerSection.PartnerDetails.1.CtaSection.Communication.ComAdress"
    RECEIVER_EMAIL_MEANS = "InvoiceBody.PartnerSection.PartnerDetails.1.CtaSection.Communication.ComMeansType"
    RECEIVER_PHONE = "InvoiceBody.PartnerSection.PartnerDetails.1.CtaSection.Communication.1.ComAdress"
    RECEIVER_PHONE_MEANS = "InvoiceBody.PartnerSection.PartnerDetails.1.CtaSection.Communication.1.ComMeansType"

    PAYMENT_TERMS_CODE = "InvoiceBody.PytSection.PytSectionDetails.0.Pyt.PaymentTearmsTypeCode"
    PAYMENT_TERMS_DESCRIPTION = "InvoiceBody.PytSection.PytSectionDetails.0.Pyt.PaymentTearmsDescription"
    PAYMENT_MEANS_CODE = "InvoiceBody.PytSection.PytSectionDetails.0.PytPai.PaiMeansCode"
    BANK_ACCOUNT_NUMBER = "InvoiceBody.PytSection.PytSectionDetails.0.PytFii.AccountHolder.AccountNumber"
    BANK_NAME = "InvoiceBody.PytSection.PytSectionDetails.0.PytFii.InstitutionIdentification.InstitutionName"

    FREE_TEXT_SUBJECT = "InvoiceBody.Ftx.FreeTextDetail.0.subjectCode"
    FREE_TEXT = "InvoiceBody.Ftx.FreeTextDetail.0.FreeTexts"

    TOTAL_HT = "InvoiceBody.InvoiceMoa.AmountDetails.0.Moa.Amount"
    TOTAL_HT_CURRENCY = "InvoiceBody.InvoiceMoa.AmountDetails.0.Moa.Amount.@currencyIdentifier"
    TOTAL_HT_CODE_LIST = "InvoiceBody.InvoiceMoa.AmountDetails.0.Moa.@currencyCodeList"
    TOTAL_HT_AMOUNT_TYPE = "InvoiceBody.InvoiceMoa.AmountDetails.0.Moa.@amountTypeCode"
    TOTAL_TTC = "InvoiceBody.InvoiceMoa.AmountDetails.1.Moa.Amount"
    TOTAL_TTC_CURRENCY = "InvoiceBody.InvoiceMoa.AmountDetails.1.Moa.Amount.@currencyIdentifier"
    TOTAL_TTC_CODE_LIST = "InvoiceBody.InvoiceMoa.AmountDetails.1.Moa.@currencyCodeList"
    TOTAL_TTC_AMOUNT_TYPE = "InvoiceBody.InvoiceMoa.AmountDetails.1.Moa.@amountTypeCode"

    INVOICE_TAX_TYPE_CODE = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.Tax.TaxTypeName.@code"
    INVOICE_TAX_TYPE_NAME = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.Tax.TaxTypeName"
    INVOICE_TAX_RATE = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.Tax.TaxDetails.TaxRate"
    INVOICE_TAX_AMOUNT = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.AmountDetails.0.Moa.Amount"
    INVOICE_TAX_CURRENCY = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.AmountDetails.0.Moa.Amount.@currencyIdentifier"
    INVOICE_TAX_CODE_LIST = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.AmountDetails.0.Moa.@currencyCodeList"
    INVOICE_TAX_AMOUNT_TYPE = "InvoiceBody.InvoiceTax.InvoiceTaxDetails.0.AmountDetails.0.Moa.@amountTypeCode"

    @classmethod
    def parse(cls, xml_path: str) -> "HeaderPath | None":
        """Return the member for a pasted path, or None for informational rows."""
        try:
            return cls(xml_path.strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class HeaderField:
    description: str
    classification: FieldClassification


_USER = FieldClassification.USER_INPUT
_PRE = FieldClassification.PRE_FILLED
_CALC = FieldClassification.CALCULATED

HEADER_FIELDS: dict[HeaderPath, HeaderField] = {
    HeaderPath.TEIF_VERSION: HeaderField("Version de la Facture", _PRE),
    HeaderPath.CONTROLLING_AGENCY: HeaderField("Agence de Contrôle", _PRE),
    HeaderPath.SENDER_IDENTIFIER: HeaderField("Identifiant de l'Expéditeur (Matricule Fiscal)", _PRE),
    HeaderPath.SENDER_IDENTIFIER_TYPE: HeaderField("Type d'Identifiant Expéditeur", _PRE),
    HeaderPath.RECEIVER_IDENTIFIER: HeaderField("Identifiant du Destinataire (Matricule Fiscal/CIN)", _USER),
    HeaderPath.RECEIVER_IDENTIFIER_TYPE: HeaderField("Type d'Identifiant Destinataire", _USER),

    HeaderPath.DOCUMENT_IDENTIFIER: HeaderField("Numéro de Facture", _USER),
    HeaderPath.DOCUMENT_TYPE_CODE: HeaderField("Code Type de Document Facture", _USER),
    HeaderPath.DOCUMENT_TYPE_NAME: HeaderField("Nom Type de Document Facture", _PRE),
    HeaderPath.DATE_FUNCTION_CODE: HeaderField("Code Fonction Date Facture", _USER),
    HeaderPath.DATE_FORMAT: HeaderField("Format Date Facture", _USER),
    HeaderPath.DATE_TEXT: HeaderField("Date Facture", _USER),

    HeaderPath.SELLER_FUNCTION_CODE: HeaderField("Code Fonction Partenaire (Émetteur)", _PRE),
    HeaderPath.SELLER_NAME: HeaderField("Nom de l'Émetteur", _PRE),
    HeaderPath.SELLER_NAME_TYPE: HeaderField("Type Nom Émetteur", _PRE),
    HeaderPath.SELLER_ADDRESS: HeaderField("Adresse Complète Émetteur", _PRE),
    HeaderPath.SELLER_STREET: HeaderField("Rue Émetteur", _PRE),
    HeaderPath.SELLER_CITY: HeaderField("Ville Émetteur", _PRE),
    HeaderPath.SELLER_POSTAL_CODE: HeaderField("Code Postal Émetteur", _PRE),
    HeaderPath.SELLER_COUNTRY: HeaderField("Pays Émetteur", _PRE),
    HeaderPath.SELLER_CONTACT_NAME: HeaderField("Nom Contact Émetteur (si applicable)", _PRE),
    HeaderPath.SELLER_EMAIL: HeaderField("Email Émetteur", _PRE),
    HeaderPath.SELLER_EMAIL_MEANS: HeaderField("Type Communication Email Émetteur", _PRE),
    HeaderPath.SELLER_PHONE: HeaderField("Téléphone Émetteur", _PRE),
    HeaderPath.SELLER_PHONE_MEANS: HeaderField("Type Communication Téléphone Émetteur", _PRE),

    HeaderPath.RECEIVER_FUNCTION_CODE: HeaderField("Code Fonction Partenaire (Récepteur)", _PRE),
    HeaderPath.RECEIVER_NAME: HeaderField("Nom du Récepteur", _USER),
    HeaderPath.RECEIVER_NAME_TYPE: HeaderField("Type Nom Récepteur", _PRE),
    HeaderPath.RECEIVER_ADDRESS: HeaderField("Adresse Complète Récepteur", _USER),
    HeaderPath.RECEIVER_STREET: HeaderField("Rue Récepteur", _USER),
    HeaderPath.RECEIVER_CITY: HeaderField("Ville Récepteur", _USER),
    HeaderPath.RECEIVER_POSTAL_CODE: HeaderField("Code Postal Récepteur", _USER),
    HeaderPath.RECEIVER_COUNTRY: HeaderField("Pays Récepteur", _USER),
    HeaderPath.RECEIVER_CONTACT_NAME: HeaderField("Nom Contact Récepteur (si applicable)", _USER),
    HeaderPath.RECEIVER_EMAIL: HeaderField("Email Récepteur", _USER),
    HeaderPath.RECEIVER_EMAIL_MEANS: HeaderField("Type Communication Email Récepteur", _PRE),
    HeaderPath.RECEIVER_PHONE: HeaderField("Téléphone Récepteur", _USER),
    HeaderPath.RECEIVER_PHONE_MEANS: HeaderField("Type Communication Téléphone Récepteur", _PRE),

    HeaderPath.PAYMENT_TERMS_CODE: HeaderField("Code Type Conditions de Paiement", _USER),
    HeaderPath.PAYMENT_TERMS_DESCRIPTION: HeaderField("Description Conditions de Paiement", _USER),
    HeaderPath.PAYMENT_MEANS_CODE: HeaderField("Code Moyen de Paiement", _USER),
    HeaderPath.BANK_ACCOUNT_NUMBER: HeaderField("Numéro de Compte Bancaire", _USER),
    HeaderPath.BANK_NAME: HeaderField("Nom de la Banque", _USER),

    HeaderPath.FREE_TEXT_SUBJECT: HeaderField("Code Sujet Texte Libre", _USER),
    HeaderPath.FREE_TEXT: HeaderField("Texte Libre", _USER),

    HeaderPath.TOTAL_HT: HeaderField("Montant Total HT", _CALC),
    HeaderPath.TOTAL_HT_CURRENCY: HeaderField("Devise", _PRE),
    HeaderPath.TOTAL_HT_CODE_LIST: HeaderField("Liste Code Devise", _PRE),
    HeaderPath.TOTAL_HT_AMOUNT_TYPE: HeaderField("Code Type Montant (Total HT)", _PRE),
    HeaderPath.TOTAL_TTC: HeaderField("Montant Total TTC", _CALC),
    HeaderPath.TOTAL_TTC_CURRENCY: HeaderField("Devise", _PRE),
    HeaderPath.TOTAL_TTC_CODE_LIST: HeaderField("Liste Code Devise", _PRE),
    HeaderPath.TOTAL_TTC_AMOUNT_TYPE: HeaderField("Code Type Montant (Total TTC)", _PRE),

    HeaderPath.INVOICE_TAX_TYPE_CODE: HeaderField("Code Type Taxe (Niveau Facture)", _USER),
    HeaderPath.INVOICE_TAX_TYPE_NAME: HeaderField("Nom Type Taxe (Niveau Facture)", _PRE),
    HeaderPath.INVOICE_TAX_RATE: HeaderField("Taux de Taxe (Niveau Facture)", _USER),
    HeaderPath.INVOICE_TAX_AMOUNT: HeaderField("Montant Total Taxe (Niveau Facture)", _CALC),
    HeaderPath.INVOICE_TAX_CURRENCY: HeaderField("Devise", _PRE),
    HeaderPath.INVOICE_TAX_CODE_LIST: HeaderField("Liste Code Devise", _PRE),
    HeaderPath.INVOICE_TAX_AMOUNT_TYPE: HeaderField("Code Type Montant Taxe (Niveau Facture)", _PRE),
}

_unregistered = set(HeaderPath) - set(HEADER_FIELDS)
if _unregistered:
    raise RuntimeError(f"Header paths without a registry entry: {sorted(_unregistered)}")


def header_paths_by_classification(classification: FieldClassification) -> list[HeaderPath]:
    """All header paths with the given classification, in template order."""
    return [path for path, field in HEADER_FIELDS.items() if field.classification is classification]
