"""
Tests for invoice assembly and calculation.
"""

from decimal import Decimal

import pytest
from conftest import FIRST_LINE, SECOND_LINE

from teif_invoice.assembler import (
    LINE_AMOUNT_TOO_WIDE_MESSAGE,
    MISSING_INVOICE_TAX_ERROR,
    NO_VALID_LINES_ERROR,
    TOTALS_TOO_WIDE_ERROR,
    amount_fits,
    assemble_invoice,
    compute_line_amounts,
    format_amount,
    format_rate,
)
from teif_invoice.extractor import parse_table
from teif_invoice.schemas import HeaderFieldEntry
from teif_invoice.tables import LINE_ITEMS_SCHEMA, HeaderPath


def entries(values: dict[HeaderPath, str]) -> list[HeaderFieldEntry]:
    return [HeaderFieldEntry(xml_path=path.value, value=value) for path, value in values.items()]


def rows(*lines: list[str]) -> list[dict[str, str]]:
    return parse_table(["\t".join(line) for line in lines], LINE_ITEMS_SCHEMA)


# ============================================================================
# Calculation
# ============================================================================

class TestCalculation:
    """Tests for line amounts and formatting."""

    def test_line_amounts(self):
        net, tax, gross = compute_line_amounts(Decimal("10"), Decimal("30.000"), Decimal("19.00"))
        assert net == Decimal("300")
        assert tax == Decimal("57")
        assert gross == Decimal("357")

    def test_half_up_rounding(self):
        net, tax, _ = compute_line_amounts(Decimal("1"), Decimal("0.00005"), Decimal("50"))
        assert format_amount(net) == "0.00005"
        assert format_amount(tax) == "0.00003"

    def test_format_amount(self):
        assert format_amount(Decimal("300")) == "300.00000"
        assert format_amount(Decimal("0.123456")) == "0.12346"

    def test_format_rate(self):
        assert format_rate(Decimal("19")) == "19.00"
        assert format_rate(Decimal("7.5")) == "7.50"


# ============================================================================
# Successful Assembly
# ============================================================================

class TestAssembleValidInvoice:
    """Tests for a fully valid invoice."""

    def test_single_line(self, valid_header_values, company, maps):
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is True
        assert result.errors == []
        assert result.line_count == 1

        item = result.line_items[0]
        assert item.net_amount == Decimal("300")
        assert item.tax_amount == Decimal("57")
        assert item.gross_amount == Decimal("357")

        line = result.document.find("InvoiceBody/LinSection/Lin")
        amounts = [moa.find("Moa/Amount").text for moa in line.find("LinMoa").children_named("MoaDetails")]
        assert amounts == ["300.00000", "357.00000"]

    def test_two_lines_totals(self, valid_header_values, company, maps):
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE, SECOND_LINE), company, maps)
        assert result.success is True
        assert result.line_count == 2
        assert result.totals.total_ht == Decimal("600")
        assert result.totals.total_tax == Decimal("114")
        assert result.totals.total_ttc == Decimal("714")

        invoice_amounts = [
            details.find("Moa").attrs["amountTypeCode"] + "=" + details.find("Moa/Amount").text
            for details in result.document.find("InvoiceBody/InvoiceMoa").children_named("AmountDetails")
        ]
        assert invoice_amounts == ["I-171=600.00000", "I-172=714.00000"]

    def test_root_and_header(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        assert document.name == "TEIF"
        assert document.attrs == {"version": "1.8.8", "controlingAgency": "TTN"}

        sender = document.find("InvoiceHeader/MessageSenderIdentifier")
        assert sender.text == "0000000M000"
        assert sender.attrs == {"type": "I-01"}
        receiver = document.find("InvoiceHeader/MessageRecieverIdentifier")
        assert receiver.text == "1234567A001"

    def test_body_order(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        body = document.find("InvoiceBody")
        assert [child.name for child in body.children] == [
            "Bgm", "Dtm", "PartnerSection", "PytSection", "LinSection", "InvoiceMoa", "InvoiceTax",
        ]

    def test_document_type_and_date(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        document_type = document.find("InvoiceBody/Bgm/DocumentType")
        assert document_type.text == "Facture"
        assert document_type.attrs == {"code": "I-11"}
        date_text = document.find("InvoiceBody/Dtm/DateText")
        assert date_text.text == "250624"
        assert date_text.attrs == {"functionCode": "I-31", "format": "ddMMyy"}

    def test_seller_from_company(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        seller, buyer = document.find("InvoiceBody/PartnerSection").children_named("PartnerDetails")
        assert seller.attrs == {"functionCode": "I-61"}
        assert buyer.attrs == {"functionCode": "I-62"}
        assert seller.find("Nad/PartnerName").text == "Société Exemple SARL"
        assert seller.find("Nad/PartnerAdresses/Street").text == "12 Avenue Habib Bourguiba"
        assert seller.find("Nad/PartnerAdresses/Country").text == "TN"

        communications = {
            node.find("ComMeansType").text: node.find("ComAdress").text
            for node in seller.find("CtaSection").children_named("Communication")
        }
        assert communications == {"I-102": "contact@exemple.tn", "I-101": "+216 71 000 000"}

    def test_line_details(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        line = document.find("InvoiceBody/LinSection/Lin")
        assert line.find("ItemIdentifier").text == "ARTICLE001"
        assert line.find("LinImd").attrs == {"lang": "fr"}
        quantity = line.find("LinQty/Quantity")
        assert quantity.text == "10.00000"
        assert quantity.attrs == {"measurementUnit": "H87"}
        tax_name = line.find("LinTax/TaxTypeName")
        assert tax_name.text == "TVA"
        assert tax_name.attrs == {"code": "I-1602"}
        assert line.find("LinTax/TaxDetails/TaxRate").text == "19.00"

    def test_invoice_tax(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        details = document.find("InvoiceBody/InvoiceTax/InvoiceTaxDetails")
        assert details.find("Tax/TaxTypeName").attrs == {"code": "I-1602"}
        assert details.find("Tax/TaxDetails/TaxRate").text == "19.00"
        moa = details.find("AmountDetails/Moa")
        assert moa.attrs["amountTypeCode"] == "I-173"
        assert moa.find("Amount").text == "57.00000"
        assert moa.find("Amount").attrs == {"currencyIdentifier": "TND"}

    def test_free_text_omitted_when_empty(self, valid_header_values, company, maps):
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        assert document.find("InvoiceBody/Ftx") is None

    def test_free_text_present(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.FREE_TEXT] = "Merci de votre confiance."
        document = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).document
        detail = document.find("InvoiceBody/Ftx/FreeTextDetail")
        assert detail.attrs == {"subjectCode": "I-41"}
        assert detail.find("FreeTexts").text == "Merci de votre confiance."

    def test_prefilled_and_unknown_paths_ignored(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.TEIF_VERSION] = "9.9.9"
        valid_header_values[HeaderPath.SELLER_NAME] = "Autre Société"
        header = entries(valid_header_values) + [HeaderFieldEntry(xml_path="Note libre", value="x")]
        result = assemble_invoice(header, rows(FIRST_LINE), company, maps)
        assert result.success is True
        assert result.document.attrs["version"] == "1.8.8"
        assert result.document.find(
            "InvoiceBody/PartnerSection/PartnerDetails/Nad/PartnerName"
        ).text == "Société Exemple SARL"


# ============================================================================
# Failing Assembly
# ============================================================================

class TestAssembleErrors:
    """Tests for accumulated validation errors."""

    def test_zero_lines(self, valid_header_values, company, maps):
        result = assemble_invoice(entries(valid_header_values), [], company, maps)
        assert result.success is False
        assert result.errors == [NO_VALID_LINES_ERROR]
        assert result.totals is None
        assert result.document.find("InvoiceBody/InvoiceMoa") is None
        assert result.document.find("InvoiceBody/InvoiceTax") is None

    def test_invalid_line_reported_and_excluded(self, valid_header_values, company, maps):
        bad_line = ["ARTICLE002", "SERV-B", "Maintenance", "abc", "C62", "300.000", "I-9999", "19.00"]
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE, bad_line), company, maps)
        assert result.success is False
        assert result.line_count == 1
        assert result.row_count == 2
        assert len(result.errors) == 2
        assert all(error.startswith("Ligne 2: ") for error in result.errors)
        assert result.totals is None

    def test_missing_invoice_tax(self, valid_header_values, company, maps):
        del valid_header_values[HeaderPath.INVOICE_TAX_TYPE_CODE]
        del valid_header_values[HeaderPath.INVOICE_TAX_RATE]
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is False
        assert result.errors == [MISSING_INVOICE_TAX_ERROR]

    @pytest.mark.parametrize("identifier", ["123456", "ABCDEFGHIJK"])
    def test_receiver_identifier_format(self, valid_header_values, company, maps, identifier):
        valid_header_values[HeaderPath.RECEIVER_IDENTIFIER] = identifier
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is False
        assert len(result.errors) == 1
        assert "Matricule Fiscal Tunisien" in result.errors[0]

    def test_receiver_identifier_type_mismatch(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.RECEIVER_IDENTIFIER_TYPE] = "I-02"
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is False
        assert "CIN" in result.errors[0]

    def test_invalid_date(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.DATE_TEXT] = "300225"
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is False
        assert "Date Facture: Date '300225' invalide (ex: 31 février)." in result.errors
        assert result.document.find("InvoiceBody/Dtm") is None

    def test_leap_day_date_passes(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.DATE_TEXT] = "280225"
        assert assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps).success is True

    def test_missing_receiver_group(self, valid_header_values, company, maps):
        del valid_header_values[HeaderPath.RECEIVER_NAME]
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is False
        assert result.errors == ["Le nom, l'adresse, la ville et le pays du récepteur sont requis."]
        assert len(result.document.find("InvoiceBody/PartnerSection").children_named("PartnerDetails")) == 1

    def test_empty_required_value_reports_field_and_group(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.DOCUMENT_IDENTIFIER] = ""
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.errors == [
            "Numéro de Facture: Ce champ est requis.",
            "Le numéro de facture est requis.",
        ]

    def test_unknown_code(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.PAYMENT_MEANS_CODE] = "I-999"
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE), company, maps)
        assert result.success is False
        assert result.errors[0].startswith("Code Moyen de Paiement: La valeur 'I-999' est invalide.")

    def test_errors_accumulate_across_header_and_lines(self, valid_header_values, company, maps):
        valid_header_values[HeaderPath.RECEIVER_COUNTRY] = "XX"
        bad_line = ["ARTICLE002", "SERV-B", "Maintenance", "1", "C62", "1,5", "I-1602", "19"]
        result = assemble_invoice(entries(valid_header_values), rows(bad_line), company, maps)
        assert result.success is False
        assert any(error.startswith("Pays Récepteur:") for error in result.errors)
        assert any(error.startswith("Ligne 1: Prix Unitaire HT:") for error in result.errors)
        assert NO_VALID_LINES_ERROR not in result.errors


class TestAmountWidth:
    """Tests for amounts wider than a pasted amount may be."""

    def test_amount_fits(self):
        assert amount_fits(Decimal("999999999999999.99999")) is True
        assert amount_fits(Decimal("-999999999999999.99999")) is True
        assert amount_fits(Decimal("1000000000000000")) is False

    def test_large_operands_do_not_overflow(self):
        net, tax, gross = compute_line_amounts(
            Decimal("999999999999999"), Decimal("999999999999999"), Decimal("19.00")
        )
        assert net == Decimal("999999999999998000000000000001")
        assert tax == Decimal("189999999999999620000000000000.19")
        assert gross == Decimal("1189999999999997620000000000001.19")

    def test_wide_net_amount_rejected(self, valid_header_values, company, maps):
        wide_line = ["ARTICLE003", "SERV-C", "Hors limites", "999999999999999", "C62", "999999999999999", "I-1602", "19.00"]
        result = assemble_invoice(entries(valid_header_values), rows(FIRST_LINE, wide_line), company, maps)
        assert result.success is False
        assert result.errors == [f"Ligne 2: {LINE_AMOUNT_TOO_WIDE_MESSAGE}"]
        assert result.line_count == 1
        assert result.totals is None

    def test_wide_gross_amount_rejected(self, valid_header_values, company, maps):
        wide_line = ["ARTICLE003", "SERV-C", "Infrastructure", "1", "C62", "900000000000000", "I-1602", "19.00"]
        result = assemble_invoice(entries(valid_header_values), rows(wide_line), company, maps)
        assert result.errors == [f"Ligne 1: {LINE_AMOUNT_TOO_WIDE_MESSAGE}"]
        assert result.line_count == 0

    def test_wide_invoice_total_rejected(self, valid_header_values, company, maps):
        line = ["ARTICLE003", "SERV-C", "Infrastructure", "1", "C62", "600000000000000", "I-1602", "0.00"]
        second_line = ["ARTICLE004"] + line[1:]
        result = assemble_invoice(entries(valid_header_values), rows(line, second_line), company, maps)
        assert result.success is False
        assert result.line_count == 2
        assert result.errors == [TOTALS_TOO_WIDE_ERROR]
        assert result.totals is None
        assert result.document.find("InvoiceBody/InvoiceMoa") is None
