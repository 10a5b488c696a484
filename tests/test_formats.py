"""
Unit tests for the e-invoice XML generators and the structural validator.
"""
import dataclasses
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from lxml import etree

from compliance import countries
from compliance.documents.builders import ensure_totals
from compliance.formats import FormatConfig, generate, get_generator, supported_formats, syntax_for
from compliance.formats import cii, fatturapa, ksef, ubl
from compliance.formats.validation import detect_syntax, validate_xml
from compliance.model import DocumentData, LineItem, PartyData


def _parse(result):
    assert result.success, result.error
    return etree.fromstring(result.xml.encode("utf-8"))


def _text(root, path, ns):
    found = root.find(path, ns)
    assert found is not None, path
    return found.text


@pytest.fixture
def fr_invoice(invoice):
    return ensure_totals(invoice, countries.get("FR"))


@pytest.fixture
def it_invoice():
    supplier = PartyData(
        name="Rossi Forniture Srl", address="Via Roma 1", postal_code="20121", city="Milano",
        country="IT", province="MI", vat_number="IT01234567890",
        identifiers={"codiceFiscale": "01234567890", "iban": "IT60X0542811101000000123456"},
        email="amministrazione@rossi.it",
    )
    customer = PartyData(
        name="Bianchi SpA", address="Corso Italia 10", postal_code="00184", city="Roma",
        country="IT", vat_number="IT09876543210", identifiers={"codiceDestinatario": "ABC1234"},
    )
    data = DocumentData(
        document_type="invoice", id="it-1", number="2026/0001", issue_date=date(2026, 3, 1),
        due_date=date(2026, 3, 31), supplier=supplier, customer=customer,
        items=[LineItem(description="Scaffali", quantity=4, unit_price="125.50", vat_rate=22,
                        item_type="PRODUCT")],
        payment_method="BANK_TRANSFER",
    )
    return ensure_totals(data, countries.get("IT"))


@pytest.fixture
def pl_invoice():
    supplier = PartyData(name="Kowalski Sp. z o.o.", address="ul. Marszałkowska 1",
                         postal_code="00-001", city="Warszawa", country="PL",
                         identifiers={"nip": "1234563218"})
    customer = PartyData(name="Nowak S.A.", address="ul. Długa 5", postal_code="80-001",
                         city="Gdańsk", country="PL", vat_number="PL5260250274")
    data = DocumentData(
        document_type="invoice", id="pl-1", number="FV/2026/03/001", issue_date=date(2026, 3, 2),
        supplier=supplier, customer=customer, currency="PLN",
        items=[LineItem(description="Usługa wdrożeniowa", quantity=1, unit_price=1000, vat_rate=23)],
    )
    return ensure_totals(data, countries.get("PL"))


GENERATED_AT = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


class TestRegistry:
    """Format lookup"""

    def test_supported_formats(self):
        """Test that every XML format has a generator"""
        assert set(supported_formats()) == {
            "facturx", "zugferd", "cii", "ubl", "xrechnung", "peppol-bis", "fatturapa", "ksef", "ksef-fa3",
        }

    def test_pdf_has_no_generator(self):
        assert get_generator("pdf") is None
        assert syntax_for("pdf") is None

    def test_syntax_for(self):
        assert syntax_for("facturx") == "cii"
        assert syntax_for("xrechnung") == "ubl"
        assert syntax_for("ksef-fa3") == "FA3"

    def test_unsupported_format_is_a_failed_result(self, fr_invoice):
        """Test that an unknown format never raises"""
        result = generate(fr_invoice, "edifact")

        assert not result.success
        assert result.xml is None
        assert "Unsupported format" in result.error

    def test_missing_totals_is_a_failed_result(self, invoice):
        """Test that generators refuse data without VAT totals"""
        result = generate(invoice, "cii")

        assert not result.success
        assert result.syntax == "cii"


class TestCII:
    """Factur-X / ZUGFeRD CII"""

    NS = cii.NS

    def test_header_and_totals(self, fr_invoice):
        """Test guideline, number, type code and monetary summation"""
        root = _parse(generate(fr_invoice, "facturx", FormatConfig(profile="EN16931")))

        assert root.tag == f"{{{self.NS['rsm']}}}CrossIndustryInvoice"
        assert _text(root, ".//rsm:ExchangedDocumentContext//ram:ID", self.NS) == "urn:cen.eu:en16931:2017"
        assert _text(root, "rsm:ExchangedDocument/ram:ID", self.NS) == "FA2026-000001"
        assert _text(root, "rsm:ExchangedDocument/ram:TypeCode", self.NS) == "380"
        assert _text(root, ".//ram:GrandTotalAmount", self.NS) == "1200.00"
        assert _text(root, ".//ram:TaxBasisTotalAmount", self.NS) == "1000.00"
        assert len(root.findall(".//ram:IncludedSupplyChainTradeLineItem", self.NS)) == 2

    def test_issue_date_format_102(self, fr_invoice):
        root = _parse(generate(fr_invoice, "cii"))
        date_el = root.find("rsm:ExchangedDocument/ram:IssueDateTime/udt:DateTimeString", self.NS)

        assert date_el.text == "20260315"
        assert date_el.get("format") == "102"

    def test_minimum_profile_has_no_lines(self, fr_invoice):
        """Test that line items are omitted below BASIC"""
        root = _parse(generate(fr_invoice, "facturx", FormatConfig(profile="minimum")))
        assert root.findall(".//ram:IncludedSupplyChainTradeLineItem", self.NS) == []

    def test_unknown_profile_fails(self, fr_invoice):
        result = generate(fr_invoice, "facturx", FormatConfig(profile="platinum"))

        assert not result.success
        assert "Unknown CII profile" in result.error

    def test_reverse_charge(self, invoice, de_customer):
        """Test category AE and the exemption reason"""
        data = ensure_totals(dataclasses.replace(invoice, customer=de_customer), countries.get("FR"))
        root = _parse(generate(data, "cii"))
        header_tax = root.find(".//ram:ApplicableHeaderTradeSettlement/ram:ApplicableTradeTax", self.NS)

        assert header_tax.find("ram:CategoryCode", self.NS).text == "AE"
        assert header_tax.find("ram:ExemptionReasonCode", self.NS).text == "VATEX-EU-AE"
        assert _text(root, ".//ram:GrandTotalAmount", self.NS) == "1000.00"

    def test_credit_note_references_original(self, fr_invoice):
        data = dataclasses.replace(fr_invoice, document_type="credit-note", number="AV2026-000001",
                                   original_invoice_number="FA2026-000001")
        root = _parse(generate(data, "cii"))

        assert _text(root, "rsm:ExchangedDocument/ram:TypeCode", self.NS) == "381"
        assert _text(root, ".//ram:InvoiceReferencedDocument/ram:IssuerAssignedID", self.NS) == "FA2026-000001"

    def test_markup_is_escaped(self, fr_invoice):
        """Test that XML special characters survive a round trip"""
        name = 'Dupont & Fils <SARL> "Le Bon" l\'Atelier'
        supplier = dataclasses.replace(fr_invoice.supplier, name=name)
        result = generate(dataclasses.replace(fr_invoice, supplier=supplier), "cii")
        root = _parse(result)

        assert "&amp;" in result.xml
        assert "&lt;SARL&gt;" in result.xml
        assert _text(root, ".//ram:SellerTradeParty/ram:Name", self.NS) == name

    def test_control_characters_are_dropped(self, fr_invoice):
        data = dataclasses.replace(fr_invoice, notes="Bonjour\x0b\x00 monde")
        root = _parse(generate(data, "cii"))
        assert _text(root, ".//ram:IncludedNote/ram:Content", self.NS) == "Bonjour monde"


class TestUBL:
    """UBL 2.1, XRechnung and Peppol BIS"""

    NS = {"inv": ubl.NS["inv"], "cn": ubl.NS["cn"], "cbc": ubl.NS["cbc"], "cac": ubl.NS["cac"]}

    def test_invoice(self, fr_invoice):
        root = _parse(generate(fr_invoice, "ubl"))

        assert root.tag == f"{{{self.NS['inv']}}}Invoice"
        assert _text(root, "cbc:ID", self.NS) == "FA2026-000001"
        assert _text(root, "cbc:IssueDate", self.NS) == "2026-03-15"
        assert _text(root, "cbc:InvoiceTypeCode", self.NS) == "380"
        assert _text(root, ".//cac:LegalMonetaryTotal/cbc:PayableAmount", self.NS) == "1200.00"

    def test_credit_note_root(self, fr_invoice):
        data = dataclasses.replace(fr_invoice, document_type="credit-note", original_invoice_ref="FA2026-000001")
        root = _parse(generate(data, "ubl"))

        assert root.tag == f"{{{self.NS['cn']}}}CreditNote"
        assert _text(root, "cbc:CreditNoteTypeCode", self.NS) == "381"

    def test_xrechnung_requires_buyer_reference(self, fr_invoice):
        """Test that a Leitweg-ID is mandatory"""
        result = generate(fr_invoice, "xrechnung")

        assert not result.success
        assert "buyer reference" in result.error

    def test_xrechnung_with_buyer_reference(self, fr_invoice):
        root = _parse(generate(fr_invoice, "xrechnung", FormatConfig(buyer_reference="04011000-12345-34")))

        assert _text(root, "cbc:BuyerReference", self.NS) == "04011000-12345-34"
        assert _text(root, "cbc:ProfileID", self.NS)


class TestFatturaPA:
    """FatturaElettronica 1.2.2"""

    NS = {"p": fatturapa.NS_FATTURA}

    def test_private_customer(self, it_invoice):
        root = _parse(generate(it_invoice, "fatturapa", FormatConfig(sequence_id="00001")))

        assert root.get("versione") == "FPR12"
        assert root.find(".//ProgressivoInvio").text == "00001"
        assert root.find(".//CodiceDestinatario").text == "ABC1234"
        assert root.find(".//CedentePrestatore//IdCodice").text == "01234567890"
        assert root.find(".//Numero").text == "2026/0001"
        assert root.find(".//ImportoTotaleDocumento").text == "612.44"

    def test_requires_sequence_id(self, it_invoice):
        result = generate(it_invoice, "fatturapa")

        assert not result.success
        assert "ProgressivoInvio" in result.error

    @pytest.mark.parametrize("sequence_id", ["00000000001", "AB-12", "0001 ", "àbc"])
    def test_sequence_id_must_be_short_alphanumeric(self, it_invoice, sequence_id):
        """Test that ProgressivoInvio outside 1-10 letters or digits is refused"""
        result = generate(it_invoice, "fatturapa", FormatConfig(sequence_id=sequence_id))

        assert not result.success
        assert "ProgressivoInvio" in result.error

    def test_sequence_id_alphanumeric(self, it_invoice):
        root = _parse(generate(it_invoice, "fatturapa", FormatConfig(sequence_id="Ab12C34d5E")))
        assert root.find(".//ProgressivoInvio").text == "Ab12C34d5E"

    def test_credit_note_links_original_date(self, it_invoice):
        data = dataclasses.replace(it_invoice, document_type="credit-note", original_invoice_number="2026/0001",
                                   original_invoice_date=date(2026, 3, 1))
        root = _parse(generate(data, "fatturapa", FormatConfig(sequence_id="00011")))

        assert root.find(".//DatiFattureCollegate/IdDocumento").text == "2026/0001"
        assert root.find(".//DatiFattureCollegate/Data").text == "2026-03-01"

    def test_public_customer_needs_office_code(self, it_invoice):
        """Test that FPA12 documents require a codice ufficio"""
        customer = dataclasses.replace(it_invoice.customer, is_public_entity=True, identifiers={})
        result = generate(dataclasses.replace(it_invoice, customer=customer), "fatturapa",
                          FormatConfig(sequence_id="00002"))

        assert not result.success
        assert "codice ufficio" in result.error

    def test_public_customer_with_office_code(self, it_invoice):
        customer = dataclasses.replace(it_invoice.customer, is_public_entity=True, routing_code="UFXYZ1")
        root = _parse(generate(dataclasses.replace(it_invoice, customer=customer), "fatturapa",
                               FormatConfig(sequence_id="00003")))

        assert root.get("versione") == "FPA12"
        assert root.find(".//CodiceDestinatario").text == "UFXYZ1"

    def test_foreign_customer_placeholder(self, it_invoice, us_customer):
        """Test that a customer without VAT abroad gets a placeholder id"""
        data = dataclasses.replace(it_invoice, customer=us_customer)
        root = _parse(generate(data, "fatturapa", FormatConfig(sequence_id="00004")))

        assert root.find(".//CessionarioCommittente//IdPaese").text == "US"
        assert root.find(".//CodiceDestinatario").text == fatturapa.NO_RECIPIENT_CODE

    def test_passes_structural_validation(self, it_invoice):
        result = generate(it_invoice, "fatturapa", FormatConfig(sequence_id="00005"))
        assert validate_xml(result.xml, "fatturapa").valid


class TestKSeF:
    """FA(2) and FA(3)"""

    def _ns(self, fmt):
        return {"fa": ksef.SCHEMAS[fmt]["namespace"]}

    def test_fa2(self, pl_invoice):
        ns = self._ns("ksef")
        root = _parse(generate(pl_invoice, "ksef", FormatConfig(generated_at=GENERATED_AT)))

        assert root.find("fa:Naglowek/fa:KodFormularza", ns).get("kodSystemowy") == "FA (2)"
        assert _text(root, "fa:Naglowek/fa:DataWytworzeniaFa", ns) == "2026-03-02T09:30:00Z"
        assert _text(root, "fa:Podmiot1/fa:DaneIdentyfikacyjne/fa:NIP", ns) == "1234563218"
        assert _text(root, "fa:Podmiot2/fa:DaneIdentyfikacyjne/fa:NIP", ns) == "5260250274"
        assert _text(root, "fa:Fa/fa:P_2", ns) == "FV/2026/03/001"
        assert _text(root, "fa:Fa/fa:P_13_1", ns) == "1000.00"
        assert _text(root, "fa:Fa/fa:P_14_1", ns) == "230.00"
        assert _text(root, "fa:Fa/fa:P_15", ns) == "1230.00"
        assert _text(root, "fa:Fa/fa:RodzajFaktury", ns) == "VAT"

    def test_fa3_namespace_and_buyer_flags(self, pl_invoice):
        ns = self._ns("ksef-fa3")
        result = generate(pl_invoice, "ksef-fa3", FormatConfig(generated_at=GENERATED_AT))
        root = _parse(result)

        assert result.syntax == "FA3"
        assert root.find("fa:Naglowek/fa:KodFormularza", ns).get("kodSystemowy") == "FA (3)"
        assert _text(root, "fa:Podmiot2/fa:JST", ns) == "2"

    def test_seller_nip_required(self, pl_invoice):
        supplier = dataclasses.replace(pl_invoice.supplier, identifiers={})
        result = generate(dataclasses.replace(pl_invoice, supplier=supplier), "ksef")

        assert not result.success
        assert "Seller NIP" in result.error

    def test_correction_needs_original_number(self, pl_invoice):
        data = dataclasses.replace(pl_invoice, document_type="corrective-invoice",
                                   original_invoice_date=date(2026, 2, 10))
        result = generate(data, "ksef")

        assert not result.success
        assert "Corrected invoice number" in result.error

    def test_correction_needs_original_date(self, pl_invoice):
        """Test that the corrected invoice's issue date is mandatory"""
        data = dataclasses.replace(pl_invoice, document_type="corrective-invoice",
                                   original_invoice_number="FV/2026/02/010")
        result = generate(data, "ksef")

        assert not result.success
        assert "Corrected invoice date" in result.error

    def test_correction(self, pl_invoice):
        """Test that DataWystFaKorygowanej is the corrected invoice's date, not the correction's"""
        ns = self._ns("ksef")
        data = dataclasses.replace(pl_invoice, document_type="corrective-invoice",
                                   original_invoice_number="FV/2026/02/010",
                                   original_invoice_date=date(2026, 2, 10), correction_reason="Błędna cena")
        root = _parse(generate(data, "ksef", FormatConfig(generated_at=GENERATED_AT)))

        assert _text(root, "fa:Fa/fa:RodzajFaktury", ns) == "KOR"
        assert _text(root, "fa:Fa/fa:DaneFaKorygowanej/fa:NrFaKorygowanej", ns) == "FV/2026/02/010"
        assert _text(root, "fa:Fa/fa:DaneFaKorygowanej/fa:DataWystFaKorygowanej", ns) == "2026-02-10"
        assert _text(root, "fa:Fa/fa:P_1", ns) == "2026-03-02"

    def test_original_date_from_payload(self):
        data = DocumentData.from_dict({
            "documentType": "corrective-invoice", "number": "FV/2026/03/002", "issueDate": "2026-03-10",
            "originalInvoiceNumber": "FV/2026/02/010", "originalInvoiceDate": "2026-02-10",
            "supplier": {"name": "Kowalski Sp. z o.o."}, "customer": {"name": "Nowak S.A."},
        })
        assert data.original_invoice_date == date(2026, 2, 10)

    def test_exempt_line_sets_zwolnienie(self, pl_invoice):
        """Test P_13_7 and the P_19 exemption flag when one line is exempt"""
        ns = self._ns("ksef")
        items = pl_invoice.items + [
            LineItem(description="Szkolenie", quantity=1, unit_price=300, vat_rate=23, is_exempt=True),
        ]
        data = ensure_totals(dataclasses.replace(pl_invoice, items=items, totals=None), countries.get("PL"))
        root = _parse(generate(data, "ksef", FormatConfig(generated_at=GENERATED_AT)))

        assert _text(root, "fa:Fa/fa:P_13_1", ns) == "1000.00"
        assert _text(root, "fa:Fa/fa:P_13_7", ns) == "300.00"
        assert _text(root, "fa:Fa/fa:Adnotacje/fa:Zwolnienie/fa:P_19", ns) == "1"
        assert root.find("fa:Fa/fa:P_13_6_1", ns) is None


def _with_exempt_line(data):
    items = list(data.items) + [
        LineItem(description="Formation", quantity=1, unit_price=300, vat_rate=data.items[0].vat_rate,
                 is_exempt=True),
    ]
    return ensure_totals(dataclasses.replace(data, items=items, totals=None),
                         countries.get(data.supplier.country_code))


def _cii_categories(root):
    ns = cii.NS
    lines = root.findall(".//ram:SpecifiedLineTradeSettlement/ram:ApplicableTradeTax/ram:CategoryCode", ns)
    header = root.findall(".//ram:ApplicableHeaderTradeSettlement/ram:ApplicableTradeTax/ram:CategoryCode", ns)
    return {e.text for e in lines}, {e.text for e in header}


def _ubl_categories(root):
    ns = ubl.NS
    lines = root.findall(".//cac:ClassifiedTaxCategory/cbc:ID", ns)
    header = root.findall("cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory/cbc:ID", ns)
    return {e.text for e in lines}, {e.text for e in header}


def _fatturapa_categories(root):
    def pairs(tag):
        return {(el.findtext("AliquotaIVA"), el.findtext("Natura")) for el in root.iter(tag)}
    return pairs("DettaglioLinee"), pairs("DatiRiepilogo")


_KSEF_LINE_FIELDS = {"zw": "7", "np": "10", "0": "6_1"}


def _ksef_categories(root):
    lines = {_KSEF_LINE_FIELDS.get(el.text, ksef.rate_field(el.text)) for el in root.iter("{*}P_12")}
    header = {etree.QName(el).localname[len("P_13_"):]
              for el in root.iter() if etree.QName(el).localname.startswith("P_13_")}
    return lines, header


class TestTaxCategories:
    """Line categories against the header breakdown"""

    @pytest.mark.parametrize("fixture, fmt, reader", [
        ("fr_invoice", "cii", _cii_categories),
        ("fr_invoice", "ubl", _ubl_categories),
        ("it_invoice", "fatturapa", _fatturapa_categories),
        ("pl_invoice", "ksef", _ksef_categories),
    ])
    def test_exempt_and_taxed_lines(self, request, fixture, fmt, reader):
        """Test that every line category has a matching header entry"""
        data = _with_exempt_line(request.getfixturevalue(fixture))
        config = FormatConfig(sequence_id="00010", generated_at=GENERATED_AT)
        root = _parse(generate(data, fmt, config))

        lines, header = reader(root)

        assert len(lines) == 2
        assert lines <= header
        assert len(header) == len(data.totals.breakdown) == 2

    def test_breakdown_bases_sum_to_net_total(self, fr_invoice):
        data = _with_exempt_line(fr_invoice)
        assert sum(e.base_amount for e in data.totals.breakdown) == data.totals.total_ht

    def test_cii_exempt_entry(self, fr_invoice):
        """Test that the exempt header entry is E with a reason, next to S"""
        root = _parse(generate(_with_exempt_line(fr_invoice), "cii"))
        taxes = root.findall(".//ram:ApplicableHeaderTradeSettlement/ram:ApplicableTradeTax", cii.NS)
        by_code = {t.find("ram:CategoryCode", cii.NS).text: t for t in taxes}

        assert set(by_code) == {"S", "E"}
        assert by_code["E"].find("ram:BasisAmount", cii.NS).text == "300.00"
        assert by_code["E"].find("ram:ExemptionReason", cii.NS).text
        assert by_code["S"].find("ram:BasisAmount", cii.NS).text == "1000.00"

    def test_ubl_exempt_entry(self, fr_invoice):
        ns = ubl.NS
        root = _parse(generate(_with_exempt_line(fr_invoice), "ubl"))
        categories = root.findall("cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory", ns)
        exempt = [c for c in categories if c.find("cbc:ID", ns).text == "E"]

        assert len(exempt) == 1
        assert exempt[0].find("cbc:TaxExemptionReason", ns).text


class TestEscaping:
    """Free text in every syntax"""

    NAME = 'Dupont & Fils <SARL> "Le Bon" l\'Atelier'

    @pytest.mark.parametrize("fixture, fmt", [
        ("fr_invoice", "cii"),
        ("fr_invoice", "ubl"),
        ("it_invoice", "fatturapa"),
        ("pl_invoice", "ksef"),
        ("pl_invoice", "ksef-fa3"),
    ])
    def test_supplier_name_round_trip(self, request, fixture, fmt):
        """Test that a parser recovers the exact supplier name"""
        data = request.getfixturevalue(fixture)
        supplier = dataclasses.replace(data.supplier, name=self.NAME)
        config = FormatConfig(sequence_id="00009", generated_at=GENERATED_AT)
        root = _parse(generate(dataclasses.replace(data, supplier=supplier), fmt, config))

        assert self.NAME in [el.text for el in root.iter()]


class TestValidation:
    """Structural checks"""

    def test_detects_each_syntax(self, fr_invoice, it_invoice, pl_invoice):
        assert detect_syntax(generate(fr_invoice, "cii").xml) == "cii"
        assert detect_syntax(generate(fr_invoice, "ubl").xml) == "ubl"
        assert detect_syntax(generate(it_invoice, "fatturapa", FormatConfig(sequence_id="1")).xml) == "fatturapa"
        assert detect_syntax(generate(pl_invoice, "ksef").xml) == "FA2"
        assert detect_syntax(generate(pl_invoice, "ksef-fa3").xml) == "FA3"

    def test_detect_unknown(self):
        assert detect_syntax("<root/>") is None
        assert detect_syntax("not xml") is None

    def test_valid_with_detection(self, fr_invoice):
        result = validate_xml(generate(fr_invoice, "cii").xml)

        assert result.valid
        assert result.syntax == "cii"
        assert result.to_dict() == {"valid": True, "syntax": "cii", "errors": []}

    def test_wrong_syntax(self, fr_invoice):
        """Test that a CII document is not accepted as UBL"""
        result = validate_xml(generate(fr_invoice, "cii").xml, "ubl")

        assert not result.valid
        assert "does not match ubl" in result.errors[0]

    def test_wrong_namespace(self):
        result = validate_xml('<Invoice xmlns="urn:example"/>', "ubl")

        assert not result.valid
        assert "namespace" in result.errors[0]

    def test_not_well_formed(self):
        result = validate_xml(b"<Invoice>", "ubl")

        assert not result.valid
        assert result.errors[0].startswith("Not well-formed")

    def test_unknown_syntax(self):
        with pytest.raises(ValueError, match="Unknown syntax"):
            validate_xml("<a/>", "edifact")

    def test_entities_are_not_resolved(self):
        """Test that external entities are never expanded"""
        xml = ('<?xml version="1.0"?><!DOCTYPE r [<!ENTITY x SYSTEM "file:///etc/passwd">]>'
               '<r>&x;</r>')
        result = validate_xml(xml)

        assert not result.valid
