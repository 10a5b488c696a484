"""
OASIS UBL 2.1 generator for ``ubl``, ``xrechnung`` and ``peppol-bis``.

XRechnung and Peppol BIS Billing 3.0 are both CIUS of EN 16931 on UBL;
they only change ``CustomizationID``/``ProfileID`` and make the buyer
reference mandatory.  Credit notes get a ``CreditNote`` root.
"""
from __future__ import annotations

from lxml import etree

from compliance import countries
from compliance.formats.base import (
    EXEMPTION_REASON, PEPPOL_BIS, SYNTAX_UBL, UBL, XRECHNUNG,
    FormatConfig, FormatGenerationError, FormatGenerator,
    entry_category, fmt_amount, fmt_date_iso, fmt_quantity, fmt_rate,
    line_category, line_rate, payment_means_code, require_totals, sub_element,
    type_code, unit_code,
)
from compliance.identifiers import peppol_participant_id
from compliance.model import CATEGORY_EXEMPT, CATEGORY_REVERSE_CHARGE, DocumentData, PartyData

NS = {
    "inv": "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2",
    "cn": "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2",
    "cac": "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2",
    "cbc": "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2",
}

EN16931_CUSTOMIZATION = "urn:cen.eu:en16931:2017"
CUSTOMIZATION_IDS = {
    UBL: EN16931_CUSTOMIZATION,
    PEPPOL_BIS: "urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0",
    XRECHNUNG: "urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0",
}
PEPPOL_PROFILE_ID = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"


def _el(parent: etree._Element, tag: str, text=None, **attribs) -> etree._Element:
    ns_prefix, local = tag.split(":", 1)
    return sub_element(parent, NS[ns_prefix], local, text, **attribs)


class UBLGenerator(FormatGenerator):
    """UBL 2.1 Invoice / CreditNote."""

    formats = (UBL, XRECHNUNG, PEPPOL_BIS)

    @property
    def syntax(self) -> str:
        return SYNTAX_UBL

    @property
    def version(self) -> str:
        return "2.1"

    def build(self, data: DocumentData, fmt: str, config: FormatConfig) -> etree._Element:
        totals = require_totals(data)
        credit = data.is_credit
        root_ns = NS["cn"] if credit else NS["inv"]
        nsmap = {None: root_ns, "cac": NS["cac"], "cbc": NS["cbc"]}
        root = etree.Element(f"{{{root_ns}}}{'CreditNote' if credit else 'Invoice'}", nsmap=nsmap)
        cur = data.currency

        _el(root, "cbc:CustomizationID", CUSTOMIZATION_IDS[fmt])
        if fmt in (XRECHNUNG, PEPPOL_BIS):
            _el(root, "cbc:ProfileID", PEPPOL_PROFILE_ID)
        _el(root, "cbc:ID", data.number)
        _el(root, "cbc:IssueDate", fmt_date_iso(data.issue_date))
        if data.due_date and not credit:
            _el(root, "cbc:DueDate", fmt_date_iso(data.due_date))
        _el(root, "cbc:CreditNoteTypeCode" if credit else "cbc:InvoiceTypeCode", type_code(data))
        if data.notes:
            _el(root, "cbc:Note", data.notes)
        for mention in data.legal_mentions:
            _el(root, "cbc:Note", mention)
        _el(root, "cbc:DocumentCurrencyCode", cur)

        buyer_reference = config.buyer_reference or data.customer.routing_code
        if not buyer_reference and fmt == XRECHNUNG:
            raise FormatGenerationError("XRechnung requires a buyer reference (Leitweg-ID)")
        if buyer_reference:
            _el(root, "cbc:BuyerReference", buyer_reference)
        elif data.purchase_order_ref is None:
            # BT-10 or BT-13 must be present in EN 16931
            _el(root, "cbc:BuyerReference", data.number)

        if data.purchase_order_ref:
            order = _el(root, "cac:OrderReference")
            _el(order, "cbc:ID", data.purchase_order_ref)

        original = data.original_invoice_number or data.original_invoice_ref
        if original:
            billing = _el(root, "cac:BillingReference")
            ref = _el(billing, "cac:InvoiceDocumentReference")
            _el(ref, "cbc:ID", original)
            if data.original_invoice_date:
                _el(ref, "cbc:IssueDate", fmt_date_iso(data.original_invoice_date))

        supplier = _el(root, "cac:AccountingSupplierParty")
        self._add_party(supplier, data.supplier)
        customer = _el(root, "cac:AccountingCustomerParty")
        self._add_party(customer, data.customer)

        means = _el(root, "cac:PaymentMeans")
        _el(means, "cbc:PaymentMeansCode", payment_means_code(data.payment_method))
        if data.payment_reference:
            _el(means, "cbc:PaymentID", data.payment_reference)
        iban = data.supplier.identifier("iban")
        if iban:
            account = _el(means, "cac:PayeeFinancialAccount")
            _el(account, "cbc:ID", iban)

        if data.payment_terms:
            terms = _el(root, "cac:PaymentTerms")
            _el(terms, "cbc:Note", data.payment_terms)

        self._add_tax_total(root, data)

        monetary = _el(root, "cac:LegalMonetaryTotal")
        _el(monetary, "cbc:LineExtensionAmount", fmt_amount(totals.total_ht), currencyID=cur)
        _el(monetary, "cbc:TaxExclusiveAmount", fmt_amount(totals.total_ht), currencyID=cur)
        _el(monetary, "cbc:TaxInclusiveAmount", fmt_amount(totals.total_ttc), currencyID=cur)
        _el(monetary, "cbc:PayableAmount", fmt_amount(totals.total_ttc), currencyID=cur)

        for position, item in enumerate(data.items, start=1):
            self._add_line(root, position, item, data)
        return root

    def _add_party(self, parent: etree._Element, party: PartyData) -> None:
        node = _el(parent, "cac:Party")
        config = countries.get(party.country_code)

        endpoint = peppol_participant_id(party, config)
        if endpoint and ":" in endpoint:
            scheme, value = endpoint.split(":", 1)
            _el(node, "cbc:EndpointID", value, schemeID=scheme)
        elif party.email:
            _el(node, "cbc:EndpointID", party.email, schemeID="EM")

        if party.legal_id:
            ident = _el(node, "cac:PartyIdentification")
            _el(ident, "cbc:ID", party.legal_id)

        name = _el(node, "cac:PartyName")
        _el(name, "cbc:Name", party.name)

        address = _el(node, "cac:PostalAddress")
        lines = [line for line in (party.address or "").splitlines() if line.strip()]
        if lines:
            _el(address, "cbc:StreetName", lines[0])
        if len(lines) > 1:
            _el(address, "cbc:AdditionalStreetName", lines[1])
        if party.city:
            _el(address, "cbc:CityName", party.city)
        if party.postal_code:
            _el(address, "cbc:PostalZone", party.postal_code)
        if party.province:
            _el(address, "cbc:CountrySubentity", party.province)
        country = _el(address, "cac:Country")
        _el(country, "cbc:IdentificationCode", party.country_code)

        if party.vat_number:
            tax_scheme = _el(node, "cac:PartyTaxScheme")
            _el(tax_scheme, "cbc:CompanyID", party.vat_number)
            scheme = _el(tax_scheme, "cac:TaxScheme")
            _el(scheme, "cbc:ID", "VAT")

        legal = _el(node, "cac:PartyLegalEntity")
        _el(legal, "cbc:RegistrationName", party.name)
        if party.legal_id:
            _el(legal, "cbc:CompanyID", party.legal_id)

        if party.email or party.phone:
            contact = _el(node, "cac:Contact")
            if party.phone:
                _el(contact, "cbc:Telephone", party.phone)
            if party.email:
                _el(contact, "cbc:ElectronicMail", party.email)

    def _add_tax_total(self, root: etree._Element, d: DocumentData) -> None:
        totals = d.totals
        cur = d.currency
        tax_total = _el(root, "cac:TaxTotal")
        _el(tax_total, "cbc:TaxAmount", fmt_amount(totals.total_vat), currencyID=cur)
        for entry in totals.breakdown:
            code = entry_category(entry, d)
            subtotal = _el(tax_total, "cac:TaxSubtotal")
            _el(subtotal, "cbc:TaxableAmount", fmt_amount(entry.base_amount), currencyID=cur)
            _el(subtotal, "cbc:TaxAmount", fmt_amount(entry.vat_amount), currencyID=cur)
            category = _el(subtotal, "cac:TaxCategory")
            _el(category, "cbc:ID", code)
            _el(category, "cbc:Percent", fmt_rate(entry.rate))
            if code == CATEGORY_REVERSE_CHARGE:
                _el(category, "cbc:TaxExemptionReasonCode", "VATEX-EU-AE")
                _el(category, "cbc:TaxExemptionReason", totals.reverse_charge_text or "Reverse charge")
            elif code == CATEGORY_EXEMPT:
                _el(category, "cbc:TaxExemptionReason", EXEMPTION_REASON)
            scheme = _el(category, "cac:TaxScheme")
            _el(scheme, "cbc:ID", "VAT")

    def _add_line(self, root: etree._Element, position: int, item, d: DocumentData) -> None:
        cur = d.currency
        credit = d.is_credit
        line = _el(root, "cac:CreditNoteLine" if credit else "cac:InvoiceLine")
        _el(line, "cbc:ID", str(position))
        _el(line, "cbc:CreditedQuantity" if credit else "cbc:InvoicedQuantity",
            fmt_quantity(item.quantity), unitCode=unit_code(item))
        _el(line, "cbc:LineExtensionAmount", fmt_amount(item.line_total), currencyID=cur)

        product = _el(line, "cac:Item")
        _el(product, "cbc:Name", item.description)
        if item.code:
            seller_id = _el(product, "cac:SellersItemIdentification")
            _el(seller_id, "cbc:ID", item.code)
        category = _el(product, "cac:ClassifiedTaxCategory")
        _el(category, "cbc:ID", line_category(item, d))
        _el(category, "cbc:Percent", fmt_rate(line_rate(item, d)))
        scheme = _el(category, "cac:TaxScheme")
        _el(scheme, "cbc:ID", "VAT")

        price = _el(line, "cac:Price")
        _el(price, "cbc:PriceAmount", fmt_amount(item.unit_price), currencyID=cur)
