"""
UN/CEFACT Cross Industry Invoice (CII) generator.

Serves ``facturx``, ``zugferd`` and ``cii``.  Factur-X and ZUGFeRD 2.x
share the same CII D16B payload; they differ only in the PDF container
branding, handled by the renderer.

References:
- ZUGFeRD Spec: https://www.ferd-net.de/standards/zugferd
- Factur-X: https://fnfe-mpe.org/factur-x/
- CII D16B/D22B schema: UN/CEFACT CrossIndustryInvoice
"""
from __future__ import annotations

from lxml import etree

from compliance.formats.base import (
    CII, EXEMPTION_REASON, FACTURX, SYNTAX_CII, ZUGFERD,
    FormatConfig, FormatGenerationError, FormatGenerator,
    entry_category, fmt_amount, fmt_date_102, fmt_quantity, fmt_rate,
    line_category, line_rate, payment_means_code, require_totals, sub_element,
    type_code, unit_code,
)
from compliance.model import CATEGORY_EXEMPT, CATEGORY_REVERSE_CHARGE, DocumentData, PartyData

# ── XML Namespaces (CII D16B, compatible with D22B) ─────────────
NS = {
    "rsm": "urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100",
    "ram": "urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:100",
    "qdt": "urn:un:unece:uncefact:data:standard:QualifiedDataType:100",
    "udt": "urn:un:unece:uncefact:data:standard:UnqualifiedDataType:100",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}

# Guideline ID per profile
PROFILE_IDS = {
    "minimum": "urn:factur-x.eu:1p0:minimum",
    "basicwl": "urn:factur-x.eu:1p0:basicwl",
    "basic": "urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:basic",
    "en16931": "urn:cen.eu:en16931:2017",
    "extended": "urn:cen.eu:en16931:2017#conformant#urn:factur-x.eu:1p0:extended",
}

DEFAULT_PROFILE = "en16931"

# Profiles carrying line items
_LINE_PROFILES = ("basic", "en16931", "extended")


def _el(parent: etree._Element, tag: str, text=None, **attribs) -> etree._Element:
    """Create a sub-element with optional text and attributes."""
    ns_prefix, local = tag.split(":", 1) if ":" in tag else ("ram", tag)
    return sub_element(parent, NS[ns_prefix], local, text, **attribs)


def _date(parent: etree._Element, tag: str, d) -> None:
    holder = _el(parent, tag)
    _el(holder, "udt:DateTimeString", fmt_date_102(d), format="102")


class CIIGenerator(FormatGenerator):
    """CII D16B for Factur-X / ZUGFeRD 2.x."""

    formats = (FACTURX, ZUGFERD, CII)

    @property
    def syntax(self) -> str:
        return SYNTAX_CII

    @property
    def version(self) -> str:
        return "D16B"

    @staticmethod
    def profile_for(config: FormatConfig) -> str:
        profile = (config.profile or DEFAULT_PROFILE).lower().replace(" ", "")
        if profile not in PROFILE_IDS:
            raise FormatGenerationError(
                f"Unknown CII profile '{profile}'. Options: {', '.join(PROFILE_IDS)}"
            )
        return profile

    # ── XML tree builders ───────────────────────────────────────
    def build(self, data: DocumentData, fmt: str, config: FormatConfig) -> etree._Element:
        profile = self.profile_for(config)
        require_totals(data)

        root = etree.Element(f"{{{NS['rsm']}}}CrossIndustryInvoice", nsmap=dict(NS))
        self._add_context(root, profile)
        self._add_document(root, data)
        self._add_transaction(root, data, profile, config)
        return root

    def _add_context(self, root: etree._Element, profile: str) -> None:
        ctx = _el(root, "rsm:ExchangedDocumentContext")
        param = _el(ctx, "ram:GuidelineSpecifiedDocumentContextParameter")
        _el(param, "ram:ID", PROFILE_IDS[profile])

    def _add_document(self, root: etree._Element, d: DocumentData) -> None:
        doc = _el(root, "rsm:ExchangedDocument")
        _el(doc, "ram:ID", d.number)
        _el(doc, "ram:TypeCode", type_code(d))
        _date(doc, "ram:IssueDateTime", d.issue_date)

        if d.notes:
            note = _el(doc, "ram:IncludedNote")
            _el(note, "ram:Content", d.notes)

        for mention in d.legal_mentions:
            note = _el(doc, "ram:IncludedNote")
            _el(note, "ram:Content", mention)
            _el(note, "ram:SubjectCode", "REG")  # Regulatory information

        if d.totals.reverse_charge and d.totals.reverse_charge_text:
            note = _el(doc, "ram:IncludedNote")
            _el(note, "ram:Content", d.totals.reverse_charge_text)
            _el(note, "ram:SubjectCode", "REG")

    def _add_transaction(self, root: etree._Element, d: DocumentData, profile: str,
                         config: FormatConfig) -> None:
        txn = _el(root, "rsm:SupplyChainTradeTransaction")

        if profile in _LINE_PROFILES:
            for position, item in enumerate(d.items, start=1):
                self._add_line_item(txn, position, item, d)

        self._add_agreement(txn, d, config)
        self._add_delivery(txn, d)
        self._add_settlement(txn, d)

    def _add_line_item(self, txn: etree._Element, position: int, item, d: DocumentData) -> None:
        li = _el(txn, "ram:IncludedSupplyChainTradeLineItem")

        line_doc = _el(li, "ram:AssociatedDocumentLineDocument")
        _el(line_doc, "ram:LineID", str(position))

        product = _el(li, "ram:SpecifiedTradeProduct")
        if item.code:
            _el(product, "ram:SellerAssignedID", item.code)
        _el(product, "ram:Name", item.description)

        agreement = _el(li, "ram:SpecifiedLineTradeAgreement")
        net_price = _el(agreement, "ram:NetPriceProductTradePrice")
        _el(net_price, "ram:ChargeAmount", fmt_amount(item.unit_price))

        delivery = _el(li, "ram:SpecifiedLineTradeDelivery")
        _el(delivery, "ram:BilledQuantity", fmt_quantity(item.quantity), unitCode=unit_code(item))

        settlement = _el(li, "ram:SpecifiedLineTradeSettlement")
        tax = _el(settlement, "ram:ApplicableTradeTax")
        _el(tax, "ram:TypeCode", "VAT")
        _el(tax, "ram:CategoryCode", line_category(item, d))
        _el(tax, "ram:RateApplicablePercent", fmt_rate(line_rate(item, d)))

        monetary = _el(settlement, "ram:SpecifiedTradeSettlementLineMonetarySummation")
        _el(monetary, "ram:LineTotalAmount", fmt_amount(item.line_total))

    def _add_party(self, parent: etree._Element, tag: str, party: PartyData) -> None:
        node = _el(parent, tag)
        _el(node, "ram:Name", party.name)
        if party.legal_id:
            legal = _el(node, "ram:SpecifiedLegalOrganization")
            _el(legal, "ram:ID", party.legal_id)

        addr = _el(node, "ram:PostalTradeAddress")
        if party.postal_code:
            _el(addr, "ram:PostcodeCode", party.postal_code)
        lines = [line for line in (party.address or "").splitlines() if line.strip()]
        for i, line in enumerate(lines[:2]):
            _el(addr, "ram:LineOne" if i == 0 else "ram:LineTwo", line)
        if party.city:
            _el(addr, "ram:CityName", party.city)
        _el(addr, "ram:CountryID", party.country_code or "FR")

        if party.email:
            uri = _el(node, "ram:URIUniversalCommunication")
            _el(uri, "ram:URIID", party.email, schemeID="EM")

        tax_number = party.identifier("steuernummer", "taxNumber")
        if tax_number:
            tax_reg = _el(node, "ram:SpecifiedTaxRegistration")
            _el(tax_reg, "ram:ID", tax_number, schemeID="FC")  # FC = local tax number
        if party.vat_number:
            tax_reg = _el(node, "ram:SpecifiedTaxRegistration")
            _el(tax_reg, "ram:ID", party.vat_number, schemeID="VA")  # VA = VAT id

    def _add_agreement(self, txn: etree._Element, d: DocumentData, config: FormatConfig) -> None:
        agreement = _el(txn, "ram:ApplicableHeaderTradeAgreement")
        buyer_reference = config.buyer_reference or d.customer.routing_code
        if buyer_reference:
            _el(agreement, "ram:BuyerReference", buyer_reference)
        self._add_party(agreement, "ram:SellerTradeParty", d.supplier)
        self._add_party(agreement, "ram:BuyerTradeParty", d.customer)
        if d.purchase_order_ref:
            order = _el(agreement, "ram:BuyerOrderReferencedDocument")
            _el(order, "ram:IssuerAssignedID", d.purchase_order_ref)

    def _add_delivery(self, txn: etree._Element, d: DocumentData) -> None:
        delivery = _el(txn, "ram:ApplicableHeaderTradeDelivery")
        event = _el(delivery, "ram:ActualDeliverySupplyChainEvent")
        _date(event, "ram:OccurrenceDateTime", d.issue_date)

    def _add_settlement(self, txn: etree._Element, d: DocumentData) -> None:
        totals = d.totals
        settlement = _el(txn, "ram:ApplicableHeaderTradeSettlement")

        if d.payment_reference:
            _el(settlement, "ram:PaymentReference", d.payment_reference)

        _el(settlement, "ram:InvoiceCurrencyCode", d.currency)

        pmeans = _el(settlement, "ram:SpecifiedTradeSettlementPaymentMeans")
        _el(pmeans, "ram:TypeCode", payment_means_code(d.payment_method))
        iban = d.supplier.identifier("iban")
        if iban:
            account = _el(pmeans, "ram:PayeePartyCreditorFinancialAccount")
            _el(account, "ram:IBANID", iban)

        for entry in totals.breakdown:
            category = entry_category(entry, d)
            tax = _el(settlement, "ram:ApplicableTradeTax")
            _el(tax, "ram:CalculatedAmount", fmt_amount(entry.vat_amount))
            _el(tax, "ram:TypeCode", "VAT")
            if category == CATEGORY_REVERSE_CHARGE:
                _el(tax, "ram:ExemptionReason", totals.reverse_charge_text or "Reverse charge")
            elif category == CATEGORY_EXEMPT:
                _el(tax, "ram:ExemptionReason", EXEMPTION_REASON)
            _el(tax, "ram:BasisAmount", fmt_amount(entry.base_amount))
            _el(tax, "ram:CategoryCode", category)
            if category == CATEGORY_REVERSE_CHARGE:
                _el(tax, "ram:ExemptionReasonCode", "VATEX-EU-AE")
            _el(tax, "ram:RateApplicablePercent", fmt_rate(entry.rate))

        terms = _el(settlement, "ram:SpecifiedTradePaymentTerms")
        if d.payment_terms:
            _el(terms, "ram:Description", d.payment_terms)
        if d.due_date:
            _date(terms, "ram:DueDateDateTime", d.due_date)

        summary = _el(settlement, "ram:SpecifiedTradeSettlementHeaderMonetarySummation")
        _el(summary, "ram:LineTotalAmount", fmt_amount(totals.total_ht))
        _el(summary, "ram:TaxBasisTotalAmount", fmt_amount(totals.total_ht))
        _el(summary, "ram:TaxTotalAmount", fmt_amount(totals.total_vat), currencyID=d.currency)
        _el(summary, "ram:GrandTotalAmount", fmt_amount(totals.total_ttc))
        _el(summary, "ram:DuePayableAmount", fmt_amount(totals.total_ttc))

        if d.original_invoice_number or d.original_invoice_ref:
            ref = _el(settlement, "ram:InvoiceReferencedDocument")
            _el(ref, "ram:IssuerAssignedID", d.original_invoice_number or d.original_invoice_ref)
            if d.original_invoice_date:
                issued = _el(ref, "ram:FormattedIssueDateTime")
                _el(issued, "qdt:DateTimeString", fmt_date_102(d.original_invoice_date), format="102")
