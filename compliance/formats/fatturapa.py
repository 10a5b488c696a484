"""
FatturaPA 1.2.2 generator for the Italian SdI exchange.

Only the root element is namespaced; the schema declares its children
unqualified.  ``FPA12`` is used for public-administration customers,
``FPR12`` for everyone else.

Reference: https://www.fatturapa.gov.it/it/norme-e-regole/documentazione-fattura-elettronica/
"""
from __future__ import annotations

import re

from lxml import etree

from compliance.formats.base import (
    FATTURAPA, SYNTAX_FATTURAPA,
    FormatConfig, FormatGenerationError, FormatGenerator,
    entry_category, fmt_amount, fmt_date_iso, fmt_rate, is_reverse_charge, line_category,
    line_rate, require, require_totals, sub_element,
)
from compliance.helpers import to_decimal
from compliance.model import (
    CATEGORY_EXEMPT, CATEGORY_REVERSE_CHARGE, CATEGORY_ZERO, CORRECTIVE_INVOICE, CREDIT_NOTE,
    DEPOSIT_INVOICE, DocumentData, PartyData,
)

NS_FATTURA = "http://ivaservizi.agenziaentrate.gov.it/docs/xsd/fatture/v1.2"
NS_XSI = "http://www.w3.org/2001/XMLSchema-instance"

FORMAT_PA = "FPA12"
FORMAT_PRIVATE = "FPR12"

# Codice destinatario when the recipient is reached through PEC or the cassetto fiscale
NO_RECIPIENT_CODE = "0000000"
# IdCodice used for foreign customers without a tax id
FOREIGN_PLACEHOLDER_ID = "99999999999"

TIPO_DOCUMENTO = {
    CREDIT_NOTE: "TD04",
    CORRECTIVE_INVOICE: "TD04",
    DEPOSIT_INVOICE: "TD02",
}

# Natura for zero-VAT summary lines
NATURA_REVERSE_CHARGE = "N3.2"
NATURA_EXEMPT = "N4"
NATURA_NOT_SUBJECT = "N2.2"

NATURA = {
    CATEGORY_REVERSE_CHARGE: NATURA_REVERSE_CHARGE,
    CATEGORY_EXEMPT: NATURA_EXEMPT,
    CATEGORY_ZERO: NATURA_NOT_SUBJECT,
}

# ProgressivoInvio: up to 10 alphanumeric characters
SEQUENCE_ID = re.compile(r"[A-Za-z0-9]{1,10}")

MODALITA_PAGAMENTO = {
    "CASH": "MP01",
    "CHECK": "MP02",
    "BANK_TRANSFER": "MP05",
    "PAYPAL": "MP08",
}


def _el(parent: etree._Element, tag: str, text=None) -> etree._Element:
    return sub_element(parent, None, tag, text)


def _quantity(value) -> str:
    """Quantita: between 2 and 8 decimals."""
    text = f"{to_decimal(value):.8f}".rstrip("0")
    whole, _, decimals = text.partition(".")
    return f"{whole}.{decimals.ljust(2, '0')}"


def _split_vat(vat_number: str, country: str) -> tuple[str, str]:
    vat = vat_number.replace(" ", "").upper()
    if len(vat) > 2 and vat[:2].isalpha():
        return vat[:2], vat[2:]
    return country, vat


class FatturaPAGenerator(FormatGenerator):
    """FatturaElettronica 1.2.2 (single body)."""

    formats = (FATTURAPA,)

    @property
    def syntax(self) -> str:
        return SYNTAX_FATTURAPA

    @property
    def version(self) -> str:
        return "1.2.2"

    def build(self, data: DocumentData, fmt: str, config: FormatConfig) -> etree._Element:
        require_totals(data)
        sequence_id = require(config.sequence_id, "ProgressivoInvio (sequence_id)")
        if not SEQUENCE_ID.fullmatch(str(sequence_id)):
            raise FormatGenerationError(
                f"ProgressivoInvio must be 1 to 10 letters or digits, got '{sequence_id}'"
            )
        transmission_format = FORMAT_PA if data.customer.is_public_entity else FORMAT_PRIVATE

        root = etree.Element(f"{{{NS_FATTURA}}}FatturaElettronica",
                             nsmap={"p": NS_FATTURA, "xsi": NS_XSI})
        root.set("versione", transmission_format)

        header = _el(root, "FatturaElettronicaHeader")
        self._add_transmission(header, data, config, sequence_id, transmission_format)
        self._add_supplier(header, data.supplier)
        self._add_customer(header, data.customer)

        body = _el(root, "FatturaElettronicaBody")
        self._add_general(body, data)
        self._add_goods_services(body, data)
        self._add_payment(body, data)
        return root

    # ── Header ──────────────────────────────────────────────────
    def _add_transmission(self, header, d: DocumentData, config: FormatConfig,
                          sequence_id: str, transmission_format: str) -> None:
        dati = _el(header, "DatiTrasmissione")
        transmitter = _el(dati, "IdTrasmittente")
        supplier = d.supplier
        country, code = _split_vat(
            config.transmitter_id
            or supplier.identifier("codiceFiscale", "partitaIva", "vat")
            or "",
            supplier.country_code,
        )
        _el(transmitter, "IdPaese", country)
        _el(transmitter, "IdCodice", require(code, "IdTrasmittente"))
        _el(dati, "ProgressivoInvio", sequence_id)
        _el(dati, "FormatoTrasmissione", transmission_format)

        customer = d.customer
        recipient_code = customer.routing_code or customer.identifier("codiceDestinatario")
        if transmission_format == FORMAT_PA and not recipient_code:
            raise FormatGenerationError("Public administration customers require a codice ufficio")
        _el(dati, "CodiceDestinatario", recipient_code or NO_RECIPIENT_CODE)
        pec = customer.identifier("pec")
        if pec and not recipient_code:
            _el(dati, "PECDestinatario", pec)

    def _add_address(self, parent, party: PartyData) -> None:
        sede = _el(parent, "Sede")
        lines = [line for line in (party.address or "").splitlines() if line.strip()]
        _el(sede, "Indirizzo", " ".join(lines) or "-")
        _el(sede, "CAP", party.postal_code or "00000")
        _el(sede, "Comune", party.city or "-")
        if party.province:
            _el(sede, "Provincia", party.province)
        _el(sede, "Nazione", party.country_code)

    def _add_supplier(self, header, party: PartyData) -> None:
        cedente = _el(header, "CedentePrestatore")
        anagrafici = _el(cedente, "DatiAnagrafici")
        vat = party.identifier("vat", "partitaIva")
        country, code = _split_vat(require(vat, "Supplier partita IVA"), party.country_code)
        id_iva = _el(anagrafici, "IdFiscaleIVA")
        _el(id_iva, "IdPaese", country)
        _el(id_iva, "IdCodice", code)
        fiscal_code = party.identifier("codiceFiscale")
        if fiscal_code:
            _el(anagrafici, "CodiceFiscale", fiscal_code)
        anagrafica = _el(anagrafici, "Anagrafica")
        _el(anagrafica, "Denominazione", party.name)
        _el(anagrafici, "RegimeFiscale", party.identifier("regimeFiscale") or "RF01")
        self._add_address(cedente, party)

        if party.email or party.phone:
            contatti = _el(cedente, "Contatti")
            if party.phone:
                _el(contatti, "Telefono", party.phone)
            if party.email:
                _el(contatti, "Email", party.email)

    def _add_customer(self, header, party: PartyData) -> None:
        cessionario = _el(header, "CessionarioCommittente")
        anagrafici = _el(cessionario, "DatiAnagrafici")
        vat = party.identifier("vat", "partitaIva")
        fiscal_code = party.identifier("codiceFiscale")
        domestic = party.country_code == "IT"

        if vat:
            country, code = _split_vat(vat, party.country_code)
            id_iva = _el(anagrafici, "IdFiscaleIVA")
            _el(id_iva, "IdPaese", country)
            _el(id_iva, "IdCodice", code)
        elif not domestic:
            id_iva = _el(anagrafici, "IdFiscaleIVA")
            _el(id_iva, "IdPaese", party.country_code)
            _el(id_iva, "IdCodice", FOREIGN_PLACEHOLDER_ID)
        elif not fiscal_code:
            raise FormatGenerationError(
                "Italian customers need a partita IVA or a codice fiscale"
            )
        if fiscal_code:
            _el(anagrafici, "CodiceFiscale", fiscal_code)

        anagrafica = _el(anagrafici, "Anagrafica")
        _el(anagrafica, "Denominazione", party.name)
        self._add_address(cessionario, party)

    # ── Body ────────────────────────────────────────────────────
    def _add_general(self, body, d: DocumentData) -> None:
        generali = _el(body, "DatiGenerali")
        documento = _el(generali, "DatiGeneraliDocumento")
        _el(documento, "TipoDocumento", TIPO_DOCUMENTO.get(d.document_type, "TD01"))
        _el(documento, "Divisa", d.currency)
        _el(documento, "Data", fmt_date_iso(d.issue_date))
        _el(documento, "Numero", d.number)
        _el(documento, "ImportoTotaleDocumento", fmt_amount(d.totals.total_ttc))
        causale = d.correction_reason if d.is_credit else d.notes
        if causale:
            # Causale is limited to 200 characters per occurrence
            for start in range(0, len(causale), 200):
                _el(documento, "Causale", causale[start:start + 200])

        if d.purchase_order_ref:
            ordine = _el(generali, "DatiOrdineAcquisto")
            _el(ordine, "IdDocumento", d.purchase_order_ref)

        original = d.original_invoice_number or d.original_invoice_ref
        if original:
            collegate = _el(generali, "DatiFattureCollegate")
            _el(collegate, "IdDocumento", original)
            if d.original_invoice_date:
                _el(collegate, "Data", fmt_date_iso(d.original_invoice_date))

    def _add_goods_services(self, body, d: DocumentData) -> None:
        beni = _el(body, "DatiBeniServizi")
        reverse_charge = is_reverse_charge(d)

        for position, item in enumerate(d.items, start=1):
            linea = _el(beni, "DettaglioLinee")
            _el(linea, "NumeroLinea", str(position))
            if item.code:
                codice = _el(linea, "CodiceArticolo")
                _el(codice, "CodiceTipo", "INTERNO")
                _el(codice, "CodiceValore", item.code)
            _el(linea, "Descrizione", item.description)
            _el(linea, "Quantita", _quantity(item.quantity))
            if item.unit_code:
                _el(linea, "UnitaMisura", item.unit_code)
            _el(linea, "PrezzoUnitario", fmt_amount(item.unit_price))
            _el(linea, "PrezzoTotale", fmt_amount(item.line_total))
            _el(linea, "AliquotaIVA", fmt_rate(line_rate(item, d)))
            natura = NATURA.get(line_category(item, d))
            if natura:
                _el(linea, "Natura", natura)

        for entry in d.totals.breakdown:
            riepilogo = _el(beni, "DatiRiepilogo")
            _el(riepilogo, "AliquotaIVA", fmt_rate(entry.rate))
            natura = NATURA.get(entry_category(entry, d))
            if natura:
                _el(riepilogo, "Natura", natura)
            _el(riepilogo, "ImponibileImporto", fmt_amount(entry.base_amount))
            _el(riepilogo, "Imposta", fmt_amount(entry.vat_amount))
            if natura is None:
                _el(riepilogo, "EsigibilitaIVA", "I")  # immediate
            elif reverse_charge and d.totals.reverse_charge_text:
                _el(riepilogo, "RiferimentoNormativo", d.totals.reverse_charge_text[:100])

    def _add_payment(self, body, d: DocumentData) -> None:
        pagamento = _el(body, "DatiPagamento")
        _el(pagamento, "CondizioniPagamento", "TP02")  # full payment
        dettaglio = _el(pagamento, "DettaglioPagamento")
        _el(dettaglio, "ModalitaPagamento",
            MODALITA_PAGAMENTO.get((d.payment_method or "").upper(), "MP05"))
        if d.due_date:
            _el(dettaglio, "DataScadenzaPagamento", fmt_date_iso(d.due_date))
        _el(dettaglio, "ImportoPagamento", fmt_amount(d.totals.total_ttc))
        iban = d.supplier.identifier("iban")
        if iban:
            _el(dettaglio, "IBAN", iban.replace(" ", ""))
