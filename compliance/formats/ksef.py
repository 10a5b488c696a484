"""
KSeF structured invoice generator, schemas FA(2) and FA(3).

``ksef`` produces FA(2), ``ksef-fa3`` produces FA(3).  The two schemas
share the Naglowek/Podmiot/Fa layout; FA(3) adds the JST and GV buyer
flags.  Net and VAT amounts are summarized per rate in the P_13_x and
P_14_x fields.

Reference: https://www.podatki.gov.pl/ksef/
"""
from __future__ import annotations

from decimal import Decimal

from lxml import etree

from compliance.formats.base import (
    KSEF, KSEF_FA3, SYNTAX_FA2, SYNTAX_FA3,
    FormatConfig, FormatGenerator,
    fmt_amount, fmt_date_iso, fmt_quantity, generated_at, is_reverse_charge,
    require, require_totals, sub_element,
)
from compliance.helpers import ZERO, to_decimal
from compliance.identifiers import clean
from compliance.model import (
    CORRECTIVE_INVOICE, CREDIT_NOTE, DEPOSIT_INVOICE, DocumentData, LineItem, PartyData,
)

SCHEMAS = {
    KSEF: {
        "namespace": "http://crd.gov.pl/wzor/2023/06/29/12648/",
        "system_code": "FA (2)",
        "schema_version": "1-0E",
        "variant": "2",
        "syntax": SYNTAX_FA2,
    },
    KSEF_FA3: {
        "namespace": "http://crd.gov.pl/wzor/2025/06/25/13775/",
        "system_code": "FA (3)",
        "schema_version": "1-0E",
        "variant": "3",
        "syntax": SYNTAX_FA3,
    },
}

RODZAJ_FAKTURY = {
    CREDIT_NOTE: "KOR",
    CORRECTIVE_INVOICE: "KOR",
    DEPOSIT_INVOICE: "ZAL",
}

# FormaPlatnosci: 1 cash, 4 cheque, 6 transfer, 7 mobile
FORMA_PLATNOSCI = {
    "CASH": "1",
    "CHECK": "4",
    "BANK_TRANSFER": "6",
    "PAYPAL": "7",
}

# Rate → suffix of the P_13_x / P_14_x summary pair
_RATE_FIELDS = {
    Decimal("23"): "1",
    Decimal("22"): "1",
    Decimal("8"): "2",
    Decimal("7"): "2",
    Decimal("5"): "3",
}
ZERO_RATE_FIELD = "6_1"
EXEMPT_FIELD = "7"
REVERSE_CHARGE_FIELD = "10"

# Fields carrying a net amount only
_NET_ONLY = (ZERO_RATE_FIELD, EXEMPT_FIELD, REVERSE_CHARGE_FIELD)


def _nip(value: str | None) -> str:
    digits = clean(value)
    return digits[2:] if digits.startswith("PL") else digits


def rate_field(rate, *, exempt: bool = False, reverse_charge: bool = False) -> str:
    if reverse_charge:
        return REVERSE_CHARGE_FIELD
    if exempt:
        return EXEMPT_FIELD
    rate = to_decimal(rate)
    if rate == ZERO:
        return ZERO_RATE_FIELD
    return _RATE_FIELDS.get(rate, "1")


def line_rate_code(item: LineItem, reverse_charge: bool) -> str:
    """P_12: numeric rate, ``zw`` exempt, ``np`` taxed in the buyer's country."""
    if reverse_charge:
        return "np"
    if item.is_exempt:
        return "zw"
    return f"{item.vat_rate.normalize():f}"


class KSeFGenerator(FormatGenerator):
    """FA(2) structured invoice."""

    formats = (KSEF,)
    schema = SCHEMAS[KSEF]

    @property
    def syntax(self) -> str:
        return self.schema["syntax"]

    @property
    def version(self) -> str:
        return "1-0E"

    def build(self, data: DocumentData, fmt: str, config: FormatConfig) -> etree._Element:
        require_totals(data)
        schema = self.schema
        ns = schema["namespace"]
        root = etree.Element(f"{{{ns}}}Faktura", nsmap={None: ns})

        def el(parent, tag, text=None, **attribs):
            return sub_element(parent, ns, tag, text, **attribs)

        naglowek = el(root, "Naglowek")
        el(naglowek, "KodFormularza", "FA",
           kodSystemowy=schema["system_code"], wersjaSchemy=schema["schema_version"])
        el(naglowek, "WariantFormularza", schema["variant"])
        el(naglowek, "DataWytworzeniaFa",
           generated_at(data, config).strftime("%Y-%m-%dT%H:%M:%SZ"))
        el(naglowek, "SystemInfo", config.system_info)

        self._add_seller(el, root, data.supplier)
        self._add_buyer(el, root, data.customer)
        self._add_fa(el, root, data)
        return root

    @staticmethod
    def _add_address(el, parent, party: PartyData) -> None:
        adres = el(parent, "Adres")
        el(adres, "KodKraju", party.country_code)
        lines = [line for line in (party.address or "").splitlines() if line.strip()]
        el(adres, "AdresL1", ", ".join(lines) or party.name)
        locality = " ".join(p for p in (party.postal_code, party.city) if p)
        if locality:
            el(adres, "AdresL2", locality)

    @staticmethod
    def _add_contact(el, parent, party: PartyData) -> None:
        if party.email or party.phone:
            kontakt = el(parent, "DaneKontaktowe")
            if party.email:
                el(kontakt, "Email", party.email)
            if party.phone:
                el(kontakt, "Telefon", party.phone)

    def _add_seller(self, el, root, party: PartyData) -> None:
        podmiot = el(root, "Podmiot1")
        dane = el(podmiot, "DaneIdentyfikacyjne")
        el(dane, "NIP", require(_nip(party.identifier("nip", "vat")), "Seller NIP"))
        el(dane, "Nazwa", party.name)
        self._add_address(el, podmiot, party)
        self._add_contact(el, podmiot, party)

    def _add_buyer(self, el, root, party: PartyData) -> None:
        podmiot = el(root, "Podmiot2")
        dane = el(podmiot, "DaneIdentyfikacyjne")
        country = party.country_code
        nip = _nip(party.identifier("nip", "vat"))
        if country == "PL" and nip:
            el(dane, "NIP", nip)
        elif party.vat_number and party.vat_number[:2].isalpha():
            vat = clean(party.vat_number)
            el(dane, "KodUE", vat[:2])
            el(dane, "NrVatUE", vat[2:])
        elif party.has_identifier:
            el(dane, "KodKraju", country)
            el(dane, "NrID", party.legal_id or party.identifier("nip") or "")
        else:
            el(dane, "BrakID", "1")
        el(dane, "Nazwa", party.name)
        self._add_address(el, podmiot, party)
        self._add_contact(el, podmiot, party)
        if self.schema["syntax"] == SYNTAX_FA3:
            el(podmiot, "JST", "1" if party.is_public_entity else "2")
            el(podmiot, "GV", "2")

    def _add_fa(self, el, root, d: DocumentData) -> None:
        totals = d.totals
        reverse_charge = is_reverse_charge(d)
        exempt = any(entry.is_exempt for entry in totals.breakdown)

        fa = el(root, "Fa")
        el(fa, "KodWaluty", d.currency)
        el(fa, "P_1", fmt_date_iso(d.issue_date))
        el(fa, "P_2", d.number)

        # Summary per rate field, in schema order
        sums: dict[str, list[Decimal]] = {}
        for entry in totals.breakdown:
            key = rate_field(entry.rate, exempt=entry.is_exempt, reverse_charge=reverse_charge)
            net, vat = sums.setdefault(key, [ZERO, ZERO])
            sums[key] = [net + entry.base_amount, vat + entry.vat_amount]
        for key in sorted(sums, key=lambda k: [int(p) for p in k.split("_")]):
            net, vat = sums[key]
            el(fa, f"P_13_{key}", fmt_amount(net))
            if key not in _NET_ONLY:
                el(fa, f"P_14_{key}", fmt_amount(vat))
        el(fa, "P_15", fmt_amount(totals.total_ttc))

        adnotacje = el(fa, "Adnotacje")
        el(adnotacje, "P_16", "2")  # cash accounting
        el(adnotacje, "P_17", "2")  # self-billing
        el(adnotacje, "P_18", "1" if reverse_charge else "2")
        el(adnotacje, "P_18A", "2")  # split payment
        zwolnienie = el(adnotacje, "Zwolnienie")
        if exempt:
            el(zwolnienie, "P_19", "1")
            el(zwolnienie, "P_19A", d.notes or "Zwolnienie z VAT")
        else:
            el(zwolnienie, "P_19N", "1")
        transport = el(adnotacje, "NoweSrodkiTransportu")
        el(transport, "P_22N", "1")
        el(adnotacje, "P_23", "2")
        marza = el(adnotacje, "PMarzy")
        el(marza, "P_PMarzyN", "1")

        el(fa, "RodzajFaktury", RODZAJ_FAKTURY.get(d.document_type, "VAT"))
        if RODZAJ_FAKTURY.get(d.document_type) == "KOR":
            if d.correction_reason:
                el(fa, "PrzyczynaKorekty", d.correction_reason)
            korygowana = el(fa, "DaneFaKorygowanej")
            el(korygowana, "DataWystFaKorygowanej", fmt_date_iso(
                require(d.original_invoice_date, "Corrected invoice date (original_invoice_date)")))
            el(korygowana, "NrFaKorygowanej",
               require(d.original_invoice_number or d.original_invoice_ref, "Corrected invoice number"))
            if d.platform_id:
                el(korygowana, "NrKSeF", "1")
                el(korygowana, "NrKSeFFaKorygowanej", d.platform_id)
            else:
                el(korygowana, "NrKSeFN", "1")

        for position, item in enumerate(d.items, start=1):
            wiersz = el(fa, "FaWiersz")
            el(wiersz, "NrWierszaFa", str(position))
            el(wiersz, "P_7", item.description)
            el(wiersz, "P_8A", item.unit_code or ("szt." if item.kind == "goods" else "usł."))
            el(wiersz, "P_8B", fmt_quantity(item.quantity))
            el(wiersz, "P_9A", fmt_amount(item.unit_price))
            el(wiersz, "P_11", fmt_amount(item.line_total))
            el(wiersz, "P_12", line_rate_code(item, reverse_charge))

        platnosc = el(fa, "Platnosc")
        if d.due_date:
            termin = el(platnosc, "TerminPlatnosci")
            el(termin, "Termin", fmt_date_iso(d.due_date))
        el(platnosc, "FormaPlatnosci",
           FORMA_PLATNOSCI.get((d.payment_method or "").upper(), "6"))
        iban = d.supplier.identifier("iban")
        if iban:
            rachunek = el(platnosc, "RachunekBankowy")
            el(rachunek, "NrRB", clean(iban))


class KSeFFA3Generator(KSeFGenerator):
    """FA(3) structured invoice."""

    formats = (KSEF_FA3,)
    schema = SCHEMAS[KSEF_FA3]
