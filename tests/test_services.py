"""
Unit tests for numbering, hash chaining, corrections, identifiers,
transmission capabilities and the VIES client.
"""
import base64
import dataclasses
import hashlib
from decimal import Decimal

import pytest
import requests
from lxml import etree

from compliance import countries
from compliance.countries.base import CorrectionPolicy, NumberingPolicy
from compliance.corrections import (
    CorrectionRequest, IssuedInvoice, build_credit_note, can_modify_directly,
)
from compliance.hashchain import (
    INITIAL_HASH, ChainEntry, HashInput, compute_hash, hash_changed, hash_for_qr,
    hash_invoice, hash_invoice_es, hash_invoice_pt, verify_chain,
)
from compliance.identifiers import (
    clean, format_identifier, luhn_valid, nip_valid, peppol_participant_id,
)
from compliance.model import PartyData, VATBreakdownEntry, VATResult
from compliance.numbering import find_gaps, format_number, next_sequence, should_reset
from compliance.settings import Settings
from compliance.transmission import (
    TransmissionStatus, transmission_capability,
)
from compliance.vies import VIESClient, normalize_vat_number, parse_valid


class TestNumbering:
    """Sequential document numbers"""

    def test_french_invoice_and_credit_note(self):
        """Test the FA / AV prefixes with a six-digit counter"""
        policy = countries.get("FR").numbering

        assert format_number(1, policy, year=2026) == "FA2026-000001"
        assert format_number(42, policy, year=2026, document_type="credit-note") == "AV2026-000042"

    def test_series_required(self):
        """Test that Spain refuses a number without series"""
        policy = countries.get("ES").numbering

        with pytest.raises(ValueError, match="series"):
            format_number(1, policy, year=2026)
        assert format_number(7, policy, year=2026, series="A") == "FA2026-000007"

    def test_portuguese_format(self):
        """Test the ``FT series/seq`` layout"""
        assert format_number(15, countries.get("PT").numbering, year=2026, series="2026") == "FT 2026/15"

    def test_sequence_must_be_positive(self):
        """Test that zero is rejected"""
        with pytest.raises(ValueError, match="positive"):
            format_number(0, NumberingPolicy(), year=2026)

    @pytest.mark.parametrize("period, last, current, expected", [
        ("yearly", (2025, 12), (2026, 1), True),
        ("yearly", (2026, 1), (2026, 2), False),
        ("monthly", (2026, 1), (2026, 2), True),
        ("monthly", (2026, 2), (2026, 2), False),
        ("never", (2025, 12), (2026, 1), False),
    ])
    def test_should_reset(self, period, last, current, expected):
        """Test counter resets per period"""
        policy = NumberingPolicy(reset_period=period)
        assert should_reset(*last, policy, year=current[0], month=current[1]) is expected

    def test_first_document_never_resets(self):
        """Test that an empty history keeps counting from the start"""
        assert should_reset(None, None, NumberingPolicy(reset_period="yearly"), year=2026, month=1) is False

    def test_next_sequence(self):
        """Test increment and restart"""
        assert next_sequence(41, reset=False) == 42
        assert next_sequence(41, reset=True) == 1

    def test_find_gaps(self):
        """Test detection of missing numbers"""
        assert find_gaps([1, 2, 5, 3, 8]) == [4, 6, 7]
        assert find_gaps([]) == []


class TestHashChain:
    """Tamper-evident invoice hashing"""

    def test_compute_hash_is_base64_sha256(self):
        """Test the digest encoding"""
        expected = base64.b64encode(hashlib.sha256(b"abc").digest()).decode("ascii")
        assert compute_hash("abc") == expected
        assert compute_hash("abc", "sha-256") == expected

    def test_unknown_algorithm_falls_back(self):
        """Test that an unknown algorithm uses SHA-256"""
        assert compute_hash("abc", "MD4X") == compute_hash("abc")

    def test_spanish_input_string(self):
        """Test field order and separators of the Verifactu input"""
        data = HashInput(invoice_number="FA2026-000001", issue_date="2026-03-15",
                         total_ttc=Decimal("121"), supplier_nif="B12345678")

        result = hash_invoice_es(data)

        assert result.input_string == "B12345678|FA2026-000001|2026-03-15|121.00||0"
        assert result.hash == compute_hash(result.input_string)

    def test_portuguese_uses_sha1(self):
        """Test the SAF-T input string and SHA-1 digest"""
        data = HashInput(invoice_number="FT 2026/1", issue_date="2026-03-15",
                         total_ttc=Decimal("123.456"), previous_hash="")

        result = hash_invoice_pt(data)

        assert result.input_string == "2026-03-15;2026-03-15;FT 2026/1;123.46;"
        expected = base64.b64encode(hashlib.sha1(result.input_string.encode()).digest()).decode()
        assert result.hash == expected

    def test_default_fields(self):
        """Test the default ``;``-joined field list"""
        data = HashInput(invoice_number="INV-1", issue_date="2026-01-02", total_ttc=10)
        assert hash_invoice(data).input_string == "INV-1;2026-01-02;10.00;0"

    def _chain(self, count=3):
        entries = []
        previous = INITIAL_HASH
        for seq in range(1, count + 1):
            data = HashInput(invoice_number=f"INV-{seq}", issue_date="2026-01-0%d" % seq,
                             total_ttc=Decimal(seq * 100), previous_hash=previous)
            digest = hash_invoice(data).hash
            entries.append(ChainEntry(sequence=seq, data=data, hash=digest))
            previous = digest
        return entries

    def test_valid_chain(self):
        """Test that an untouched chain verifies"""
        assert verify_chain(self._chain()).valid

    def test_chain_order_does_not_matter(self):
        """Test that entries are sorted by sequence first"""
        assert verify_chain(list(reversed(self._chain()))).valid

    def test_altered_amount_is_detected(self):
        """Test that changing stored data breaks the chain"""
        entries = self._chain()
        tampered = dataclasses.replace(entries[1].data, total_ttc=Decimal("999"))
        entries[1] = ChainEntry(sequence=2, data=tampered, hash=entries[1].hash)

        result = verify_chain(entries)

        assert not result.valid
        assert result.broken_at == 2
        assert "Hash mismatch" in result.message

    def test_broken_link_is_detected(self):
        """Test that a removed entry breaks the next link"""
        entries = self._chain()
        del entries[1]

        result = verify_chain(entries)

        assert not result.valid
        assert result.broken_at == 3
        assert "previousHash mismatch" in result.message

    def test_hash_changed(self):
        """Test comparison against the last-seen hash"""
        assert hash_changed(None, "abc")
        assert hash_changed("abc", "abd")
        assert not hash_changed("abc", "abc")

    def test_hash_for_qr(self):
        """Test the printed hash excerpt"""
        assert hash_for_qr("AbCdEfGh") == "AbCd"


@pytest.fixture
def issued():
    totals = VATResult(
        total_ht=Decimal("1000.00"), total_vat=Decimal("200.00"), total_ttc=Decimal("1200.00"),
        breakdown=(VATBreakdownEntry(rate=Decimal("20"), base_amount=Decimal("1000.00"),
                                     vat_amount=Decimal("200.00")),),
    )
    return IssuedInvoice(number="FA2026-000010", issue_date="2026-03-01", totals=totals)


class TestCorrections:
    """Credit notes for issued invoices"""

    def test_french_invoice_cannot_be_modified(self, issued):
        """Test that France forbids direct modification"""
        assert not can_modify_directly(issued, countries.get("FR").correction)

    def test_us_draft_can_be_modified(self, issued):
        """Test that the US allows editing an untransmitted, open invoice"""
        policy = countries.get("US").correction

        assert can_modify_directly(issued, policy)
        assert not can_modify_directly(dataclasses.replace(issued, status="paid"), policy)
        assert not can_modify_directly(dataclasses.replace(issued, platform_id="X1"), policy)

    def test_full_credit_note(self, issued):
        """Test that a full credit negates every amount"""
        result = build_credit_note(issued, CorrectionRequest(reason="Order cancelled"),
                                   countries.get("FR").correction)

        note = result.credit_note
        assert result.can_correct
        assert result.method == "credit_note"
        assert note.original_invoice_ref == "FA2026-000010"
        assert note.reason_code == "381"
        assert note.totals.total_ttc == Decimal("-1200.00")
        assert note.totals.breakdown[0].vat_amount == Decimal("-200.00")
        assert note.items[0].quantity < 0

    def test_partial_credit_by_amount(self, issued):
        """Test a credit of half the gross amount"""
        result = build_credit_note(issued, CorrectionRequest(reason="Discount", partial_amount="600"),
                                   countries.get("FR").correction)

        totals = result.credit_note.totals
        assert totals.total_ht == Decimal("-500.00")
        assert totals.total_vat == Decimal("-100.00")
        assert totals.total_ttc == Decimal("-600.00")

    def test_partial_credit_by_items(self, issued):
        """Test that credited lines are forced negative and recomputed"""
        request = CorrectionRequest(reason="Returned goods",
                                    items=[{"description": "Lamp", "quantity": 2, "unitPrice": 50, "vatRate": 20}])

        result = build_credit_note(issued, request, countries.get("FR").correction, countries.get("FR").vat)

        assert result.credit_note.items[0].quantity == Decimal("-2")
        assert result.credit_note.totals.total_ttc == Decimal("-120.00")

    def test_pre_approval(self, issued):
        """Test that platforms requiring approval get no draft"""
        policy = CorrectionPolicy(allow_direct_modification=False, method="platform_request",
                                  requires_pre_approval=True)

        result = build_credit_note(issued, CorrectionRequest(reason="Error"), policy)

        assert result.requires_approval
        assert result.credit_note is None

    @pytest.mark.parametrize("request_kwargs, message", [
        ({"reason": " "}, "reason is required"),
        ({"reason": "x", "reason_code": "999"}, "Unknown correction code"),
        ({"reason": "x", "partial_amount": "0"}, "Partial amount"),
        ({"reason": "x", "partial_amount": "1200.01"}, "Partial amount"),
    ])
    def test_invalid_requests(self, issued, request_kwargs, message):
        """Test validation of reason, code and amount"""
        with pytest.raises(ValueError, match=message):
            build_credit_note(issued, CorrectionRequest(**request_kwargs), countries.get("IT").correction)


class TestIdentifiers:
    """Checksums and formatting"""

    def test_clean(self):
        assert clean(" 732 829-320.00074 ") == "73282932000074"

    def test_luhn(self):
        """Test a valid and an invalid SIRET"""
        assert luhn_valid("732 829 320 00074")
        assert not luhn_valid("73282932000075")
        assert not luhn_valid("ABC")

    def test_nip(self):
        """Test the Polish NIP checksum"""
        assert nip_valid("1234563218")
        assert nip_valid("PL 123-456-32-18")
        assert not nip_valid("1234563219")
        assert not nip_valid("12345")

    def test_format_identifier(self):
        """Test printed grouping"""
        assert format_identifier("73282932000074", "siret") == "732 829 320 00074"
        assert format_identifier("1234563218", "nip") == "123-456-32-18"
        assert format_identifier(" B12345678 ", "nif") == "B12345678"

    def test_peppol_participant_id(self, fr_supplier):
        """Test scheme:identifier derivation"""
        assert peppol_participant_id(fr_supplier, countries.get("FR")) == "0009:73282932000074"

    def test_explicit_peppol_id_wins(self, fr_supplier):
        party = PartyData(name=fr_supplier.name, country="FR", peppol_id="0088:123")
        assert peppol_participant_id(party, countries.get("FR")) == "0088:123"

    def test_peppol_falls_back_to_vat(self):
        """Test the VAT-based id when no identifier has a scheme"""
        party = PartyData(name="Rossi Srl", country="IT", vat_number="IT 12345678901")
        assert peppol_participant_id(party, countries.get("IT")) == "0211:IT12345678901"

    def test_no_scheme_no_id(self):
        party = PartyData(name="Acme Corp", country="US", legal_id="12-3456789")
        assert peppol_participant_id(party, countries.get("US")) is None


class TestTransmission:
    """Platform capability lookup"""

    def test_platform_channel(self):
        """Test that B2G in France goes to Chorus Pro"""
        policy = transmission_capability(countries.get("FR"), "b2g")
        assert policy.platform == "chorus"

    def test_email_only_channel(self):
        """Test that plain email gives no capability"""
        assert transmission_capability(countries.get("FR"), "b2c") is None
        assert transmission_capability(countries.get("XX"), "b2b") is None

    def test_unknown_channel(self):
        with pytest.raises(ValueError, match="Unknown channel"):
            transmission_capability(countries.get("FR"), "fax")

    def test_status_values(self):
        """Test that statuses serialize as plain strings"""
        assert TransmissionStatus.ACCEPTED == "ACCEPTED"


class FakeResponse:
    def __init__(self, text, status=200):
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append(data)
        if self.error:
            raise self.error
        return self.response


class TestVIES:
    """VIES checks with a fake HTTP session"""

    def _client(self, session):
        return VIESClient(settings=Settings(), session=session)

    def test_valid_number_is_cached(self):
        """Test that a confirmed number is only looked up once"""
        session = FakeSession(FakeResponse("<checkVatResponse><valid>true</valid></checkVatResponse>"))
        client = self._client(session)

        assert client.validate("de 123 456 789")
        assert client.validate("DE123456789")
        assert len(session.calls) == 1
        assert b"<urn:countryCode>DE</urn:countryCode>" in session.calls[0]
        assert b"<urn:vatNumber>123456789</urn:vatNumber>" in session.calls[0]

    def test_invalid_number(self):
        """Test that VIES rejection is returned"""
        session = FakeSession(FakeResponse("<checkVatResponse><valid>false</valid></checkVatResponse>"))
        assert not self._client(session).validate("FR00000000000")

    def test_prefixed_response(self):
        """Test that the namespaced SOAP answer is understood"""
        session = FakeSession(FakeResponse(
            '<env:Envelope xmlns:env="http://schemas.xmlsoap.org/soap/envelope/"><env:Body>'
            '<ns2:checkVatResponse xmlns:ns2="urn:ec.europa.eu:taxud:vies:services:checkVat:types">'
            '<ns2:valid>true</ns2:valid></ns2:checkVatResponse></env:Body></env:Envelope>'
        ))
        assert self._client(session).validate("DE123456789")

    def test_markup_in_number_is_escaped(self):
        """Test that markup characters in the number keep the request well-formed"""
        session = FakeSession(FakeResponse("<valid>false</valid>"))

        assert not self._client(session).validate("FR12&<x")

        request = etree.fromstring(session.calls[0])
        assert request.find(".//{*}countryCode").text == "FR"
        assert request.find(".//{*}vatNumber").text == "12&<X"

    def test_malformed_reply_fails_open(self):
        """Test that an unparseable answer accepts the number without caching it"""
        session = FakeSession(FakeResponse("<html><body>Service unavailable"))
        client = self._client(session)

        assert client.validate("DE123456789")
        assert client._cache == {}

    def test_parse_valid_ignores_other_elements(self):
        assert not parse_valid("<checkVatResponse><name>valid</name></checkVatResponse>")

    def test_unreachable_service_fails_open(self):
        """Test that network errors accept the number and skip the cache"""
        session = FakeSession(error=requests.ConnectionError("down"))
        client = self._client(session)

        assert client.validate("FR40303265045")
        assert client.validate("FR40303265045")
        assert len(session.calls) == 2

    def test_http_error_fails_open(self):
        session = FakeSession(FakeResponse("", status=503))
        assert self._client(session).validate("FR40303265045")

    def test_too_short_is_invalid(self):
        """Test that a bare country prefix never reaches VIES"""
        session = FakeSession(FakeResponse("<valid>true</valid>"))

        assert not self._client(session).validate("FR")
        assert session.calls == []

    def test_clear_cache(self):
        session = FakeSession(FakeResponse("<valid>true</valid>"))
        client = self._client(session)

        client.validate("BE0123456749")
        client.clear_cache()
        client.validate("BE0123456749")

        assert len(session.calls) == 2

    def test_normalize(self):
        assert normalize_vat_number(" fr 40 303265045 ") == "FR40303265045"
