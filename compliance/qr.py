"""
QR code content for jurisdictions that print a verification code.

The content string depends on the country: Portugal prints the ATCUD
structured string, Spain a VeriFactu validation URL and Poland a KSeF
verification link.  Other countries with a QR policy get the generic
``nif*number*total*hash`` string.  A ``qr_code`` already on the document
(e.g. the signed QR returned by India's IRP) is printed unchanged.
"""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from compliance.countries.base import CountryConfig
from compliance.hashchain import hash_for_qr
from compliance.helpers import ZERO, to_decimal
from compliance.model import DocumentData

logger = logging.getLogger(__name__)

VERIFACTU_URL = "https://www2.agenciatributaria.gob.es/wlpl/TIKE-CONT/ValidarQR"
KSEF_VERIFY_URL = "https://qr.ksef.mf.gov.pl/invoice"

# ATCUD field pairs (base, VAT) per Portuguese mainland rate
_PT_RATE_FIELDS = {
    to_decimal("6"): ("I3", "I4"),
    to_decimal("13"): ("I5", "I6"),
    to_decimal("23"): ("I7", "I8"),
}

_PT_DOCUMENT_TYPES = {
    "credit-note": "NC",
    "corrective-invoice": "ND",
    "receipt": "FR",
}

CONSUMER = "Consumidor final"


def _amount(value) -> str:
    return f"{to_decimal(value):.2f}"


def _digits(value: str | None) -> str:
    value = (value or "").replace(" ", "").upper()
    return value[2:] if len(value) > 2 and value[:2].isalpha() else value


def _supplier_nif(data: DocumentData) -> str:
    supplier = data.supplier
    return _digits(supplier.identifier("nif", "nip", "vat", "legal"))


def portugal_content(data: DocumentData) -> str:
    """``A:NIF*B:NIF cliente*C:país*...*Q:hash*R:certificado``."""
    totals = data.totals
    customer = data.customer
    parts = [
        f"A:{_supplier_nif(data)}",
        f"B:{_digits(customer.identifier('nif', 'vat')) or CONSUMER}",
        f"C:{customer.country_code or 'PT'}",
        f"D:{_PT_DOCUMENT_TYPES.get(data.document_type, 'FT')}",
        "E:N",
        f"F:{data.issue_date:%Y%m%d}",
        f"G:{data.number}",
        f"H:{data.atcud or '0'}",
        "I1:PT",
    ]
    exempt = sum((e.base_amount for e in totals.breakdown if e.is_exempt), ZERO)
    if exempt:
        parts.append(f"I2:{_amount(exempt)}")
    for entry in totals.breakdown:
        pair = _PT_RATE_FIELDS.get(entry.rate)
        if pair and not entry.is_exempt:
            parts.append(f"{pair[0]}:{_amount(entry.base_amount)}")
            parts.append(f"{pair[1]}:{_amount(entry.vat_amount)}")
    certificate = (data.supplier.identifier("softwareCertificado") or "0").split("/")[0]
    parts += [
        f"N:{_amount(totals.total_vat)}",
        f"O:{_amount(totals.total_ttc)}",
        f"Q:{hash_for_qr(data.document_hash) if data.document_hash else '****'}",
        f"R:{certificate}",
    ]
    return "*".join(parts)


def spain_content(data: DocumentData) -> str:
    params = {
        "nif": _supplier_nif(data),
        "numserie": data.number,
        "fecha": f"{data.issue_date:%d-%m-%Y}",
        "importe": _amount(data.totals.total_ttc),
    }
    if data.document_hash:
        params["huella"] = hash_for_qr(data.document_hash, 8)
    return f"{VERIFACTU_URL}?{urlencode(params)}"


def poland_content(data: DocumentData) -> str | None:
    """KSeF link: seller NIP, issue date and the base64url SHA-256 of the invoice XML."""
    if not data.document_hash:
        return None
    digest = data.document_hash.replace("+", "-").replace("/", "_").rstrip("=")
    return f"{KSEF_VERIFY_URL}/{_supplier_nif(data)}/{data.issue_date:%d-%m-%Y}/{digest}"


def generic_content(data: DocumentData) -> str:
    return "*".join([
        _supplier_nif(data),
        data.number,
        _amount(data.totals.total_ttc),
        hash_for_qr(data.document_hash) if data.document_hash else "****",
    ])


BUILDERS = {
    "PT": portugal_content,
    "ES": spain_content,
    "PL": poland_content,
}


def qr_content(data: DocumentData, config: CountryConfig) -> str | None:
    """Content of the QR code to print on *data*, or None when none applies."""
    if data.qr_code:
        return data.qr_code
    if not config.qr_code.required or data.totals is None:
        return None
    builder = BUILDERS.get(config.code, generic_content)
    content = builder(data)
    if content is None:
        logger.warning("No QR content for %s %s: document hash missing", config.code, data.number)
    return content


def printed_hash(data: DocumentData, config: CountryConfig) -> str | None:
    """Hash printed next to the QR code when the country chains invoice hashes.

    Portugal prints the four-character excerpt, other countries the full value.
    """
    if not data.document_hash or not config.numbering.hash_chaining:
        return None
    if config.code == "PT":
        return hash_for_qr(data.document_hash)
    return data.document_hash
