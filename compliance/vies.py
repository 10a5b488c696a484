"""
EU VIES VAT-number check.

Fail-open: when VIES is unreachable or answers with an error, the number
is accepted.  Successful answers are cached per client for
``VIES_CACHE_TTL`` seconds.
"""
from __future__ import annotations

import logging
import re
import time

import requests
from lxml import etree

from compliance.formats.base import parse_xml, sub_element
from compliance.settings import Settings, load_settings

logger = logging.getLogger(__name__)

NS_SOAP = "http://schemas.xmlsoap.org/soap/envelope/"
NS_VIES = "urn:ec.europa.eu:taxud:vies:services:checkVat:types"


def normalize_vat_number(value: str) -> str:
    return re.sub(r"\s", "", value or "").upper()


def build_envelope(country: str, number: str) -> bytes:
    """``checkVat`` SOAP request for *country* and the national part *number*."""
    envelope = etree.Element(f"{{{NS_SOAP}}}Envelope", nsmap={"soapenv": NS_SOAP, "urn": NS_VIES})
    sub_element(envelope, NS_SOAP, "Header")
    body = sub_element(envelope, NS_SOAP, "Body")
    check = sub_element(body, NS_VIES, "checkVat")
    sub_element(check, NS_VIES, "countryCode", country)
    sub_element(check, NS_VIES, "vatNumber", number)
    return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")


def parse_valid(reply: str | bytes) -> bool:
    """The ``valid`` flag of a ``checkVatResponse``, whatever its namespace prefix.

    Raises:
        lxml.etree.XMLSyntaxError: *reply* is not well-formed.
    """
    root = parse_xml(reply)
    valid = next(root.iter("{*}valid"), None)
    return valid is not None and (valid.text or "").strip().lower() == "true"


class VIESClient:
    """Small SOAP client for the ``checkVat`` operation."""

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        self.settings = settings or load_settings()
        self.session = session or requests.Session()
        self._cache: dict[str, tuple[bool, float]] = {}

    def _call(self, vat_number: str) -> bool:
        body = build_envelope(vat_number[:2], vat_number[2:])
        resp = self.session.post(
            self.settings.vies_url,
            data=body,
            headers={"Content-Type": "text/xml;charset=UTF-8", "SOAPAction": ""},
            timeout=self.settings.vies_timeout,
        )
        resp.raise_for_status()
        return parse_valid(resp.text)

    def validate(self, vat_number: str) -> bool:
        """True if VIES confirms *vat_number*, or if VIES could not be reached."""
        normalized = normalize_vat_number(vat_number)
        if len(normalized) < 3:
            return False

        cached = self._cache.get(normalized)
        if cached and time.monotonic() - cached[1] < self.settings.vies_cache_ttl:
            return cached[0]

        try:
            valid = self._call(normalized)
        except (requests.RequestException, etree.XMLSyntaxError) as e:
            logger.warning("VIES check failed for %s, accepting (fail-open): %s", normalized, e)
            return True

        self._cache[normalized] = (valid, time.monotonic())
        return valid

    def clear_cache(self):
        self._cache.clear()
