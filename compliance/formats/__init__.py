"""
E-invoice XML generators.

Usage:
    from compliance.formats import generate

    result = generate(document, "facturx")
    if result.success:
        xml = result.xml

The registry is an immutable tuple built at import time.  Lookups scan it
with ``supports()``; an unsupported format yields a failed
``FormatResult`` instead of an exception.
"""
from __future__ import annotations

import logging

from compliance.formats.base import (
    CII, FACTURX, FATTURAPA, KSEF, KSEF_FA3, OUTPUT_FORMATS, PDF, PEPPOL_BIS, UBL,
    XRECHNUNG, ZUGFERD, FormatConfig, FormatGenerator, FormatResult,
)
from compliance.formats.cii import CIIGenerator
from compliance.formats.fatturapa import FatturaPAGenerator
from compliance.formats.ksef import KSeFFA3Generator, KSeFGenerator
from compliance.formats.ubl import UBLGenerator
from compliance.model import DocumentData

logger = logging.getLogger(__name__)

GENERATORS: tuple[FormatGenerator, ...] = (
    CIIGenerator(),
    UBLGenerator(),
    FatturaPAGenerator(),
    KSeFGenerator(),
    KSeFFA3Generator(),
)

__all__ = [
    "CII", "FACTURX", "FATTURAPA", "KSEF", "KSEF_FA3", "OUTPUT_FORMATS", "PDF",
    "PEPPOL_BIS", "UBL", "XRECHNUNG", "ZUGFERD",
    "FormatConfig", "FormatGenerator", "FormatResult", "GENERATORS",
    "generate", "get_generator", "supported_formats", "syntax_for",
]


def get_generator(fmt: str, generators: tuple[FormatGenerator, ...] = GENERATORS) -> FormatGenerator | None:
    """First generator supporting *fmt*, or ``None`` (e.g. for ``pdf``)."""
    fmt = (fmt or "").lower()
    for generator in generators:
        if generator.supports(fmt):
            return generator
    return None


def generate(
    data: DocumentData,
    fmt: str,
    config: FormatConfig | None = None,
    generators: tuple[FormatGenerator, ...] = GENERATORS,
) -> FormatResult:
    """Generate *fmt* XML for *data*; never raises for an unsupported format."""
    generator = get_generator(fmt, generators)
    if generator is None:
        logger.warning("No XML generator for format %s", fmt)
        return FormatResult.fail(fmt, f"Unsupported format '{fmt}'")
    return generator.generate(data, fmt.lower(), config)


def supported_formats(generators: tuple[FormatGenerator, ...] = GENERATORS) -> list[str]:
    """XML format tokens with a registered generator, in registry order."""
    return [fmt for generator in generators for fmt in generator.formats]


def syntax_for(fmt: str) -> str | None:
    generator = get_generator(fmt)
    return generator.syntax if generator else None
