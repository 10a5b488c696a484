"""
Jurisdiction compliance and document-generation engine.

Resolves country tax rules, computes VAT breakdowns, renders PDFs and
serializes e-invoice XML (UBL, CII / Factur-X, FatturaPA, KSeF).
"""

__version__ = "1.0.0"
