"""
Exception taxonomy for the compliance engine.

Unknown countries and unsupported formats are not errors: the registry
falls back to the generic config and the format registry returns a
failed ``FormatResult``.  The classes below cover what remains.
"""
from __future__ import annotations


class ComplianceError(Exception):
    """Base class for all engine errors."""


class ConfigurationMissingError(ComplianceError, LookupError):
    """A company profile lacks a sub-configuration needed to issue documents."""


class RenderError(ComplianceError, RuntimeError):
    """Rasterization failed. Always propagated to the caller."""


class RenderTimeoutError(RenderError):
    """Rasterization exceeded the configured time bound."""


class EmbeddingError(ComplianceError):
    """XML could not be attached to the PDF container."""


class FormatUnavailableError(ComplianceError, ValueError):
    """An XML-only format was requested but no XML payload could be produced."""
