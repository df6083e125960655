# ============================================================================
# core/exceptions.py - Domain Errors
# ============================================================================


class FreightDeskError(Exception):
    """Base exception for all application errors."""

    status_code = 500


class NotFoundError(FreightDeskError):
    """Referenced user, truck, invoice or claim does not exist."""

    status_code = 404


class ConflictError(FreightDeskError):
    """Duplicate claim for an invoice or an invoice number collision."""

    status_code = 409


class InvalidInputError(FreightDeskError):
    """Missing conditional fields, missing files or an incomplete filter."""

    status_code = 400


class UpstreamError(FreightDeskError):
    """A third-party provider or IO step failed."""

    status_code = 502


class PdfGenerationError(UpstreamError):
    pass
