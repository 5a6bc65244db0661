# phylodash/services/errors.py
from __future__ import annotations


class PhyloDashError(Exception):
    """Base class for every error raised by the service layer."""


class TransportError(PhyloDashError):
    """Timeout, abort or network failure that survived the retry budget."""


class RemoteServiceError(PhyloDashError):
    """An upstream tool answered, but not with something we can use."""


class SubmissionError(RemoteServiceError):
    pass


class StatusError(RemoteServiceError):
    pass


class ResultError(RemoteServiceError):
    pass


class TokenError(PhyloDashError):
    """A composite job token is missing a field its stage requires."""


class ValidationError(PhyloDashError):
    """Caller input rejected before any remote interaction."""
