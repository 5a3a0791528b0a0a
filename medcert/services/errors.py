"""Certificate subsystem exceptions.

Route handlers translate these into HTTP responses.  Verification never
raises them for unknown or revoked certificates; those are ordinary
negative results.
"""

from __future__ import annotations


class CertificateError(Exception):
    pass


class NotFound(CertificateError):
    pass


class CertificateNotFound(NotFound):
    pass


class RegistrationNotFound(NotFound):
    pass


class NotEligible(CertificateError):
    pass


class DuplicateRegistration(CertificateError):
    """The ledger already holds a certificate for this registration."""


class DuplicateCertificateNumber(CertificateError):
    """The generated number is already taken."""


class IssuanceFailed(CertificateError):
    pass


class EncodingFailure(CertificateError):
    pass


class AlreadyRevoked(CertificateError):
    pass


class ReasonRequired(CertificateError, ValueError):
    pass
