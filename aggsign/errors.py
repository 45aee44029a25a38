# aggsign/errors.py
"""
Error taxonomy. Construction errors surface before anything is signed;
attestation errors are fatal to one request only.
"""


class AggsignError(Exception):
    """Base class for all aggsign errors."""


class SchemaError(AggsignError, ValueError):
    """Unknown or unsupported type in a typed-data schema."""


class CanonicalizationError(AggsignError, ValueError):
    """Document does not fit its schema (missing field, type mismatch, bad encoding)."""


class AttestationError(AggsignError):
    """A single attestation request cannot be proven."""


class SignatureInvalid(AttestationError):
    pass


class RangeOutOfBounds(AttestationError):
    pass


class SliceNotCanonical(AttestationError):
    pass


class ProofGenerationFailure(AggsignError):
    """The proving backend failed. Safe to retry, inputs are deterministic."""


class AttestationFormatError(AggsignError, ValueError):
    """Attestation bytes / seal cannot be decoded."""
