"""Exception root for the SNS signature verification engine."""


class SignatureVerificationError(RuntimeError):
    """Base class for every failure inside the verification engine."""
