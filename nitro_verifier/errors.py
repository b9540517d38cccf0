"""
Exceptions raised by the verification pipeline

Each stage raises its own subclass so callers can tell a corrupt or forged
document apart from a document whose chain is simply not trusted. Chain
distrust is not an exception; it is carried on the result.
"""


class AttestationError(Exception):
    """Base class for fatal attestation document errors"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class EnvelopeFormatError(AttestationError):
    """The COSE_Sign1 envelope is not a well-formed four element array"""


class PayloadDecodeError(AttestationError):
    """The CBOR payload is malformed or a required field has the wrong type"""


class ValidationError(AttestationError):
    """A decoded field violates a structural or semantic rule"""


class X509Error(AttestationError):
    """A certificate cannot be parsed or carries an unsupported key"""


class SignatureVerificationError(AttestationError):
    """The envelope signature does not verify against the leaf key"""


class AnchorError(AttestationError):
    """The trust anchor file cannot be loaded or does not match its pin"""
