"""Error kinds raised by token verification and issuance.

Each kind carries a stable ``code`` and an HTTP ``status_code`` so the
request layer can map it to a protocol response without matching on
messages. Failures of a remote party map to 502, rejections to 401.
"""


class LTIAuthError(Exception):
    """Base class for all verification and issuance failures."""

    code = "LTIAuthError"
    status_code = 401

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.code
        super().__init__(self.message)


class NoPlatformRegisteredError(LTIAuthError):
    code = "NoPlatformRegistered"


class MissingKeyIdentifierError(LTIAuthError):
    code = "MissingKeyIdentifier"


class KeySetFetchError(LTIAuthError):
    code = "KeySetFetchFailed"
    status_code = 502


class EmptyKeySetError(LTIAuthError):
    code = "EmptyKeySet"


class KeyNotFoundError(LTIAuthError):
    code = "KeyNotFound"


class UnsupportedStrategyError(LTIAuthError):
    code = "UnsupportedStrategy"


class SignatureVerificationError(LTIAuthError):
    code = "SignatureVerificationFailed"


class AudienceMismatchError(LTIAuthError):
    code = "AudienceMismatch"


class AuthorizedPartyMismatchError(LTIAuthError):
    code = "AuthorizedPartyMismatch"


class UnsupportedAlgorithmError(LTIAuthError):
    code = "UnsupportedAlgorithm"


class TokenExpiredError(LTIAuthError):
    code = "TokenExpired"


class NonceReusedError(LTIAuthError):
    code = "NonceReused"


class TokenEndpointError(LTIAuthError):
    code = "TokenEndpointError"
    status_code = 502
