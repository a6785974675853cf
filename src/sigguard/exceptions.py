"""Sigguard error hierarchy."""


class SigguardError(Exception):
    """Base exception for all sigguard errors."""


# --- Configuration (startup-time, fatal) ---

class ConfigError(SigguardError):
    """The gate cannot be constructed from the given configuration."""


class MissingKeyError(ConfigError):
    """No public key was supplied."""


class InvalidKeyEncodingError(ConfigError):
    """The public key is not 32 bytes of hex."""


# --- Decoding ---

class DecodeError(SigguardError):
    """Hex key or signature material could not be decoded."""


class InvalidHexError(DecodeError):
    """Input contains non-hex characters or has odd length."""


class WrongKeyLengthError(DecodeError):
    """Decoded public key is not exactly 32 bytes."""


class WrongSignatureLengthError(DecodeError):
    """Decoded signature is not exactly 64 bytes."""


class MissingSignatureHeaderError(DecodeError):
    """The signature header is absent from the request."""


# --- Per-request ---

class RequestError(SigguardError):
    """A request failed authentication."""


class MalformedSignatureHeaderError(RequestError):
    """Signature header is missing or could not be decoded."""


class SignatureVerificationFailedError(RequestError):
    """Ed25519 signature verification failed."""
