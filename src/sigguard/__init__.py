"""Sigguard — Ed25519 request signature gate for ASGI applications."""

from pathlib import Path

_VERSION_FILE = Path(__file__).resolve().parent.parent.parent / "VERSION"
__version__ = _VERSION_FILE.read_text().strip() if _VERSION_FILE.exists() else "0.1.0"

from sigguard.exceptions import (
    SigguardError,
    ConfigError,
    MissingKeyError,
    InvalidKeyEncodingError,
    DecodeError,
    RequestError,
)
from sigguard.config import AuthenticatorBuilder, builder_from_env, config_from_env
from sigguard.models import AuthenticationInfo, GateConfig, Policy, VerificationResult
from sigguard.middleware import (
    Ed25519AuthMiddleware,
    Ed25519Authenticator,
    get_authentication_info,
    require_authenticated,
)

__all__ = [
    "__version__",
    "SigguardError",
    "ConfigError",
    "MissingKeyError",
    "InvalidKeyEncodingError",
    "DecodeError",
    "RequestError",
    "AuthenticatorBuilder",
    "builder_from_env",
    "config_from_env",
    "AuthenticationInfo",
    "GateConfig",
    "Policy",
    "VerificationResult",
    "Ed25519AuthMiddleware",
    "Ed25519Authenticator",
    "get_authentication_info",
    "require_authenticated",
]
