"""Encryption of repository access tokens at rest (Fernet)."""

from cryptography.fernet import Fernet, InvalidToken

from team_pulse.config import get_secret_key
from team_pulse.errors import ValidationError


def _fernet(key: str | None) -> Fernet:
    key = key or get_secret_key()
    if not key:
        raise ValidationError(
            "TEAM_PULSE_SECRET_KEY is required to store access tokens.\n"
            "Generate one with: team-pulse generate-key"
        )
    try:
        return Fernet(key.encode("utf-8"))
    except ValueError as e:
        raise ValidationError(f"TEAM_PULSE_SECRET_KEY is not a valid Fernet key: {e}") from e


def generate_key() -> str:
    return Fernet.generate_key().decode("utf-8")


def encrypt_token(token: str, key: str | None = None) -> str:
    return _fernet(key).encrypt(token.encode("utf-8")).decode("utf-8")


def decrypt_token(encrypted_token: str, key: str | None = None) -> str:
    """
    Decrypt a stored token.

    Raises:
        ValidationError: If the key is missing or does not match the token.
    """
    try:
        return _fernet(key).decrypt(encrypted_token.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise ValidationError("Stored access token cannot be decrypted with this key") from e
