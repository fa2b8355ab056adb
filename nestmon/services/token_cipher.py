"""Symmetric encryption of OAuth credentials kept in the user snapshot."""

from __future__ import annotations

import base64
import hashlib
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken

from nestmon.models.credential import Credential


class TokenCipherService:
    """Encrypt token material with a Fernet key derived from a shared secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def seal_credential(self, credential: Credential) -> Dict[str, Any]:
        """Return a JSON-ready dict with both tokens encrypted."""
        return {
            "access_token_encrypted": self.encrypt(credential.access_token),
            "refresh_token_encrypted": self.encrypt(credential.refresh_token),
            "token_type": credential.token_type,
            "expires_in": credential.expires_in,
            "issued_at": credential.issued_at.isoformat(),
        }

    def open_credential(self, sealed: Dict[str, Any]) -> Credential:
        """Inverse of :meth:`seal_credential`; keeps the stored ``issued_at``."""
        return Credential(
            access_token=self.decrypt(sealed["access_token_encrypted"]),
            refresh_token=self.decrypt(sealed["refresh_token_encrypted"]),
            token_type=sealed.get("token_type") or "Bearer",
            expires_in=sealed["expires_in"],
            issued_at=sealed["issued_at"],
        )


__all__ = ["TokenCipherService"]
