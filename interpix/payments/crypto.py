"""Criptografia das credenciais bancárias (client id / secret) armazenadas."""

import base64
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

# Salt fixo: a mesma ENCRYPTION_KEY precisa derivar sempre a mesma chave Fernet
_KDF_SALT = b"interpix.credentials.v1"
_KDF_ITERATIONS = 200_000


def _derive_fernet_key(passphrase: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class CredentialCodec:
    """
    Encripta/decripta credenciais com Fernet (AES-128-CBC + HMAC).
    Sem chave configurada, opera em modo passthrough (inseguro) e avisa no log.
    """

    def __init__(self, key: Optional[str] = None):
        self._fernet: Optional[Fernet] = None
        if key and key.strip():
            self._fernet = Fernet(_derive_fernet_key(key.strip()))
        else:
            logger.warning("ENCRYPTION_KEY não definida! Credenciais não serão criptografadas.")

    def is_configured(self) -> bool:
        return self._fernet is not None

    def encrypt(self, value: str) -> str:
        if self._fernet is None:
            logger.warning("Encriptação desativada - ENCRYPTION_KEY não definida")
            return value
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, encrypted_value: str) -> Optional[str]:
        """Retorna o texto original, ou None se o valor não puder ser decifrado."""
        if self._fernet is None:
            return encrypted_value
        try:
            return self._fernet.decrypt(encrypted_value.encode("utf-8")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as e:
            logger.warning("Erro ao descriptografar credencial: %s", type(e).__name__)
            return None
