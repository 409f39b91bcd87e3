# app/core/crypto.py
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.errors import DecryptionError

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
KEY_SIZE = 32


def _load_key(key_hex: str) -> bytes:
    try:
        key = bytes.fromhex(key_hex or "")
    except ValueError:
        raise DecryptionError("encryption key must be hex encoded")
    if len(key) != KEY_SIZE:
        raise DecryptionError("encryption key must be 32 bytes (64 hex characters)")
    return key


def encrypt(plaintext: bytes, key_hex: str) -> bytes:
    """
    Chiffre des données avec AES-256-GCM

    Le nonce aléatoire de 12 octets est préfixé au texte chiffré.
    """
    aesgcm = AESGCM(_load_key(key_hex))
    nonce = os.urandom(NONCE_SIZE)
    return nonce + aesgcm.encrypt(nonce, plaintext, None)


def decrypt(blob: bytes, key_hex: str) -> bytes:
    """Déchiffre un blob produit par encrypt()"""
    aesgcm = AESGCM(_load_key(key_hex))
    if blob is None or len(blob) < NONCE_SIZE:
        raise DecryptionError("ciphertext too short")

    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return aesgcm.decrypt(nonce, ciphertext, None)
    except InvalidTag:
        logger.warning("Échec d'authentification lors du déchiffrement")
        raise DecryptionError("failed to decrypt: authentication failed")


def generate_key() -> str:
    """Génère une clé AES-256 aléatoire encodée en hexadécimal"""
    return os.urandom(KEY_SIZE).hex()
