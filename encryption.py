from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
import binascii
import os
import base64

from errors import DecryptionFailed

SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
PBKDF2_ITERATIONS = 600000


class EncryptionManager:
    """
    Client-side layered AES-256-GCM. The server never runs this code.

    Wire format: [salt (16)] + nonce (12) + GCM(random_key, layer1)
    where layer1 is nonce (12) + GCM(pbkdf2(password, salt), plaintext)
    when a password is used, otherwise the plaintext itself.
    """

    def __init__(self, iterations: int = PBKDF2_ITERATIONS):
        self.iterations = iterations

    def derive_password_key(self, password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(password.encode("utf-8"))

    def _seal(self, key: bytes, data: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(key).encrypt(nonce, data, None)

    def _open(self, key: bytes, sealed: bytes) -> bytes:
        nonce = sealed[:NONCE_SIZE]
        ciphertext = sealed[NONCE_SIZE:]
        return AESGCM(key).decrypt(nonce, ciphertext, None)

    def encrypt(self, plaintext: str, password: str = None):
        """Returns (b64_ciphertext, b64_key). The key must travel out-of-band."""
        data = plaintext.encode("utf-8")

        salt = b""
        if password is not None:
            salt = os.urandom(SALT_SIZE)
            data = self._seal(self.derive_password_key(password, salt), data)

        key = AESGCM.generate_key(bit_length=256)
        blob = salt + self._seal(key, data)
        return (
            base64.b64encode(blob).decode("utf-8"),
            base64.b64encode(key).decode("utf-8"),
        )

    def decrypt(self, ciphertext_b64: str, key_b64: str, password: str = None) -> str:
        try:
            blob = base64.b64decode(ciphertext_b64, validate=True)
            key = base64.b64decode(key_b64, validate=True)

            if password is not None:
                salt, sealed = blob[:SALT_SIZE], blob[SALT_SIZE:]
                layer1 = self._open(key, sealed)
                data = self._open(self.derive_password_key(password, salt), layer1)
            else:
                data = self._open(key, blob)

            return data.decode("utf-8")
        except (InvalidTag, ValueError, TypeError, binascii.Error) as e:
            # One error for every cause, wrong password included.
            raise DecryptionFailed("Decryption failed. Wrong key or corrupted data.") from e


_manager = EncryptionManager()


def encrypt_payload(plaintext: str, password: str = None):
    """Returns (b64_ciphertext, b64_key)"""
    return _manager.encrypt(plaintext, password)


def decrypt_payload(ciphertext_b64: str, key_b64: str, password: str = None) -> str:
    return _manager.decrypt(ciphertext_b64, key_b64, password)
