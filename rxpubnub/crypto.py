"""Publish signing and message encryption.

Both schemes follow the PubNub v1 REST conventions so that messages can be
exchanged with clients written against other libraries:

* Signing: hex MD5 of ``publish_key/subscribe_key/secret_key/channel/message``
  where ``message`` is the JSON text placed on the wire.
* Encryption: AES-256-CBC keyed by the first 32 hex characters of
  SHA-256(cipher_key), fixed IV, PKCS7 padding, base64 transport encoding.
  The encrypted body travels as a JSON string.
"""

import base64
import binascii
import hashlib
import json
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .mechanism import DecryptionError

_IV = b"0123456789012345"


def dumps(value: Any) -> str:
    """Serialise a JSON value the way it is placed on the wire."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def sign_publish(
    publish_key: str,
    subscribe_key: str,
    secret_key: str | None,
    channel: str,
    message: str,
) -> str:
    """Return the signature path segment for a publish request.

    Without a secret key the service expects the literal ``"0"``.
    """
    if not secret_key:
        return "0"
    plain = "/".join((publish_key, subscribe_key, secret_key, channel, message))
    return hashlib.md5(plain.encode("utf-8")).hexdigest()


class PubNubCipher:
    """Symmetric cipher for message bodies keyed by a user secret."""

    def __init__(self, cipher_key: str):
        if not cipher_key:
            raise ValueError("cipher key must be a non-empty string")
        digest = hashlib.sha256(cipher_key.encode("utf-8")).hexdigest()
        self._key = digest[:32].encode("ascii")

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(_IV))

    def encrypt(self, message: Any) -> str:
        """Encrypt a JSON value, returning the base64 text sent on the wire."""
        plain = dumps(message).encode("utf-8")

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plain) + padder.finalize()

        encryptor = self._cipher().encryptor()
        sealed = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(sealed).decode("ascii")

    def decrypt(self, payload: Any) -> Any:
        """Recover the JSON value from an encrypted message body.

        Raises:
            DecryptionError: the payload is not an encrypted string produced
                with this key.
        """
        if not isinstance(payload, str):
            raise DecryptionError(
                TypeError(f"expected an encrypted string, got {type(payload).__name__}"),
                source="PubNubCipher",
                note="decrypt",
            )

        try:
            sealed = base64.b64decode(payload, validate=True)
            decryptor = self._cipher().decryptor()
            padded = decryptor.update(sealed) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(padded) + unpadder.finalize()

            return json.loads(plain.decode("utf-8"))
        except (binascii.Error, ValueError) as e:
            # ValueError covers bad block length, bad padding, UnicodeDecodeError
            # and json.JSONDecodeError.
            raise DecryptionError(e, source="PubNubCipher", note="decrypt") from e
