"""
Hybrid Crypto Engine
====================
Two-layer protection of short OTP values for the retrieval channel.

Layer 1 transforms the plaintext with the RSA *private* key using PKCS#1 v1.5
type-1 padding, so any holder of the public key can recover the value and
know it came from this process. Layer 2 wraps the base64 layer-1 output in
AES-256-GCM under a key derived with scrypt from the shared cert key.

Wire format: ``base64(iv):base64(tag):base64(cipher)``
"""

import base64
import binascii
import hashlib
import math
import os
import secrets
from typing import Tuple

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
import structlog

from otp_core.errors import DependencyUnavailable, MalformedCiphertext

logger = structlog.get_logger(__name__)

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
IV_LENGTH = 16
TAG_LENGTH = 16
KDF_SALT = b"salt"
KDF_N = 2 ** 14
KDF_R = 8
KDF_P = 1
WIRE_SEPARATOR = ":"


def derive_symmetric_key(cert_key: str, salt: bytes = KDF_SALT) -> bytes:
    """Derive the 256-bit AES key from the shared cert key."""
    kdf = Scrypt(salt=salt, length=32, n=KDF_N, r=KDF_R, p=KDF_P)
    return kdf.derive(cert_key.encode())


def split_wire(ciphertext: str) -> Tuple[bytes, bytes, bytes]:
    """
    Split a wire string into (iv, tag, cipher) bytes.

    Raises:
        MalformedCiphertext: if there are not exactly three non-empty
            base64 segments
    """
    parts = ciphertext.split(WIRE_SEPARATOR) if isinstance(ciphertext, str) else []
    if len(parts) != 3 or not all(parts):
        raise MalformedCiphertext("Invalid encrypted data format")

    try:
        iv, tag, cipher = (base64.b64decode(p, validate=True) for p in parts)
    except (binascii.Error, ValueError) as e:
        raise MalformedCiphertext("Invalid base64 segment") from e

    if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH or not cipher:
        raise MalformedCiphertext("Invalid segment length")
    return iv, tag, cipher


def join_wire(iv: bytes, tag: bytes, cipher: bytes) -> str:
    return WIRE_SEPARATOR.join(
        base64.b64encode(part).decode("ascii") for part in (iv, tag, cipher)
    )


def _open_symmetric(aes_key: bytes, ciphertext: str) -> str:
    iv, tag, cipher = split_wire(ciphertext)
    try:
        layer1 = AESGCM(aes_key).decrypt(iv, cipher + tag, None)
        return layer1.decode("ascii")
    except (InvalidTag, ValueError, UnicodeDecodeError) as e:
        raise MalformedCiphertext(
            "Failed to decrypt with certificate key. Invalid cert key or corrupted data."
        ) from e


def _recover_with_public_key(public_key: rsa.RSAPublicKey, layer1: str) -> str:
    try:
        signed = base64.b64decode(layer1, validate=True)
        recovered = public_key.recover_data_from_signature(
            signed, padding.PKCS1v15(), None
        )
        return recovered.decode("utf-8")
    except (binascii.Error, InvalidSignature, ValueError, UnicodeDecodeError) as e:
        raise MalformedCiphertext("Origin validation failed") from e


def decrypt_with_public_key(ciphertext: str, public_key_pem: str, cert_key: str) -> str:
    """
    Decrypt a retrieval payload on the client side.

    Args:
        ciphertext: Wire-format string returned by the retrieval channel
        public_key_pem: PEM public key returned alongside it
        cert_key: Shared cert key

    Returns:
        The OTP plaintext
    """
    try:
        public_key = serialization.load_pem_public_key(public_key_pem.encode())
    except ValueError as e:
        raise MalformedCiphertext("Invalid public key") from e
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise MalformedCiphertext("Public key is not an RSA key")

    layer1 = _open_symmetric(derive_symmetric_key(cert_key), ciphertext)
    return _recover_with_public_key(public_key, layer1)


class CryptoEngine:
    """
    Owns the process-lifetime RSA key pair and the derived AES key.

    The key pair is generated at construction, never persisted and never
    rotated; a restart invalidates any public key cached by clients.
    """

    def __init__(self, cert_key: str, key_size: int = RSA_KEY_SIZE):
        if not cert_key:
            raise DependencyUnavailable("OTP cert key not configured")

        try:
            self._private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=key_size,
            )
            self._aes_key = derive_symmetric_key(cert_key)
        except (ValueError, TypeError) as e:
            raise DependencyUnavailable("Crypto engine initialization failed") from e

        self._public_key = self._private_key.public_key()
        numbers = self._private_key.private_numbers()
        self._modulus = numbers.public_numbers.n
        self._public_exponent = numbers.public_numbers.e
        self._crt = (numbers.p, numbers.q, numbers.dmp1, numbers.dmq1, numbers.iqmp)
        self._block_size = (self._modulus.bit_length() + 7) // 8

        self._public_pem = self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

        logger.info(
            "crypto_engine_initialized",
            key_size=key_size,
            public_key_fingerprint=self.public_key_fingerprint,
        )

    @property
    def public_key(self) -> str:
        """PEM-encoded public key."""
        return self._public_pem

    def get_public_key(self) -> str:
        return self._public_pem

    @property
    def public_key_fingerprint(self) -> str:
        """Short SHA-256 fingerprint of the public key, for log correlation."""
        der = self._public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return hashlib.sha256(der).hexdigest()[:16]

    def _private_transform(self, data: bytes) -> bytes:
        # EMSA-PKCS1-v1_5 type 1 block: 00 01 FF..FF 00 || data
        max_len = self._block_size - 11
        if len(data) > max_len:
            raise ValueError(f"Plaintext too long for RSA block ({len(data)} > {max_len})")

        filler = b"\xff" * (self._block_size - 3 - len(data))
        block = b"\x00\x01" + filler + b"\x00" + data

        # The block is raw data, not a DigestInfo, so RSAPrivateKey.sign()
        # cannot produce it. Blinded CRT exponentiation instead.
        n = self._modulus
        r = self._blinding_factor()
        blinded = int.from_bytes(block, "big") * pow(r, self._public_exponent, n) % n
        value = self._crt_power(blinded) * pow(r, -1, n) % n
        return value.to_bytes(self._block_size, "big")

    def _blinding_factor(self) -> int:
        while True:
            r = secrets.randbelow(self._modulus - 2) + 2
            if math.gcd(r, self._modulus) == 1:
                return r

    def _crt_power(self, c: int) -> int:
        p, q, dmp1, dmq1, iqmp = self._crt
        m1 = pow(c, dmp1, p)
        m2 = pow(c, dmq1, q)
        h = iqmp * (m1 - m2) % p
        return m2 + h * q

    def encrypt(self, plaintext: str) -> str:
        """
        Apply both layers to ``plaintext``.

        Returns:
            ``base64(iv):base64(tag):base64(cipher)``
        """
        layer1 = base64.b64encode(self._private_transform(plaintext.encode("utf-8")))

        iv = os.urandom(IV_LENGTH)
        sealed = AESGCM(self._aes_key).encrypt(iv, layer1, None)
        cipher, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return join_wire(iv, tag, cipher)

    def decrypt(self, ciphertext: str) -> str:
        """
        Reverse both layers.

        Raises:
            MalformedCiphertext: on any parse, authentication or origin failure
        """
        layer1 = _open_symmetric(self._aes_key, ciphertext)
        return _recover_with_public_key(self._public_key, layer1)
