"""
Password-based encryption of the signing key.

Argon2id stretches the password (with a random per-record salt) into a
256-bit key; AES-256-GCM encrypts the 32-byte private key. The envelope is
self-describing JSON so the KDF parameters travel with the ciphertext.
The password is the only secret: nothing deployment-wide is mixed in.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import secrets
from typing import Optional, Union

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from eth_account import Account
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...config import settings
from ...errors import InvalidKeyMaterial, InvalidPassword, WalletError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
SALT_LENGTH = 16
NONCE_LENGTH = 12
GCM_TAG_LENGTH = 16
ENVELOPE_VERSION = 1

# Order of the secp256k1 group; valid private keys are 1 .. n-1.
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_ASSOCIATED_DATA = b"swapagent-wallet-v1"


class KdfParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    time_cost: int = Field(alias="timeCost", ge=1, le=16)
    memory_cost: int = Field(alias="memoryCost", ge=8, le=1_048_576)
    parallelism: int = Field(ge=1, le=16)
    hash_len: int = Field(default=KEY_LENGTH, alias="hashLen")

    @classmethod
    def from_settings(cls) -> "KdfParams":
        return cls(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )


class CipherEnvelope(BaseModel):
    """Serialized form of an encrypted private key."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: int = ENVELOPE_VERSION
    enc: str = "aes-256-gcm"
    kdf: str = "argon2id"
    kdf_params: KdfParams = Field(alias="kdfParams")
    salt_b64: str = Field(alias="saltB64")
    nonce_b64: str = Field(alias="nonceB64")
    ciphertext_b64: str = Field(alias="ciphertextB64")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def normalize_private_key(private_key: Union[bytes, str]) -> bytes:
    """Accept raw bytes or a hex string; return the 32 key bytes or raise ``InvalidKeyMaterial``."""

    if isinstance(private_key, str):
        text = private_key.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            private_key = bytes.fromhex(text)
        except ValueError as exc:
            raise InvalidKeyMaterial("Private key is not valid hex") from exc

    if not isinstance(private_key, (bytes, bytearray)):
        raise InvalidKeyMaterial("Private key must be bytes")
    if len(private_key) != KEY_LENGTH:
        raise InvalidKeyMaterial(f"Private key must be {KEY_LENGTH} bytes, got {len(private_key)}")

    value = int.from_bytes(private_key, "big")
    if not 0 < value < SECP256K1_N:
        raise InvalidKeyMaterial("Private key is outside the secp256k1 range")
    return bytes(private_key)


def address_for(private_key: bytes) -> str:
    return Account.from_key(normalize_private_key(private_key)).address


def derive_key(password: str, salt: bytes, params: KdfParams) -> bytes:
    return hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=params.hash_len,
        type=Type.ID,
    )


def encrypt(private_key: Union[bytes, str], password: str, *, params: Optional[KdfParams] = None) -> str:
    """Encrypt ``private_key`` under ``password``; returns the JSON envelope."""

    key_bytes = normalize_private_key(private_key)
    if not password:
        raise WalletError("Password must not be empty")

    params = params or KdfParams.from_settings()
    salt = secrets.token_bytes(SALT_LENGTH)
    nonce = secrets.token_bytes(NONCE_LENGTH)
    cipher = AESGCM(derive_key(password, salt, params))
    ciphertext = cipher.encrypt(nonce, key_bytes, _ASSOCIATED_DATA)

    return CipherEnvelope(
        kdf_params=params,
        salt_b64=base64.b64encode(salt).decode("ascii"),
        nonce_b64=base64.b64encode(nonce).decode("ascii"),
        ciphertext_b64=base64.b64encode(ciphertext).decode("ascii"),
    ).to_json()


def _load_envelope(ciphertext: str) -> CipherEnvelope:
    try:
        envelope = CipherEnvelope.model_validate(json.loads(ciphertext))
    except (TypeError, ValueError, ValidationError) as exc:
        raise InvalidPassword() from exc
    if envelope.version != ENVELOPE_VERSION or envelope.enc != "aes-256-gcm" or envelope.kdf != "argon2id":
        raise InvalidPassword()
    if envelope.kdf_params.hash_len != KEY_LENGTH:
        raise InvalidPassword()
    return envelope


def decrypt(ciphertext: str, password: str) -> bytes:
    """Recover the private key. Any failure, including tampering, is ``InvalidPassword``."""

    if not password:
        raise InvalidPassword()

    envelope = _load_envelope(ciphertext)
    try:
        salt = base64.b64decode(envelope.salt_b64, validate=True)
        nonce = base64.b64decode(envelope.nonce_b64, validate=True)
        sealed = base64.b64decode(envelope.ciphertext_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidPassword() from exc

    if len(salt) != SALT_LENGTH or len(nonce) != NONCE_LENGTH or len(sealed) != KEY_LENGTH + GCM_TAG_LENGTH:
        raise InvalidPassword()

    try:
        plaintext = AESGCM(derive_key(password, salt, envelope.kdf_params)).decrypt(nonce, sealed, _ASSOCIATED_DATA)
    except (InvalidTag, HashingError) as exc:
        raise InvalidPassword() from exc

    try:
        return normalize_private_key(plaintext)
    except InvalidKeyMaterial as exc:
        logger.warning("Decrypted payload is not a valid private key")
        raise InvalidPassword() from exc
