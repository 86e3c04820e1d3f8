"""
Keyfile-backed signing identity.

The keyfile holds the BIP-39 mnemonic encrypted with a password
(scrypt + AES-256-GCM, JSON envelope). The signing key is derived from the
mnemonic on the Cosmos HD path m/44'/118'/0'/0/{index}.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from bip_utils import (
    Bip39MnemonicGenerator,
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
    Bip39WordsNum,
    Bip44,
    Bip44Changes,
    Bip44Coins,
)
from cosmpy.aerial.wallet import LocalWallet
from cosmpy.crypto.keypairs import PrivateKey
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .exceptions import WalletError
from .options import Options

logger = logging.getLogger(__name__)

KEYFILE_VERSION = 1
SCRYPT_N = 2**15
SCRYPT_R = 8
SCRYPT_P = 1


@dataclass
class Identity:
    mnemonic: str
    wallet: LocalWallet

    @property
    def address(self) -> str:
        return str(self.wallet.address())


def generate_mnemonic() -> str:
    return Bip39MnemonicGenerator().FromWordsNumber(Bip39WordsNum.WORDS_NUM_12).ToStr()


def wallet_from_mnemonic(mnemonic: str, prefix: str, index: int = 0) -> LocalWallet:
    """Derive the signing wallet at m/44'/118'/0'/0/{index}."""
    if not Bip39MnemonicValidator().IsValid(mnemonic):
        raise WalletError("Keyfile does not contain a valid mnemonic")
    seed_bytes = Bip39SeedGenerator(mnemonic).Generate()
    bip44_ctx = (
        Bip44.FromSeed(seed_bytes, Bip44Coins.COSMOS)
        .Purpose()
        .Coin()
        .Account(0)
        .Change(Bip44Changes.CHAIN_EXT)
        .AddressIndex(index)
    )
    return LocalWallet(
        PrivateKey(bip44_ctx.PrivateKey().Raw().ToBytes()),
        prefix=prefix,
    )


def _derive_key(password: str, salt: bytes, n: int, r: int, p: int) -> bytes:
    if not password:
        raise WalletError("Password cannot be empty")
    kdf = Scrypt(salt=salt, length=32, n=n, r=r, p=p)
    return kdf.derive(password.encode("utf-8"))


def encrypt_mnemonic(
    mnemonic: str,
    password: str,
    n: int = SCRYPT_N,
    r: int = SCRYPT_R,
    p: int = SCRYPT_P,
) -> dict[str, Any]:
    salt = os.urandom(16)
    nonce = os.urandom(12)
    key = _derive_key(password, salt, n, r, p)
    ciphertext = AESGCM(key).encrypt(nonce, mnemonic.encode("utf-8"), None)
    return {
        "version": KEYFILE_VERSION,
        "kdf": "scrypt",
        "kdf_params": {"n": n, "r": r, "p": p},
        "enc": "aes-256-gcm",
        "salt": base64.b64encode(salt).decode("ascii"),
        "nonce": base64.b64encode(nonce).decode("ascii"),
        "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
    }


def decrypt_mnemonic(envelope: dict[str, Any], password: str) -> str:
    if envelope.get("version") != KEYFILE_VERSION or envelope.get("kdf") != "scrypt":
        raise WalletError("Unsupported keyfile format")
    try:
        params = envelope["kdf_params"]
        salt = base64.b64decode(envelope["salt"])
        nonce = base64.b64decode(envelope["nonce"])
        ciphertext = base64.b64decode(envelope["ciphertext"])
        n, r, p = int(params["n"]), int(params["r"]), int(params["p"])
    except (KeyError, TypeError, ValueError) as exc:
        raise WalletError("Keyfile is corrupted") from exc

    key = _derive_key(password, salt, n, r, p)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise WalletError("Invalid password or corrupted keyfile") from exc
    return plaintext.decode("utf-8")


def _create_keyfile(options: Options, filename: str, password: str) -> Identity:
    mnemonic = generate_mnemonic()
    envelope = encrypt_mnemonic(mnemonic, password, n=SCRYPT_N)

    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filename, "w", encoding="utf-8") as f:
        json.dump(envelope, f)
    if os.name != "nt":
        os.chmod(filename, 0o600)

    identity = Identity(
        mnemonic=mnemonic,
        wallet=wallet_from_mnemonic(mnemonic, options.bech32_prefix, options.hd_index),
    )
    logger.info("Generated new keyfile %s for %s", filename, identity.address)
    return identity


def _open_keyfile(options: Options, filename: str, password: str) -> Identity:
    # read-only path: nothing here may write to filename
    with open(filename, "r", encoding="utf-8") as f:
        try:
            envelope = json.load(f)
        except json.JSONDecodeError as exc:
            raise WalletError(f"Keyfile {filename} is not valid JSON") from exc
    if not isinstance(envelope, dict):
        raise WalletError(f"Keyfile {filename} is corrupted")

    mnemonic = decrypt_mnemonic(envelope, password)
    return Identity(
        mnemonic=mnemonic,
        wallet=wallet_from_mnemonic(mnemonic, options.bech32_prefix, options.hd_index),
    )


def load_or_create_wallet(options: Options, filename: str, password: str) -> Identity:
    """
    Open the keyfile at ``filename``, or generate a new identity if it is absent.

    A bad password raises WalletError and never overwrites the existing file.
    """
    filename = os.path.expanduser(filename)
    if os.path.exists(filename):
        return _open_keyfile(options, filename, password)
    return _create_keyfile(options, filename, password)


def recover_mnemonic(options: Options, password: str, filename: Optional[str] = None) -> str:
    keyfile = filename or options.key_file
    return load_or_create_wallet(options, keyfile, password).mnemonic
