"""Encrypted keystore management using eth-account."""

from __future__ import annotations

import json
import logging
import os
import secrets
import string
from dataclasses import dataclass
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount

from agent_payment.errors import (
    InvalidPasswordError,
    MalformedKeystoreError,
    WalletExistsError,
    WalletNotFoundError,
)

logger = logging.getLogger("agent_payment.wallet.keystore")

PASSWORD_LENGTH = 32
PASSWORD_ALPHABET = string.digits + string.ascii_lowercase + string.ascii_uppercase

SECRET_FILE_MODE = 0o600
SECRET_DIR_MODE = 0o700


@dataclass(frozen=True)
class WalletInfo:
    """Public result of wallet creation. Never holds key material."""

    address: str
    path: Path
    password_path: Path | None = None


def generate_password() -> str:
    """Return a random 32-character alphanumeric password."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(PASSWORD_LENGTH))


def read_password_file(path: Path) -> str:
    """Read a password file, stripping surrounding whitespace."""
    return path.read_text(encoding="utf-8").strip()


def restrict_permissions(path: Path, mode: int = SECRET_FILE_MODE) -> None:
    """Limit *path* to its owner. No-op on platforms without POSIX modes."""
    if os.name == "posix":
        os.chmod(path, mode)


def ensure_private_dir(directory: Path) -> None:
    """Create *directory* with owner-only permissions if it is missing."""
    if directory.exists():
        return
    directory.mkdir(parents=True, exist_ok=True)
    restrict_permissions(directory, SECRET_DIR_MODE)


def create_wallet(
    output_path: Path,
    password: str | None = None,
    password_save_path: Path | None = None,
    *,
    kdf: str | None = None,
    iterations: int | None = None,
) -> WalletInfo:
    """Generate a new Ethereum keypair and save an encrypted keystore file.

    Parameters
    ----------
    output_path:
        Where the keystore JSON is written.
    password:
        Password used to encrypt the private key. When ``None`` a random
        password is generated and written to *password_save_path*.
    password_save_path:
        Destination for an auto-generated password. Required when
        *password* is ``None``.
    kdf, iterations:
        Passed through to :meth:`eth_account.Account.encrypt`. The default
        is scrypt with the library's standard work factor.

    Returns
    -------
    WalletInfo
        The 0x-prefixed address, the keystore path and, if the password was
        generated, where it was saved.

    Raises
    ------
    WalletExistsError
        If a file already exists at *output_path*.
    """
    if output_path.exists():
        raise WalletExistsError(str(output_path))

    generated = password is None
    if generated:
        if password_save_path is None:
            raise ValueError("password_save_path is required when no password is given")
        password = generate_password()

    acct = Account.create()
    encrypted = Account.encrypt(acct.key, password, kdf=kdf, iterations=iterations)
    # Stored without 0x and lowercased, as in standard v3 keystores
    encrypted["address"] = acct.address[2:].lower()

    ensure_private_dir(output_path.parent)
    output_path.write_text(json.dumps(encrypted, indent=2), encoding="utf-8")
    restrict_permissions(output_path)
    logger.debug(f"Keystore written to {output_path}")

    saved_to = None
    if generated:
        ensure_private_dir(password_save_path.parent)
        password_save_path.write_text(password, encoding="utf-8")
        restrict_permissions(password_save_path)
        saved_to = password_save_path
        logger.debug(f"Generated password saved to {password_save_path}")

    return WalletInfo(address=acct.address, path=output_path, password_path=saved_to)


def _read_keystore(path: Path) -> dict:
    if not path.exists():
        raise WalletNotFoundError(str(path))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedKeystoreError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedKeystoreError(f"{path} does not contain a keystore object")
    return data


def load_address(path: Path) -> str:
    """Read the wallet address from a keystore file without decrypting.

    The stored casing is returned unchanged, with a ``0x`` prefix added
    when missing.
    """
    data = _read_keystore(path)
    raw_address = data.get("address")
    if not isinstance(raw_address, str) or not raw_address:
        raise MalformedKeystoreError(f"No address field in keystore {path}")
    if not raw_address.startswith("0x"):
        raw_address = "0x" + raw_address
    return raw_address


def decrypt_key(path: Path, password: str) -> LocalAccount:
    """Decrypt the keystore at *path* and return the signing account.

    Raises
    ------
    WalletNotFoundError
        If no keystore file exists.
    MalformedKeystoreError
        If the file is not a keystore.
    InvalidPasswordError
        If the password is wrong or the decrypted bytes are not a valid key.
    """
    data = _read_keystore(path)
    if not isinstance(data.get("crypto") or data.get("Crypto"), dict):
        raise MalformedKeystoreError(f"No crypto section in keystore {path}")

    try:
        private_key = Account.decrypt(data, password)
        return Account.from_key(private_key)
    except Exception as exc:
        raise InvalidPasswordError(f"failed to decrypt keystore: {exc}") from exc
