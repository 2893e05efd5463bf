"""
Signing wallet: local keypair loaded from the environment.

Key comes from ENSDASH_PRIVATE_KEY (CLIENT_PRIVATE_KEY accepted as fallback),
usually via a .env file. Never reads or writes a key file.
"""

import os
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ensdash.config import ENV_PRIVATE_KEY, ENV_PRIVATE_KEY_LEGACY


def load_key() -> LocalAccount:
    """Account from the environment. Raises RuntimeError if no key is set."""
    pk = (os.getenv(ENV_PRIVATE_KEY) or os.getenv(ENV_PRIVATE_KEY_LEGACY) or "").strip()
    if not pk:
        raise RuntimeError(
            f"Set {ENV_PRIVATE_KEY} in the environment or .env (never commit it). "
            "Generate one: python -c \"from eth_account import Account; print(Account.create().key.hex())\""
        )
    return Account.from_key(pk.removeprefix("0x"))


class Wallet:
    """Holds the account that owns names and signs registrar/resolver transactions."""

    def __init__(self, account: Optional[LocalAccount] = None):
        self._account = account if account is not None else load_key()

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def account(self) -> LocalAccount:
        return self._account

    def sign_transaction(self, tx: dict) -> bytes:
        """Sign a built transaction and return the raw bytes ready to broadcast."""
        signed = self._account.sign_transaction(tx)
        raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
        if raw_tx is None:
            raise RuntimeError("Signed transaction missing raw transaction data")
        return bytes(raw_tx)

    @classmethod
    def from_key(cls, private_key: str) -> "Wallet":
        return cls(account=Account.from_key(private_key.strip().removeprefix("0x")))
