"""
Chain gateway: contract reads, signed writes, receipt waiting.

The registrar, directory and record editor only talk to the ChainGateway
protocol; Web3ChainGateway is the web3.py implementation that signs locally
with a Wallet and broadcasts through a JSON-RPC node.
"""

import logging
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from ensdash.config import ChainConfig
from ensdash.errors import ChainReadError, RevertReason, TransactionRejected, TransactionReverted
from ensdash.wallet import Wallet

logger = logging.getLogger(__name__)

_COMMITMENT_INPUTS = [
    {"name": "name", "type": "string"},
    {"name": "owner", "type": "address"},
    {"name": "duration", "type": "uint256"},
    {"name": "secret", "type": "bytes32"},
    {"name": "resolver", "type": "address"},
    {"name": "data", "type": "bytes[]"},
    {"name": "reverseRecord", "type": "bool"},
    {"name": "ownerControlledFuses", "type": "uint16"},
]

CONTROLLER_ABI = [
    {"inputs": _COMMITMENT_INPUTS, "name": "makeCommitment", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "pure", "type": "function"},
    {"inputs": [{"name": "commitment", "type": "bytes32"}], "name": "commit", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": _COMMITMENT_INPUTS, "name": "register", "outputs": [], "stateMutability": "payable", "type": "function"},
    {"inputs": [{"name": "name", "type": "string"}], "name": "available", "outputs": [{"name": "", "type": "bool"}], "stateMutability": "view", "type": "function"},
    {
        "inputs": [{"name": "name", "type": "string"}, {"name": "duration", "type": "uint256"}],
        "name": "rentPrice",
        "outputs": [{"components": [{"name": "base", "type": "uint256"}, {"name": "premium", "type": "uint256"}], "name": "price", "type": "tuple"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Custom errors raised by ETHRegistrarController
CONTROLLER_ERRORS = {
    "CommitmentTooNew": (["bytes32"], RevertReason.PREMATURE_REVEAL),
    "CommitmentTooOld": (["bytes32"], RevertReason.COMMITMENT_MISMATCH),
    "InsufficientValue": ([], RevertReason.INSUFFICIENT_PAYMENT),
    "NameNotAvailable": (["string"], RevertReason.NAME_UNAVAILABLE),
    "UnexpiredCommitmentExists": (["bytes32"], RevertReason.DUPLICATE_COMMITMENT),
    "DurationTooShort": (["uint256"], RevertReason.UNKNOWN),
    "ResolverRequiredWhenDataSupplied": ([], RevertReason.UNKNOWN),
}

CONTROLLER_ABI += [
    {"inputs": [{"name": f"arg{i}", "type": t} for i, t in enumerate(types)], "name": name, "type": "error"}
    for name, (types, _) in CONTROLLER_ERRORS.items()
]

REGISTRY_ABI = [
    {"inputs": [{"name": "node", "type": "bytes32"}], "name": "resolver", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "node", "type": "bytes32"}], "name": "owner", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "node", "type": "bytes32"}, {"name": "owner", "type": "address"}], "name": "setOwner", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]

RESOLVER_ABI = [
    {"inputs": [{"name": "node", "type": "bytes32"}, {"name": "key", "type": "string"}], "name": "text", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "node", "type": "bytes32"}, {"name": "key", "type": "string"}, {"name": "value", "type": "string"}], "name": "setText", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "node", "type": "bytes32"}], "name": "contenthash", "outputs": [{"name": "", "type": "bytes"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "node", "type": "bytes32"}, {"name": "hash", "type": "bytes"}], "name": "setContenthash", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "node", "type": "bytes32"}], "name": "addr", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
]

REVERSE_REGISTRAR_ABI = [
    {"inputs": [{"name": "name", "type": "string"}], "name": "setName", "outputs": [{"name": "", "type": "bytes32"}], "stateMutability": "nonpayable", "type": "function"},
]

# Function names do not collide across these contracts, so one ABI serves every address.
ENS_ABI = CONTROLLER_ABI + REGISTRY_ABI + RESOLVER_ABI + REVERSE_REGISTRAR_ABI

ERROR_SELECTORS = {
    Web3.keccak(text=f"{name}({','.join(types)})")[:4].hex().removeprefix("0x"): reason
    for name, (types, reason) in CONTROLLER_ERRORS.items()
}

GAS_HEADROOM_PERCENT = 120


class TxStatus(str, Enum):
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


class ChainGateway(Protocol):
    def read_contract(self, address: str, function_name: str, args: Sequence[Any] = ()) -> Any:
        ...

    def write_contract(self, address: str, function_name: str, args: Sequence[Any] = (), value: int = 0) -> str:
        ...

    def wait_for_receipt(self, tx_hash: str) -> TxStatus:
        ...

    def primary_name(self, address: str) -> Optional[str]:
        ...


def classify_revert(message: str, data: Any = None) -> RevertReason:
    """Map a revert message (and raw revert data, if any) to a RevertReason."""
    text = f"{message or ''} {data or ''}"
    for name, (_, reason) in CONTROLLER_ERRORS.items():
        if name in text:
            return reason
    lowered = text.lower()
    for selector, reason in ERROR_SELECTORS.items():
        if selector in lowered:
            return reason
    return RevertReason.UNKNOWN


class Web3ChainGateway:
    """ChainGateway over web3.py. Writes need a Wallet; reads do not."""

    def __init__(self, w3: Web3, wallet: Optional[Wallet] = None, receipt_timeout: int = 300):
        self.w3 = w3
        self.wallet = wallet
        self.receipt_timeout = receipt_timeout

    @classmethod
    def connect(cls, chain: ChainConfig, wallet: Optional[Wallet] = None, timeout: int = 30) -> "Web3ChainGateway":
        w3 = Web3(Web3.HTTPProvider(chain.rpc_url, request_kwargs={"timeout": timeout}))
        if not w3.is_connected():
            raise ConnectionError(f"Failed to connect to RPC: {chain.rpc_url}")
        return cls(w3, wallet=wallet)

    def _function(self, address: str, function_name: str, args: Sequence[Any]):
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=ENS_ABI)
        return getattr(contract.functions, function_name)(*args)

    def read_contract(self, address: str, function_name: str, args: Sequence[Any] = ()) -> Any:
        try:
            return self._function(address, function_name, args).call()
        except ContractLogicError as e:
            raise ChainReadError(f"{function_name}() reverted: {e}")
        except (Web3Exception, ValueError, requests.RequestException) as e:
            raise ChainReadError(f"{function_name}() failed: {e}")

    def write_contract(self, address: str, function_name: str, args: Sequence[Any] = (), value: int = 0) -> str:
        if self.wallet is None:
            raise TransactionRejected("No signing wallet configured.")
        sender = self.wallet.address
        try:
            fn = self._function(address, function_name, args)
            params = {
                "from": sender,
                "value": int(value),
                "chainId": self.w3.eth.chain_id,
                "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
            }
        except (Web3Exception, ValueError, requests.RequestException) as e:
            raise TransactionRejected(f"{function_name}() not prepared: {e}")
        try:
            params["gas"] = fn.estimate_gas(params) * GAS_HEADROOM_PERCENT // 100
        except ContractLogicError as e:
            reason = classify_revert(str(e), getattr(e, "data", None))
            raise TransactionReverted(f"{function_name}() would revert: {e}", revert_reason=reason)
        except (Web3Exception, ValueError, requests.RequestException) as e:
            # insufficient funds and similar node-side refusals
            raise TransactionRejected(f"{function_name}() rejected: {e}")
        try:
            tx = fn.build_transaction(params)
            raw_tx = self.wallet.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        except (Web3Exception, ValueError, requests.RequestException) as e:
            raise TransactionRejected(f"{function_name}() not broadcast: {e}")
        tx_hex = Web3.to_hex(tx_hash)
        logger.info("%s sent: %s", function_name, tx_hex)
        return tx_hex

    def wait_for_receipt(self, tx_hash: str) -> TxStatus:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            raise TransactionRejected(
                f"Transaction {tx_hash} not confirmed within {self.receipt_timeout}s (may still be pending)."
            )
        except (Web3Exception, ValueError, requests.RequestException) as e:
            raise TransactionRejected(f"Could not fetch receipt for {tx_hash}: {e}")
        status = TxStatus.CONFIRMED if receipt.get("status") == 1 else TxStatus.REVERTED
        logger.info("%s %s in block %s", tx_hash, status.value, receipt.get("blockNumber"))
        return status

    def primary_name(self, address: str) -> Optional[str]:
        """Reverse record for address (verified forward by web3's ENS module)."""
        try:
            return self.w3.ens.name(Web3.to_checksum_address(address)) or None
        except (Web3Exception, ValueError, requests.RequestException) as e:
            raise ChainReadError(f"Reverse lookup for {address} failed: {e}")

