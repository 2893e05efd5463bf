"""Name helpers: label validation, namehash, and the controller's commitment hash."""

import re
from typing import Sequence

from eth_abi import encode
from eth_utils import keccak, to_bytes, to_checksum_address
from web3 import Web3

from ensdash.config import MIN_LABEL_LENGTH
from ensdash.errors import ValidationError

LABEL_PATTERN = re.compile(r"^[a-z0-9-]+$")

COMMITMENT_TYPES = ["bytes32", "address", "uint256", "bytes32", "address", "bytes[]", "bool", "uint16"]


def strip_eth(name: str) -> str:
    return name.strip().removesuffix(".eth")


def with_eth(name: str) -> str:
    """'alice' -> 'alice.eth'; names that already carry a suffix are left alone."""
    name = name.strip()
    return name if "." in name else f"{name}.eth"


def validate_label(label: str) -> str:
    """
    Return the bare label (".eth" removed) or raise ValidationError.

    Only lowercase letters, digits and hyphens; at least 3 characters.
    Nothing is lowercased for the caller: "My-Name" is an error, not "my-name".
    """
    label = strip_eth(label or "")
    if not label:
        raise ValidationError("Please enter an ENS name.")
    if not LABEL_PATTERN.match(label):
        raise ValidationError("Name can only contain lowercase letters, numbers, and hyphens.")
    if len(label) < MIN_LABEL_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_LABEL_LENGTH} characters.")
    return label


def is_valid_label(label: str) -> bool:
    try:
        validate_label(label)
    except ValidationError:
        return False
    return True


def validate_address(address: str) -> str:
    """Checksummed address or ValidationError."""
    if not address or not Web3.is_address(address.strip()):
        raise ValidationError(f"Invalid Ethereum address: {address!r}")
    return to_checksum_address(address.strip())


def labelhash(label: str) -> bytes:
    return keccak(to_bytes(text=label))


def namehash(name: str) -> bytes:
    """ENS namehash for e.g. 'label.eth'."""
    node = b"\x00" * 32
    labels = [l for l in (name or "").split(".") if l]
    for label in reversed(labels):
        node = keccak(node + labelhash(label))
    return node


def label_to_token_id(label: str) -> int:
    """Base Registrar token id for a .eth second-level name: uint256(labelhash)."""
    return int.from_bytes(labelhash(label), "big")


def make_commitment(
    label: str,
    owner: str,
    duration: int,
    secret: bytes,
    resolver: str,
    data: Sequence[bytes],
    reverse_record: bool,
    owner_controlled_fuses: int,
) -> bytes:
    """
    Same hash the registrar controller's pure makeCommitment() returns:
    keccak256(abi.encode(labelhash, owner, duration, secret, resolver, data, reverseRecord, fuses)).
    """
    if len(secret) != 32:
        raise ValidationError("Commitment secret must be exactly 32 bytes.")
    payload = encode(
        COMMITMENT_TYPES,
        [
            labelhash(label),
            to_checksum_address(owner),
            int(duration),
            secret,
            to_checksum_address(resolver),
            list(data),
            bool(reverse_record),
            int(owner_controlled_fuses),
        ],
    )
    return keccak(payload)
