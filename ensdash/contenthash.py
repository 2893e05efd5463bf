"""
ENSIP-7 content hashes for IPFS.

    ipfs://Qm...  (CIDv0)  -> e3 01 | 01 70 | <multihash>
    ipfs://b...   (CIDv1)  -> e3 01 | <cid bytes>
    0x...                  -> passed through as raw bytes
"""

import base64

import base58

from ensdash.errors import ValidationError

IPFS_NAMESPACE = bytes([0xE3, 0x01])  # varint(0xe3), ipfs-ns
CID_V1_DAG_PB = bytes([0x01, 0x70])
SHA256_MULTIHASH = bytes([0x12, 0x20])


def _b32decode(text: str) -> bytes:
    # multibase base32: lowercase RFC 4648, no padding
    padded = text.upper() + "=" * (-len(text) % 8)
    return base64.b32decode(padded)


def _b32encode(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").lower().rstrip("=")


def encode_content_hash(value: str) -> bytes:
    value = (value or "").strip()
    if not value:
        raise ValidationError("Content hash is empty.")
    if value.startswith("0x"):
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            raise ValidationError(f"Not valid hex: {value!r}")
    cid = value.removeprefix("ipfs://").strip("/")
    if value.startswith(("ipns://", "bzz://", "ar://")):
        raise ValidationError("Only ipfs:// content hashes (or raw 0x bytes) are supported.")
    try:
        if cid.startswith("Qm"):
            multihash = base58.b58decode(cid)
            if len(multihash) != 34 or not multihash.startswith(SHA256_MULTIHASH):
                raise ValueError("not a sha2-256 multihash")
            return IPFS_NAMESPACE + CID_V1_DAG_PB + multihash
        if cid.startswith("b"):
            cid_bytes = _b32decode(cid[1:])
            if not cid_bytes.startswith(b"\x01"):
                raise ValueError("not a CIDv1")
            return IPFS_NAMESPACE + cid_bytes
    except ValueError as e:
        raise ValidationError(f"Invalid IPFS CID {cid!r}: {e}")
    raise ValidationError(f"Unrecognised content hash {value!r} (expected ipfs://Qm..., ipfs://b... or 0x...).")


def decode_content_hash(raw: bytes) -> str:
    """Readable form of a resolver's contenthash bytes ('' when unset)."""
    raw = bytes(raw or b"")
    if not raw:
        return ""
    if raw.startswith(IPFS_NAMESPACE):
        cid = raw[len(IPFS_NAMESPACE):]
        if cid.startswith(CID_V1_DAG_PB + SHA256_MULTIHASH) and len(cid) == 36:
            return "ipfs://" + base58.b58encode(cid[2:]).decode("ascii")
        return "ipfs://b" + _b32encode(cid)
    return "0x" + raw.hex()
