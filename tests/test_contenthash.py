import pytest

from ensdash.contenthash import decode_content_hash, encode_content_hash
from ensdash.errors import ValidationError

CID_V0 = "QmRAQB6YaCyidP37UdDnjFY5vQuiBrcqdyoW1CuDgwxkD4"
CID_V0_CONTENTHASH = "e3010170122029f2d17be6139079dc48696d1f582a8530eb9805b561eda517e22a892c7e3f1f"
CID_V1 = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


def test_cid_v0_matches_published_example():
    assert encode_content_hash(f"ipfs://{CID_V0}").hex() == CID_V0_CONTENTHASH


def test_bare_cid_without_scheme():
    assert encode_content_hash(CID_V0).hex() == CID_V0_CONTENTHASH


def test_cid_v1_base32_is_namespaced_cid_bytes():
    encoded = encode_content_hash(f"ipfs://{CID_V1}")
    assert encoded[:2] == bytes([0xE3, 0x01])
    # CIDv1, dag-pb, sha2-256, 32-byte digest
    assert encoded[2:6] == bytes([0x01, 0x70, 0x12, 0x20])
    assert len(encoded) == 2 + 4 + 32


def test_raw_hex_passes_through():
    assert encode_content_hash("0xe30101") == bytes([0xE3, 0x01, 0x01])


def test_decode_stored_v0_hash():
    assert decode_content_hash(bytes.fromhex(CID_V0_CONTENTHASH)) == f"ipfs://{CID_V0}"


def test_decode_unset_and_unknown():
    assert decode_content_hash(b"") == ""
    assert decode_content_hash(bytes([0xE4, 0x01, 0xAA])) == "0xe401aa"


@pytest.mark.parametrize(
    "value",
    [
        "",
        "   ",
        "0xzz",
        "ipns://k51qzi5uqu5dlvj2baxnqndepeb86cbk3ng7n3i46uzyxzyqj2xjonzllnv0v8",
        "bzz://d1de9994b4d039f6548d191eb26786769f580809256b4685ef316805265ea162",
        "ipfs://QmTooShort",
        "ipfs://zdj7WWeQ43G6JJvLWQWZpyHuAMq6uYWRjkBXFad11vE2LHhQ7",
    ],
)
def test_rejected_inputs(value):
    with pytest.raises(ValidationError):
        encode_content_hash(value)
