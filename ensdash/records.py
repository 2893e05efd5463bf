"""
Record editing for a name: text records, content hash, primary name, ownership transfer.

All writes go through the ChainGateway, wait for the receipt, and come back as
a RecordResult. The resolver is looked up in the registry on every call so a
name that just changed resolver is handled.
"""

import logging
from typing import Dict, Iterable, Optional

from ensdash.chain import ChainGateway, TxStatus
from ensdash.config import ZERO_ADDRESS, ChainConfig
from ensdash.contenthash import decode_content_hash, encode_content_hash
from ensdash.errors import EnsDashError, TransactionReverted, ValidationError
from ensdash.names import namehash, validate_address, with_eth
from ensdash.schema import RecordResult

logger = logging.getLogger(__name__)

PROFILE_TEXT_KEYS = [
    "email",
    "url",
    "description",
    "location",
    "phone",
    "notice",
    "keywords",
    "avatar",
    "header",
    "status",
    "com.twitter",
    "com.github",
    "com.discord",
    "com.reddit",
    "org.telegram",
    "com.linkedin",
    "com.youtube",
    "com.instagram",
    "io.keybase",
]

EDITABLE_TEXT_KEYS = [
    "email",
    "url",
    "description",
    "location",
    "status",
    "com.discord",
    "com.twitter",
    "com.github",
    "org.telegram",
]


class RecordEditor:
    def __init__(self, gateway: ChainGateway, chain: ChainConfig):
        self.gateway = gateway
        self.chain = chain

    def resolver_for(self, name: str) -> Optional[str]:
        """Resolver address for name, or None when unset. Raises ChainReadError."""
        resolver = self.gateway.read_contract(self.chain.registry, "resolver", [namehash(name)])
        if not resolver or resolver.lower() == ZERO_ADDRESS:
            return None
        return resolver

    def _require_resolver(self, name: str) -> str:
        resolver = self.resolver_for(name)
        if resolver is None:
            raise ValidationError(f"'{name}' has no resolver set.")
        return resolver

    def get_text(self, name: str, key: str) -> RecordResult:
        return self.get_texts(name, [key])

    def get_texts(self, name: str, keys: Iterable[str] = PROFILE_TEXT_KEYS) -> RecordResult:
        """Non-empty text records among keys."""
        values: Dict[str, str] = {}
        try:
            resolver = self._require_resolver(name)
            node = namehash(name)
            for key in keys:
                value = self.gateway.read_contract(resolver, "text", [node, key])
                if value:
                    values[key] = value
        except EnsDashError as e:
            return RecordResult.failure(e, name=name, values=values)
        return RecordResult(name=name, values=values)

    def get_address(self, name: str) -> RecordResult:
        try:
            resolver = self._require_resolver(name)
            address = self.gateway.read_contract(resolver, "addr", [namehash(name)])
        except EnsDashError as e:
            return RecordResult.failure(e, name=name)
        values = {"addr": address} if address and address.lower() != ZERO_ADDRESS else {}
        return RecordResult(name=name, values=values)

    def get_content_hash(self, name: str) -> RecordResult:
        try:
            resolver = self._require_resolver(name)
            raw = self.gateway.read_contract(resolver, "contenthash", [namehash(name)])
        except EnsDashError as e:
            return RecordResult.failure(e, name=name)
        decoded = decode_content_hash(raw)
        return RecordResult(name=name, values={"contenthash": decoded} if decoded else {})

    def set_text(self, name: str, key: str, value: str) -> RecordResult:
        if not key or not key.strip():
            return RecordResult.failure(ValidationError("Record key is empty."), name=name)
        if not value or not value.strip():
            return RecordResult.failure(ValidationError(f"Value for '{key}' is empty."), name=name)
        try:
            resolver = self._require_resolver(name)
        except EnsDashError as e:
            return RecordResult.failure(e, name=name)
        return self._write(name, resolver, "setText", [namehash(name), key.strip(), value.strip()], {key: value})

    def set_content_hash(self, name: str, value: str) -> RecordResult:
        try:
            encoded = encode_content_hash(value)
            resolver = self._require_resolver(name)
        except EnsDashError as e:
            return RecordResult.failure(e, name=name)
        return self._write(name, resolver, "setContenthash", [namehash(name), encoded], {"contenthash": value})

    def set_primary_name(self, name: str) -> RecordResult:
        """Point the sender's reverse record at name ('alice' means 'alice.eth')."""
        if not name or not name.strip():
            return RecordResult.failure(ValidationError("Enter an ENS name."), name=name or "")
        name = with_eth(name.lower())
        return self._write(name, self.chain.reverse_registrar, "setName", [name], {"primary": name})

    def transfer(self, name: str, recipient: str, confirmation: str) -> RecordResult:
        """Registry setOwner. The caller must type the name back as confirmation."""
        try:
            recipient = validate_address(recipient)
        except ValidationError as e:
            return RecordResult.failure(e, name=name)
        if confirmation != name:
            return RecordResult.failure(ValidationError(f'Please type "{name}" to confirm.'), name=name)
        return self._write(name, self.chain.registry, "setOwner", [namehash(name), recipient], {"owner": recipient})

    def lookup_name(self, address: str) -> RecordResult:
        """Reverse lookup through the gateway's ENS support (Web3ChainGateway.primary_name)."""
        try:
            address = validate_address(address)
            name = self.gateway.primary_name(address)
        except EnsDashError as e:
            return RecordResult.failure(e, name="")
        return RecordResult(name=name or "", values={"addr": address})

    def _write(self, name: str, address: str, function_name: str, args, values: Dict[str, str]) -> RecordResult:
        try:
            tx_hash = self.gateway.write_contract(address, function_name, args)
            if self.gateway.wait_for_receipt(tx_hash) != TxStatus.CONFIRMED:
                raise TransactionReverted(f"{function_name} transaction reverted.", tx_hash=tx_hash)
        except EnsDashError as e:
            logger.warning("%s on %s failed: %s", function_name, name, e.message)
            return RecordResult.failure(e, name=name, tx_hash=getattr(e, "tx_hash", None))
        logger.info("%s on %s confirmed: %s", function_name, name, tx_hash)
        return RecordResult(name=name, tx_hash=tx_hash, values=values)
