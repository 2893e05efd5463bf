import threading
from typing import Any, Dict, List, Optional, Sequence

import pytest

from ensdash.chain import TxStatus
from ensdash.config import SEPOLIA_CHAIN_ID, ZERO_ADDRESS, get_chain_config
from ensdash.names import make_commitment

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
CAROL = "0x3333333333333333333333333333333333333333"
RESOLVER = "0x4444444444444444444444444444444444444444"


class FakeGateway:
    """In-memory ChainGateway: records every call, scripted failures per function."""

    def __init__(self, available=True, price=(3_000_000_000_000_000, 0)):
        self.available = available
        self.price = price
        self.calls: List[tuple] = []
        self.read_errors: Dict[str, Exception] = {}
        self.write_errors: Dict[str, List[Exception]] = {}
        self.receipts: Dict[str, List[TxStatus]] = {}
        self.resolvers: Dict[bytes, str] = {}
        self.texts: Dict[tuple, str] = {}
        self.content_hashes: Dict[bytes, bytes] = {}
        self.addrs: Dict[bytes, str] = {}
        self.reverse: Dict[str, str] = {}
        self._tx_function: Dict[str, str] = {}
        self._lock = threading.Lock()

    def read_contract(self, address: str, function_name: str, args: Sequence[Any] = ()) -> Any:
        self.calls.append(("read", address, function_name, list(args), 0))
        if function_name in self.read_errors:
            raise self.read_errors[function_name]
        if function_name == "available":
            if isinstance(self.available, dict):
                return self.available.get(args[0], True)
            return self.available
        if function_name == "rentPrice":
            return self.price(*args) if callable(self.price) else self.price
        if function_name == "makeCommitment":
            return make_commitment(*args)
        if function_name == "resolver":
            return self.resolvers.get(args[0], ZERO_ADDRESS)
        if function_name == "text":
            return self.texts.get((args[0], args[1]), "")
        if function_name == "contenthash":
            return self.content_hashes.get(args[0], b"")
        if function_name == "addr":
            return self.addrs.get(args[0], ZERO_ADDRESS)
        raise AssertionError(f"unexpected read {function_name}")

    def write_contract(self, address: str, function_name: str, args: Sequence[Any] = (), value: int = 0) -> str:
        self.calls.append(("write", address, function_name, list(args), value))
        errors = self.write_errors.get(function_name)
        if errors:
            raise errors.pop(0)
        with self._lock:
            tx_hash = "0x%064x" % len(self.calls)
            self._tx_function[tx_hash] = function_name
        return tx_hash

    def wait_for_receipt(self, tx_hash: str) -> TxStatus:
        statuses = self.receipts.get(self._tx_function[tx_hash])
        if statuses:
            return statuses.pop(0)
        return TxStatus.CONFIRMED

    def primary_name(self, address: str) -> Optional[str]:
        return self.reverse.get(address.lower())

    def reads(self, function_name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == "read" and c[2] == function_name]

    def writes(self, function_name: Optional[str] = None) -> List[tuple]:
        return [c for c in self.calls if c[0] == "write" and (function_name is None or c[2] == function_name)]


class _Handle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when the test calls advance()."""

    def __init__(self):
        self.pending: List[_Handle] = []

    def call_later(self, delay, callback):
        handle = _Handle(callback)
        self.pending.append(handle)
        return handle

    @property
    def active(self) -> List[_Handle]:
        return [h for h in self.pending if not h.cancelled]

    def advance(self, ticks: int = 1) -> None:
        for _ in range(ticks):
            due = self.active
            self.pending = []
            for handle in due:
                handle.callback()


class FakeIndex:
    """SubgraphIndex keyed by (lowercase address, chain_id); values are lists or exceptions."""

    def __init__(self, results=None):
        self.results = results or {}
        self.calls: List[tuple] = []

    def names_owned_by(self, address, name_filter, chain_id):
        self.calls.append((address, name_filter, chain_id))
        result = self.results.get((address.lower(), chain_id), [])
        if isinstance(result, Exception):
            raise result
        return list(result)


@pytest.fixture
def sepolia():
    return get_chain_config(SEPOLIA_CHAIN_ID)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def scheduler():
    return ManualScheduler()
