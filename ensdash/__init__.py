"""
ensdash: manage ENS names from Python.

- Register .eth names through the controller's commit / wait / reveal flow
- Discover the names an address owns and keep one selected
- Read and edit text records, content hash, primary name and ownership

Writes are signed locally with a key from ENSDASH_PRIVATE_KEY; reads need only an RPC.
"""

__version__ = "0.1.0"

from ensdash.chain import ChainGateway, TxStatus, Web3ChainGateway
from ensdash.config import CHAINS, ChainConfig, get_chain_config
from ensdash.directory import FetchTicket, OwnedNameDirectory, fetch_owned_names
from ensdash.errors import ErrorKind, RevertReason
from ensdash.records import RecordEditor
from ensdash.registrar import NameRegistrar, RegistrationSession, SessionState, price_with_buffer
from ensdash.schema import Domain, OwnedNamesResult, RegistrationResult, RentPrice
from ensdash.subgraph import EnsSubgraphIndex, SubgraphIndex
from ensdash.wallet import Wallet

__all__ = [
    "CHAINS",
    "ChainConfig",
    "ChainGateway",
    "Domain",
    "EnsSubgraphIndex",
    "ErrorKind",
    "FetchTicket",
    "NameRegistrar",
    "OwnedNameDirectory",
    "OwnedNamesResult",
    "RecordEditor",
    "RegistrationResult",
    "RegistrationSession",
    "RentPrice",
    "RevertReason",
    "SessionState",
    "SubgraphIndex",
    "TxStatus",
    "Wallet",
    "Web3ChainGateway",
    "fetch_owned_names",
    "get_chain_config",
    "price_with_buffer",
]
