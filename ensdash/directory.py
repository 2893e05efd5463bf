"""
Owned-name directory: the names an address controls and the one currently selected.

Every fetch is keyed to the (address, chain_id) it was issued for and carries
a generation number. Only the most recently issued fetch may write its
result; anything that finishes later for an older request is dropped. Each
applied result replaces the whole list.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ensdash.errors import EnsDashError, ValidationError
from ensdash.names import validate_address
from ensdash.schema import OWNED_NAMES_FILTER, Domain, OwnedNamesResult
from ensdash.subgraph import SubgraphIndex

logger = logging.getLogger(__name__)

PrimaryNameLookup = Callable[[str, int], Optional[str]]


def dedupe(domains: List[Domain]) -> List[Domain]:
    """Drop repeated ids, keeping the index's order and the first occurrence."""
    seen = set()
    out = []
    for domain in domains:
        if domain.id in seen:
            continue
        seen.add(domain.id)
        out.append(domain)
    return out


def fetch_owned_names(index: SubgraphIndex, address: str, chain_id: int) -> OwnedNamesResult:
    """
    Names address owns, registered, or holds wrapped on chain_id.

    Zero names is a normal, error-free result. error is set only when the
    address is malformed or the index fails; domains is then empty.
    """
    try:
        checksummed = validate_address(address)
        domains = index.names_owned_by(checksummed, OWNED_NAMES_FILTER, chain_id)
    except EnsDashError as e:
        logger.warning("Fetching names for %s on chain %s failed: %s", address, chain_id, e.message)
        prefix = "" if isinstance(e, ValidationError) else "Failed to fetch ENS names: "
        return OwnedNamesResult(address=address, chain_id=chain_id, error=f"{prefix}{e.message}")
    return OwnedNamesResult(address=checksummed, chain_id=chain_id, domains=dedupe(domains))


@dataclass(frozen=True)
class FetchTicket:
    address: str
    chain_id: int
    generation: int

    @property
    def key(self) -> Tuple[str, int]:
        return (self.address.lower(), self.chain_id)


class OwnedNameDirectory:
    """
    Cached owned names plus the selected name used by every record/profile feature.

    primary_name_lookup(address, chain_id) returns the address's reverse record
    (or None); it decides the default selection after each fetch.
    """

    def __init__(self, index: SubgraphIndex, primary_name_lookup: Optional[PrimaryNameLookup] = None):
        self.index = index
        self.primary_name_lookup = primary_name_lookup
        self._lock = threading.Lock()
        self._generation = 0
        self._identity: Optional[Tuple[str, int]] = None
        self._domains: List[Domain] = []
        self._selected: Optional[str] = None
        self._primary: Optional[str] = None
        self._error: Optional[str] = None
        self._loading = False

    @property
    def domains(self) -> List[Domain]:
        with self._lock:
            return list(self._domains)

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.domains]

    @property
    def selected_name(self) -> Optional[str]:
        return self._selected

    @property
    def primary_name(self) -> Optional[str]:
        return self._primary

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def identity(self) -> Optional[Tuple[str, int]]:
        return self._identity

    def select_name(self, name: str) -> None:
        """Make name the active one. Not checked against the fetched list."""
        with self._lock:
            self._selected = name or None

    def begin_fetch(self, address: str, chain_id: int) -> FetchTicket:
        """Register a new request; any ticket issued before this one is now stale."""
        with self._lock:
            self._generation += 1
            ticket = FetchTicket(address=address, chain_id=int(chain_id), generation=self._generation)
            self._identity = ticket.key
            self._loading = True
        return ticket

    def is_current(self, ticket: FetchTicket) -> bool:
        return ticket.generation == self._generation

    def apply_fetch(self, ticket: FetchTicket, result: OwnedNamesResult, primary_name: Optional[str] = None) -> bool:
        """
        Install result if ticket is still the latest request. Returns False
        (and changes nothing) for stale tickets.
        """
        with self._lock:
            if ticket.generation != self._generation:
                logger.info("Dropping stale names for %s on chain %s", ticket.address, ticket.chain_id)
                return False
            self._loading = False
            self._domains = list(result.domains)
            self._error = result.error
            if result.error is not None:
                return True
            self._primary = primary_name or None
            if self._primary:
                self._selected = self._primary
            elif not self._selected and self._domains:
                self._selected = self._domains[0].name
            return True

    def refresh(self, address: Optional[str] = None, chain_id: Optional[int] = None) -> OwnedNamesResult:
        """Fetch and apply for (address, chain_id), or re-fetch the current identity."""
        if address is None or chain_id is None:
            if self._identity is None:
                return OwnedNamesResult(address=address or "", chain_id=chain_id or 0, error="No address connected.")
            address, chain_id = self._identity
        ticket = self.begin_fetch(address, chain_id)
        result = fetch_owned_names(self.index, address, ticket.chain_id)
        primary = self._lookup_primary(address, ticket.chain_id) if result.ok else None
        self.apply_fetch(ticket, result, primary)
        return result

    def set_identity(self, address: str, chain_id: int) -> Optional[OwnedNamesResult]:
        """Fetch when (address, chain_id) differs from the current one; otherwise do nothing."""
        if self._identity == (address.lower(), int(chain_id)):
            return None
        return self.refresh(address, chain_id)

    def disconnect(self) -> None:
        """Forget everything; in-flight fetches become stale."""
        with self._lock:
            self._generation += 1
            self._identity = None
            self._domains = []
            self._selected = None
            self._primary = None
            self._error = None
            self._loading = False

    def _lookup_primary(self, address: str, chain_id: int) -> Optional[str]:
        if self.primary_name_lookup is None:
            return None
        try:
            return self.primary_name_lookup(address, chain_id) or None
        except Exception as e:
            # lookup failure counts as no primary name
            logger.warning("Primary name lookup for %s failed: %s", address, e)
            return None
