"""
ENS subgraph client: which names does an address own?

Queries the ENS subgraph over GraphQL for domains where the address is the
registry owner, the .eth registrant, or the Name Wrapper owner. Matching on
resolved address is off by default: pointing a name at an address does not
give that address control of the name.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from ensdash.config import get_chain_config
from ensdash.errors import SubgraphError
from ensdash.schema import OWNED_NAMES_FILTER, Domain, NameFilter

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
MAX_PAGES = 10

DOMAIN_FIELDS = """
    id
    name
    labelName
    createdAt
    registration { expiryDate }
    wrappedDomain { expiryDate }
"""


class SubgraphIndex(Protocol):
    def names_owned_by(self, address: str, name_filter: NameFilter, chain_id: int) -> List[Domain]:
        ...


def build_where(name_filter: NameFilter) -> str:
    """GraphQL `where` clause for the relations enabled in name_filter."""
    clauses = []
    if name_filter.owner:
        clauses.append("{ owner: $address }")
    if name_filter.registrant:
        clauses.append("{ registration_: { registrant: $address } }")
    if name_filter.wrapped_owner:
        clauses.append("{ wrappedDomain_: { owner: $address } }")
    if name_filter.resolved_address:
        clauses.append("{ resolvedAddress: $address }")
    if not clauses:
        raise SubgraphError("Name filter excludes every relation.")
    return "{ or: [" + ", ".join(clauses) + "] }"


def build_query(name_filter: NameFilter) -> str:
    return (
        "query getNamesForAddress($address: String!, $first: Int!, $skip: Int!) {\n"
        f"  domains(first: $first, skip: $skip, where: {build_where(name_filter)}, "
        "orderBy: createdAt, orderDirection: desc) {"
        f"{DOMAIN_FIELDS}  }}\n}}\n"
    )


def parse_domain(raw: Dict[str, Any]) -> Optional[Domain]:
    """One subgraph row -> Domain. Rows without a name are skipped (returns None)."""
    name = raw.get("name")
    if not name:
        return None
    registration = raw.get("registration") or {}
    wrapped = raw.get("wrappedDomain") or {}
    expiry = registration.get("expiryDate") or wrapped.get("expiryDate")
    created_at = raw.get("createdAt")
    domain_id = raw.get("id") or name
    token_id = None
    if raw.get("wrappedDomain") and str(domain_id).startswith("0x"):
        # wrapped names are ERC-1155 tokens keyed by namehash
        token_id = str(int(domain_id, 16))
    return Domain(
        id=str(domain_id),
        name=name,
        label_name=raw.get("labelName") or None,
        created_at=str(created_at) if created_at is not None else None,
        expiry_date=str(expiry) if expiry is not None else None,
        token_id=token_id,
    )


class EnsSubgraphIndex:
    """SubgraphIndex over HTTP. Endpoint per chain from config unless url is given."""

    def __init__(self, url: Optional[str] = None, timeout: int = 30, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.http = session or requests.Session()

    def _endpoint(self, chain_id: int) -> str:
        return self.url or get_chain_config(chain_id).subgraph_url

    def _post(self, url: str, query: str, variables: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            r = self.http.post(url, json={"query": query, "variables": variables}, timeout=self.timeout)
        except requests.RequestException as e:
            raise SubgraphError(f"Subgraph unreachable: {e}")
        if r.status_code != 200:
            raise SubgraphError(f"Subgraph returned {r.status_code}: {r.text[:200]}")
        try:
            body = r.json()
        except ValueError:
            raise SubgraphError("Subgraph returned a non-JSON response.")
        if not isinstance(body, dict):
            raise SubgraphError("Subgraph returned an unexpected response.")
        if body.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in body["errors"] if isinstance(err, dict))
            raise SubgraphError(f"Subgraph query failed: {messages or body['errors']}")
        domains = (body.get("data") or {}).get("domains")
        if not isinstance(domains, list):
            raise SubgraphError("Subgraph response has no domains list.")
        return domains

    def names_owned_by(
        self, address: str, name_filter: NameFilter = OWNED_NAMES_FILTER, chain_id: int = 1
    ) -> List[Domain]:
        url = self._endpoint(chain_id)
        query = build_query(name_filter)
        out: List[Domain] = []
        for page in range(MAX_PAGES):
            rows = self._post(url, query, {"address": address.lower(), "first": PAGE_SIZE, "skip": page * PAGE_SIZE})
            for raw in rows:
                if not isinstance(raw, dict):
                    raise SubgraphError("Subgraph returned a malformed domain row.")
                domain = parse_domain(raw)
                if domain is not None:
                    out.append(domain)
            if len(rows) < PAGE_SIZE:
                break
        logger.info("Subgraph: %d names for %s on chain %s", len(out), address, chain_id)
        return out
