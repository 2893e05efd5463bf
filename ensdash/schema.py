"""
Data models shared by the registrar, the owned-name directory and the record editor.

Results are returned as values: ok/error pairs instead of exceptions, so the
caller (CLI or UI) decides how to show them.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ensdash.errors import EnsDashError, ErrorKind, RevertReason


class Domain(BaseModel):
    """A name owned (or registered, or held wrapped) by an address."""

    id: str = Field(..., description="Subgraph id (namehash) or the name itself; unique per result set")
    name: str = Field(..., description="Fully-qualified name, e.g. alice.eth")
    label_name: Optional[str] = Field(None, description="Label when the index knows it")
    created_at: Optional[str] = Field(None, description="UNIX timestamp, string-encoded")
    expiry_date: Optional[str] = Field(None, description="UNIX timestamp, string-encoded")
    token_id: Optional[str] = Field(None, description="Only for wrapped (ERC-1155) names")


class NameFilter(BaseModel):
    """Which relations to an address count as ownership."""

    owner: bool = True
    registrant: bool = True
    wrapped_owner: bool = True
    resolved_address: bool = False


OWNED_NAMES_FILTER = NameFilter()


class RentPrice(BaseModel):
    base: int = Field(..., description="Base rent in wei")
    premium: int = Field(0, description="Temporary premium in wei (recently expired names)")

    @property
    def total(self) -> int:
        return self.base + self.premium


class _Outcome(BaseModel):
    ok: bool = True
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, exc: EnsDashError, **fields) -> "_Outcome":
        return cls(ok=False, error=exc.message, error_kind=exc.kind, **fields)


class AvailabilityResult(_Outcome):
    label: str
    available: Optional[bool] = None


class QuoteResult(_Outcome):
    label: str
    duration_years: int
    price: Optional[RentPrice] = None
    value_with_buffer: Optional[int] = Field(None, description="Wei to attach to register()")


class RegistrationResult(_Outcome):
    """Outcome of one registrar step; `state` is where the session ended up."""

    state: str
    revert_reason: Optional[RevertReason] = None
    retryable: bool = False
    requires_reset: bool = False
    commitment: Optional[str] = None
    tx_hash: Optional[str] = None
    quote: Optional[QuoteResult] = None


class OwnedNamesResult(BaseModel):
    address: str
    chain_id: int
    domains: List[Domain] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordResult(_Outcome):
    name: str
    tx_hash: Optional[str] = None
    values: Dict[str, str] = Field(default_factory=dict)
