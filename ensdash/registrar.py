"""
.eth name registration: the controller's commit / wait / reveal protocol.

    INPUT --start_commit--> COMMITTING --commit confirmed--> WAITING
    WAITING --countdown at 0, complete_registration--> REGISTERING --confirmed--> COMPLETE
    COMPLETE --reset--> INPUT (fresh session, fresh secret)

Failures never raise out of the registrar; every step returns a
RegistrationResult. A failed commit goes back to INPUT and drops the secret
(nothing was stored on-chain). A failed register goes back to WAITING and
keeps the secret, since the on-chain commitment is still usable; when the
chain says the commitment is gone or mismatched the result asks for a reset.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from web3 import Web3

from ensdash.chain import ChainGateway, TxStatus
from ensdash.clock import Countdown, Scheduler, ThreadingScheduler
from ensdash.config import COMMIT_WAIT_SECONDS, PRICE_BUFFER_PERCENT, SECONDS_PER_YEAR, ChainConfig
from ensdash.errors import (
    AvailabilityError,
    EnsDashError,
    ErrorKind,
    RevertReason,
    TransactionRejected,
    TransactionReverted,
    ValidationError,
)
from ensdash.names import validate_address, validate_label
from ensdash.schema import AvailabilityResult, QuoteResult, RegistrationResult, RentPrice

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    INPUT = "input"
    COMMITTING = "committing"
    WAITING = "waiting"
    REGISTERING = "registering"
    COMPLETE = "complete"


def duration_seconds(years: int) -> int:
    if isinstance(years, bool) or not isinstance(years, int) or years < 1:
        raise ValidationError("Duration must be a whole number of years (at least 1).")
    return years * SECONDS_PER_YEAR


def price_with_buffer(total_wei: int) -> int:
    """ceil(total * 1.10) in integer wei."""
    return -(-int(total_wei) * PRICE_BUFFER_PERCENT // 100)


@dataclass(frozen=True)
class CommitParams:
    """Everything hashed into the commitment. Frozen at commit time, replayed verbatim at register."""

    label: str
    owner: str
    duration: int
    secret: bytes
    resolver: str
    reverse_record: bool = True
    owner_controlled_fuses: int = 0
    data: Tuple[bytes, ...] = ()

    def as_args(self) -> List[Any]:
        return [
            self.label,
            self.owner,
            self.duration,
            self.secret,
            self.resolver,
            list(self.data),
            self.reverse_record,
            self.owner_controlled_fuses,
        ]


@dataclass
class RegistrationSession:
    label: str = ""
    duration_years: int = 1
    wait_seconds: int = COMMIT_WAIT_SECONDS
    state: SessionState = SessionState.INPUT
    secret: Optional[bytes] = field(default=None, repr=False)
    commitment: Optional[bytes] = None
    params: Optional[CommitParams] = field(default=None, repr=False)
    countdown: Optional[Countdown] = field(default=None, repr=False)
    commit_tx: Optional[str] = None
    register_tx: Optional[str] = None
    discarded: bool = False
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def wait_remaining_seconds(self) -> int:
        if self.countdown is None:
            return self.wait_seconds
        return self.countdown.remaining

    @property
    def name(self) -> str:
        return f"{self.label}.eth" if self.label else ""


OnChange = Callable[[RegistrationSession, SessionState, SessionState], None]


class NameRegistrar:
    """
    Drives one registration at a time against the registrar controller.

    owner: address that will own the name (normally the signing wallet); None for quote-only use.
    resolver: resolver set at registration; defaults to the chain's public resolver.
    scheduler: ticks the wait countdown; ThreadingScheduler unless given.
    on_change: called as on_change(session, old_state, new_state) on every transition.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        owner: Optional[str],
        chain: ChainConfig,
        scheduler: Optional[Scheduler] = None,
        wait_seconds: int = COMMIT_WAIT_SECONDS,
        resolver: Optional[str] = None,
        reverse_record: bool = True,
        owner_controlled_fuses: int = 0,
        on_change: Optional[OnChange] = None,
    ):
        self.gateway = gateway
        self.owner = validate_address(owner) if owner else None
        self.controller = chain.registrar_controller
        self.resolver = Web3.to_checksum_address(resolver or chain.public_resolver)
        self.scheduler = scheduler or ThreadingScheduler()
        self.wait_seconds = wait_seconds
        self.reverse_record = reverse_record
        self.owner_controlled_fuses = owner_controlled_fuses
        self.on_change = on_change
        self._session: Optional[RegistrationSession] = None

    @property
    def session(self) -> Optional[RegistrationSession]:
        return self._session

    def new_session(self, label: str = "", duration_years: int = 1) -> RegistrationSession:
        """Start over with a fresh session. Any previous session is discarded."""
        if self._session is not None:
            self._discard(self._session)
        self._session = RegistrationSession(label=label, duration_years=duration_years, wait_seconds=self.wait_seconds)
        return self._session

    def reset(self, session: RegistrationSession) -> RegistrationSession:
        """Discard session whatever its state (even mid-transaction) and return a fresh one."""
        self._discard(session)
        logger.info("Registration session %s reset from %s", session.session_id, session.state.value)
        if session is not self._session and self._session is not None:
            return self._session
        self._session = None
        return self.new_session()

    # --- read-only steps ---

    def check_availability(self, label: str) -> AvailabilityResult:
        try:
            label = validate_label(label)
            available = bool(self.gateway.read_contract(self.controller, "available", [label]))
        except EnsDashError as e:
            return AvailabilityResult.failure(e, label=label or "")
        return AvailabilityResult(label=label, available=available)

    def quote_rent_price(self, label: str, duration_years: int) -> QuoteResult:
        try:
            label = validate_label(label)
            seconds = duration_seconds(duration_years)
        except ValidationError as e:
            years = duration_years if isinstance(duration_years, int) else 0
            return QuoteResult.failure(e, label=label or "", duration_years=years)
        return self._quote(label, seconds, duration_years)

    def _quote(self, label: str, seconds: int, duration_years: int) -> QuoteResult:
        try:
            raw = self.gateway.read_contract(self.controller, "rentPrice", [label, seconds])
        except EnsDashError as e:
            return QuoteResult.failure(e, label=label, duration_years=duration_years)
        price = _rent_price(raw)
        return QuoteResult(
            label=label,
            duration_years=duration_years,
            price=price,
            value_with_buffer=price_with_buffer(price.total),
        )

    def _quote_committed(self, params: CommitParams) -> QuoteResult:
        """Price for exactly the term frozen into the commitment."""
        return self._quote(params.label, params.duration, params.duration // SECONDS_PER_YEAR)

    # --- commit ---

    def start_commit(self, session: RegistrationSession) -> RegistrationResult:
        """
        Validate, check availability, draw a new 32-byte secret, ask the
        controller for the commitment hash and submit commit(). On success the
        session is WAITING and its countdown is running.
        """
        problem = self._check_active(session) or self._check_state(session, SessionState.INPUT)
        if problem:
            return problem
        try:
            if self.owner is None:
                raise ValidationError("No owner address configured for registration.")
            label = validate_label(session.label)
            seconds = duration_seconds(session.duration_years)
        except ValidationError as e:
            return RegistrationResult.failure(e, state=session.state.value)

        availability = self.check_availability(label)
        if not availability.ok:
            return RegistrationResult(
                ok=False, error=availability.error, error_kind=availability.error_kind, state=session.state.value
            )
        if not availability.available:
            return RegistrationResult.failure(
                AvailabilityError(f"'{label}.eth' is not available."), state=session.state.value
            )

        params = CommitParams(
            label=label,
            owner=self.owner,
            duration=seconds,
            secret=secrets.token_bytes(32),
            resolver=self.resolver,
            reverse_record=self.reverse_record,
            owner_controlled_fuses=self.owner_controlled_fuses,
        )
        try:
            commitment = bytes(self.gateway.read_contract(self.controller, "makeCommitment", params.as_args()))
        except EnsDashError as e:
            return RegistrationResult.failure(e, state=session.state.value)

        session.label = label
        session.params = params
        session.secret = params.secret
        session.commitment = commitment
        self._transition(session, SessionState.COMMITTING)
        try:
            session.commit_tx = self._send("commit", [commitment])
        except EnsDashError as e:
            logger.warning("Commit for %s failed: %s", session.name, e.message)
            if not session.discarded:
                self._forget_commitment(session)
                self._transition(session, SessionState.INPUT)
            return self._failure(e, session, retryable=True)

        if session.discarded:
            return RegistrationResult.failure(
                ValidationError("Session was reset while the commit was in flight."), state=session.state.value
            )
        self._transition(session, SessionState.WAITING)
        return RegistrationResult(
            state=session.state.value, commitment=Web3.to_hex(commitment), tx_hash=session.commit_tx
        )

    # --- reveal ---

    def complete_registration(self, session: RegistrationSession) -> RegistrationResult:
        """
        Submit register() with the exact parameters and secret of the commit,
        paying the quoted price plus the 10% buffer. Refused locally while the
        countdown is still running.
        """
        problem = self._check_active(session) or self._check_state(session, SessionState.WAITING)
        if problem:
            return problem
        remaining = session.wait_remaining_seconds
        if remaining > 0:
            return RegistrationResult.failure(
                ValidationError(f"Commitment is still maturing: {remaining}s remaining."),
                state=session.state.value,
                retryable=True,
            )
        params = session.params
        quote = self._quote_committed(params)
        if not quote.ok:
            return RegistrationResult(
                ok=False,
                error=quote.error,
                error_kind=quote.error_kind,
                state=session.state.value,
                retryable=True,
                quote=quote,
            )

        self._transition(session, SessionState.REGISTERING)
        try:
            session.register_tx = self._send("register", params.as_args(), value=quote.value_with_buffer)
        except EnsDashError as e:
            logger.warning("Register for %s failed: %s", session.name, e.message)
            if session.discarded:
                return self._failure(e, session)
            self._transition(session, SessionState.WAITING)
            return self._register_failure(e, session)

        if session.discarded:
            return RegistrationResult.failure(
                ValidationError("Session was reset while the registration was in flight."), state=session.state.value
            )
        self._transition(session, SessionState.COMPLETE)
        logger.info("Registered %s for %s", session.name, self.owner)
        return RegistrationResult(
            state=session.state.value,
            commitment=Web3.to_hex(session.commitment),
            tx_hash=session.register_tx,
            quote=quote,
        )

    # --- internals ---

    def _send(self, function_name: str, args: List[Any], value: int = 0) -> str:
        """Submit to the controller and wait for a confirmed receipt. Every failure surfaces as EnsDashError."""
        try:
            tx_hash = self.gateway.write_contract(self.controller, function_name, args, value=value)
            status = self.gateway.wait_for_receipt(tx_hash)
        except EnsDashError:
            raise
        except Exception as e:
            logger.exception("Unexpected gateway failure during %s()", function_name)
            raise TransactionRejected(f"{function_name}() failed: {e}") from e
        if status != TxStatus.CONFIRMED:
            raise TransactionReverted(f"{function_name.capitalize()} transaction reverted.", tx_hash=tx_hash)
        return tx_hash

    def _register_failure(self, e: EnsDashError, session: RegistrationSession) -> RegistrationResult:
        reason = getattr(e, "revert_reason", None)
        if reason == RevertReason.COMMITMENT_MISMATCH:
            return self._failure(e, session, requires_reset=True, revert_reason=reason)
        if reason == RevertReason.NAME_UNAVAILABLE:
            return self._failure(e, session, requires_reset=True, revert_reason=reason)
        if reason == RevertReason.INSUFFICIENT_PAYMENT:
            fresh = self._quote_committed(session.params)
            return self._failure(e, session, retryable=True, revert_reason=reason, quote=fresh)
        # premature reveal (clock drift), unknown reverts and wallet refusals: try again
        return self._failure(e, session, retryable=True, revert_reason=reason)

    def _failure(self, e: EnsDashError, session: RegistrationSession, **fields) -> RegistrationResult:
        if e.kind == ErrorKind.TX_REVERTED and "revert_reason" not in fields:
            fields["revert_reason"] = getattr(e, "revert_reason", RevertReason.UNKNOWN)
        return RegistrationResult.failure(
            e, state=session.state.value, tx_hash=getattr(e, "tx_hash", None), **fields
        )

    def _check_active(self, session: RegistrationSession) -> Optional[RegistrationResult]:
        if session.discarded or session is not self._session:
            return RegistrationResult.failure(
                ValidationError("This registration session was reset; start a new one."), state=session.state.value
            )
        return None

    def _check_state(self, session: RegistrationSession, expected: SessionState) -> Optional[RegistrationResult]:
        if session.state == expected:
            return None
        if session.state == SessionState.COMPLETE:
            message = f"{session.name} is already registered; reset before registering another name."
        else:
            message = f"Cannot do that while the registration is {session.state.value}."
        return RegistrationResult.failure(ValidationError(message), state=session.state.value)

    def _transition(self, session: RegistrationSession, new_state: SessionState) -> None:
        old_state = session.state
        if old_state == SessionState.WAITING and new_state != SessionState.WAITING and session.countdown:
            session.countdown.cancel()
        session.state = new_state
        if new_state == SessionState.WAITING and old_state == SessionState.COMMITTING:
            session.countdown = Countdown(self.scheduler, session.wait_seconds)
            session.countdown.start()
        logger.info("Registration %s: %s -> %s", session.name or session.session_id, old_state.value, new_state.value)
        if self.on_change is not None:
            self.on_change(session, old_state, new_state)

    def _forget_commitment(self, session: RegistrationSession) -> None:
        session.secret = None
        session.commitment = None
        session.params = None

    def _discard(self, session: RegistrationSession) -> None:
        if session.countdown is not None:
            session.countdown.cancel()
        self._forget_commitment(session)
        session.discarded = True


def _rent_price(raw: Any) -> RentPrice:
    """rentPrice() returns a (base, premium) struct; web3 hands it back as a tuple."""
    if isinstance(raw, dict):
        return RentPrice(base=int(raw["base"]), premium=int(raw.get("premium", 0)))
    base, premium = raw
    return RentPrice(base=int(base), premium=int(premium))
