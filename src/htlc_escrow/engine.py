"""Escrow state machine: create, claim, refund, configure, query.

Every mutating operation runs inside `Storage.transaction()`: validation and
writes happen against a working copy that is committed only on success. The
resulting transfer instructions are handed to the ledger before commit, so a
failing transfer discards the writes.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .address import AddressValidator, Bech32AddressValidator
from .config import U32_MAX, U128_MAX, ClaimPolicy, EngineSettings
from .crypto.hash_algorithms import DigestFn, digest_fn, secret_bytes
from .errors import ErrorCode, EscrowError, timelock_not_expired
from .ledger import InMemoryLedger, Ledger, deliver
from .msg import (
    Claim,
    ConfigView,
    CreateBatchEscrows,
    CreateEscrow,
    EscrowInput,
    EscrowView,
    GetAdmin,
    GetBatchEscrows,
    GetConfig,
    GetEscrow,
    GetEscrowsByAccount,
    GetUserEscrows,
    Instantiate,
    Refund,
    Role,
    UpdateConfig,
    UserEscrowsView,
)
from .storage import Storage
from .types import BankSend, CallContext, Coin, Config, Escrow, EscrowStatus, Response
from .validation import (
    canonical_hashlock,
    check_funds,
    lookup_key,
    require_future_timelock,
    require_positive_amount,
    require_valid_funds,
    sent_amount,
)

logger = logging.getLogger(__name__)


class TransitionResult:
    """Thin wrapper for execute results."""

    def __init__(
        self,
        ok: bool,
        error: Optional[EscrowError] = None,
        response: Optional[Response] = None,
    ):
        self.ok = ok
        self.error = error
        self.response = response

    @classmethod
    def success(cls, response: Response) -> "TransitionResult":
        return cls(True, None, response)

    @classmethod
    def failure(cls, error: EscrowError) -> "TransitionResult":
        return cls(False, error, None)


class EscrowStateMachine:
    def __init__(
        self,
        storage: Optional[Storage] = None,
        *,
        settings: Optional[EngineSettings] = None,
        validate_address: Optional[AddressValidator] = None,
        ledger: Optional[Ledger] = None,
        digest: Optional[DigestFn] = None,
    ):
        self.settings = settings or EngineSettings()
        self.storage = storage if storage is not None else Storage()
        self.validate_address = validate_address or Bech32AddressValidator(self.settings.address_hrp)
        self.ledger = ledger if ledger is not None else InMemoryLedger()
        self.digest = digest or digest_fn(self.settings.digest_algorithm)

    # --- entry points ---

    def execute(self, ctx: CallContext, msg: Any) -> TransitionResult:
        """Run one mutating request; errors come back in the result."""
        try:
            response = self._dispatch_execute(ctx, msg)
        except EscrowError as exc:
            logger.debug(f"rejected {type(msg).__name__} from {ctx.sender}: {exc}")
            return TransitionResult.failure(exc)
        return TransitionResult.success(response)

    def query(self, msg: Any) -> Any:
        if isinstance(msg, GetEscrow):
            return self.get_escrow(msg.hashlock)
        if isinstance(msg, GetBatchEscrows):
            return self.get_batch_escrows(msg.hashlocks)
        if isinstance(msg, GetEscrowsByAccount):
            return self.get_escrows_by_account(msg.account, msg.role)
        if isinstance(msg, GetUserEscrows):
            return self.get_user_escrows(msg.account)
        if isinstance(msg, GetConfig):
            return self.get_config()
        if isinstance(msg, GetAdmin):
            return self.get_admin()
        raise EscrowError(ErrorCode.INVALID_MESSAGE, f"unsupported query: {type(msg).__name__}")

    def _dispatch_execute(self, ctx: CallContext, msg: Any) -> Response:
        if isinstance(msg, CreateEscrow):
            return self.create_escrow(ctx, msg)
        if isinstance(msg, CreateBatchEscrows):
            return self.create_batch_escrows(ctx, msg)
        if isinstance(msg, Claim):
            return self.claim(ctx, msg)
        if isinstance(msg, Refund):
            return self.refund(ctx, msg)
        if isinstance(msg, UpdateConfig):
            return self.update_config(ctx, msg)
        if isinstance(msg, Instantiate):
            return self.instantiate(ctx, msg)
        raise EscrowError(ErrorCode.INVALID_MESSAGE, f"unsupported message: {type(msg).__name__}")

    def _run(
        self,
        ctx: CallContext,
        msg: Any,
        handler: Callable[[Storage, CallContext, Any], Response],
    ) -> Response:
        with self.storage.transaction() as working:
            response = handler(working, ctx, msg)
            deliver(self.ledger, response.messages)
        return response

    # --- mutating operations ---

    def instantiate(self, ctx: CallContext, msg: Instantiate) -> Response:
        return self._run(ctx, msg, self._instantiate)

    def create_escrow(self, ctx: CallContext, msg: CreateEscrow) -> Response:
        return self._run(ctx, msg, self._create_escrow)

    def create_batch_escrows(self, ctx: CallContext, msg: CreateBatchEscrows) -> Response:
        return self._run(ctx, msg, self._create_batch_escrows)

    def claim(self, ctx: CallContext, msg: Claim) -> Response:
        return self._run(ctx, msg, self._claim)

    redeem = claim

    def refund(self, ctx: CallContext, msg: Refund) -> Response:
        return self._run(ctx, msg, self._refund)

    def update_config(self, ctx: CallContext, msg: UpdateConfig) -> Response:
        return self._run(ctx, msg, self._update_config)

    # --- handlers ---

    def _instantiate(self, store: Storage, ctx: CallContext, msg: Instantiate) -> Response:
        if store.config.is_initialized():
            raise EscrowError(ErrorCode.UNAUTHORIZED, "engine already instantiated")
        admin = self._address(msg.admin) if msg.admin is not None else ctx.sender
        s = self.settings
        store.config.save(
            Config(
                claim_fee=s.claim_fee,
                refund_fee=s.refund_fee,
                max_batch_size=s.max_batch_size,
                paused=s.paused,
            )
        )
        store.config.admin = admin
        logger.info(f"instantiated with admin {admin}")
        return Response().add_attribute("action", "instantiate").add_attribute("admin", admin)

    def _create_escrow(self, store: Storage, ctx: CallContext, msg: CreateEscrow) -> Response:
        self._require_not_paused(store)
        escrow = self._validate_input(store, ctx, msg, staged={})

        require_valid_funds(ctx.funds)
        check_funds(escrow.amount, sent_amount(ctx.funds, escrow.token), self.settings.amount_policy)

        store.escrows.save(escrow)
        store.user_index.append(escrow.creator, escrow.hashlock)
        logger.info(
            f"created escrow {escrow.hashlock} creator={escrow.creator} "
            f"recipient={escrow.recipient} amount={escrow.amount}{escrow.token}"
        )
        return (
            Response()
            .add_attribute("action", "create_escrow")
            .add_attribute("creator", escrow.creator)
            .add_attribute("recipient", escrow.recipient)
            .add_attribute("hashlock", escrow.hashlock)
            .add_attribute("amount", escrow.amount)
        )

    def _create_batch_escrows(
        self, store: Storage, ctx: CallContext, msg: CreateBatchEscrows
    ) -> Response:
        self._require_not_paused(store)
        config = store.config.load()
        if not msg.escrows or len(msg.escrows) > config.max_batch_size:
            raise EscrowError(
                ErrorCode.INVALID_BATCH_SIZE,
                f"batch size must be between 1 and {config.max_batch_size}, got {len(msg.escrows)}",
            )

        staged: Dict[str, Escrow] = {}
        totals: Dict[str, int] = {}
        for item in msg.escrows:
            escrow = self._validate_input(store, ctx, item, staged)
            staged[escrow.hashlock] = escrow
            totals[escrow.token] = totals.get(escrow.token, 0) + escrow.amount

        require_valid_funds(ctx.funds)
        for denom in sorted(totals):
            check_funds(totals[denom], sent_amount(ctx.funds, denom), self.settings.amount_policy)

        for escrow in staged.values():
            store.escrows.save(escrow)
            store.user_index.append(escrow.creator, escrow.hashlock)

        total_amount = sum(totals.values())
        logger.info(
            f"created batch of {len(staged)} escrows creator={ctx.sender} total={total_amount}"
        )
        return (
            Response()
            .add_attribute("action", "create_batch_escrows")
            .add_attribute("creator", ctx.sender)
            .add_attribute("count", len(staged))
            .add_attribute("total_amount", total_amount)
        )

    def _claim(self, store: Storage, ctx: CallContext, msg: Claim) -> Response:
        self._require_not_paused(store)
        escrow = self._load_active(store, msg.hashlock)

        if ctx.now >= escrow.timelock:
            raise EscrowError(ErrorCode.TIMELOCK_EXPIRED, "timelock expired")

        if self.settings.claim_policy is ClaimPolicy.RECIPIENT_ONLY and ctx.sender != escrow.recipient:
            raise EscrowError(ErrorCode.UNAUTHORIZED_REDEEM, "only the recipient may claim")

        preimage_hash = self.digest(secret_bytes(msg.secret))
        if not hmac.compare_digest(preimage_hash, bytes.fromhex(escrow.hashlock)):
            raise EscrowError(ErrorCode.INVALID_SECRET, "secret does not match hashlock")

        escrow.status = EscrowStatus.CLAIMED
        store.escrows.save(escrow)
        logger.info(f"claimed escrow {escrow.hashlock} by {ctx.sender}")
        return (
            Response()
            .add_message(_payout(escrow.recipient, escrow))
            .add_attribute("action", "claim")
            .add_attribute("escrow", escrow.hashlock)
            .add_attribute("recipient", escrow.recipient)
            .add_attribute("amount", escrow.amount)
        )

    def _refund(self, store: Storage, ctx: CallContext, msg: Refund) -> Response:
        self._require_not_paused(store)
        escrow = self._load_active(store, msg.hashlock)

        if ctx.now < escrow.timelock:
            raise timelock_not_expired(escrow.timelock, ctx.now)

        if ctx.sender != escrow.creator:
            raise EscrowError(ErrorCode.UNAUTHORIZED_REFUND, "only the creator may refund")

        escrow.status = EscrowStatus.REFUNDED
        store.escrows.save(escrow)
        logger.info(f"refunded escrow {escrow.hashlock} to {escrow.creator}")
        return (
            Response()
            .add_message(_payout(escrow.creator, escrow))
            .add_attribute("action", "refund")
            .add_attribute("escrow", escrow.hashlock)
            .add_attribute("creator", escrow.creator)
            .add_attribute("amount", escrow.amount)
        )

    def _update_config(self, store: Storage, ctx: CallContext, msg: UpdateConfig) -> Response:
        # No pause gate here: the admin must be able to unpause.
        config = store.config.load()
        if ctx.sender != store.config.admin:
            raise EscrowError(ErrorCode.UNAUTHORIZED, "only the admin may update config")

        changes: Dict[str, Any] = {}
        for name in ("claim_fee", "refund_fee"):
            value = getattr(msg, name)
            if value is not None:
                if value < 0 or value > U128_MAX:
                    raise EscrowError(ErrorCode.INVALID_FUNDS, f"{name} must be a Uint128")
                changes[name] = value
        if msg.max_batch_size is not None:
            if not 1 <= msg.max_batch_size <= U32_MAX:
                raise EscrowError(ErrorCode.INVALID_BATCH_SIZE, f"max_batch_size must be in [1, {U32_MAX}]")
            changes["max_batch_size"] = msg.max_batch_size
        if msg.paused is not None:
            changes["paused"] = msg.paused

        config = replace(config, **changes)
        store.config.save(config)
        logger.info(f"config updated by {ctx.sender}: {changes}")
        return (
            Response()
            .add_attribute("action", "update_config")
            .add_attribute("claim_fee", config.claim_fee)
            .add_attribute("refund_fee", config.refund_fee)
            .add_attribute("max_batch_size", config.max_batch_size)
            .add_attribute("paused", config.paused)
        )

    # --- shared checks ---

    def _require_not_paused(self, store: Storage) -> None:
        if store.config.load().paused:
            raise EscrowError(ErrorCode.CONTRACT_PAUSED, "contract is paused")

    def _address(self, address: str) -> str:
        try:
            return self.validate_address(address)
        except ValueError as exc:
            raise EscrowError(ErrorCode.INVALID_ADDRESS, f"invalid address: {exc}") from None

    def _validate_input(
        self,
        store: Storage,
        ctx: CallContext,
        item: EscrowInput,
        staged: Dict[str, Escrow],
    ) -> Escrow:
        recipient = self._address(item.recipient)
        hashlock = canonical_hashlock(item.hashlock)
        require_future_timelock(item.timelock, ctx.now)
        if store.escrows.has(hashlock) or hashlock in staged:
            raise EscrowError(ErrorCode.ESCROW_ALREADY_EXISTS, f"escrow {hashlock} already exists")
        if item.token not in self.settings.supported_denoms:
            raise EscrowError(ErrorCode.UNSUPPORTED_TOKEN, f"unsupported token: {item.token}")
        require_positive_amount(item.amount)
        return Escrow(
            creator=ctx.sender,
            recipient=recipient,
            hashlock=hashlock,
            timelock=item.timelock,
            token=item.token,
            amount=item.amount,
        )

    def _load_active(self, store: Storage, hashlock: str) -> Escrow:
        key = lookup_key(hashlock)
        if key is None:
            raise EscrowError(ErrorCode.ESCROW_NOT_FOUND, "escrow not found")
        escrow = store.escrows.load(key)
        if escrow.status.is_terminal:
            raise EscrowError(ErrorCode.ESCROW_CLOSED, "escrow already claimed or refunded")
        return escrow

    # --- queries (no pause gate) ---

    def get_escrow(self, hashlock: str) -> EscrowView:
        key = lookup_key(hashlock)
        if key is None:
            raise EscrowError(ErrorCode.ESCROW_NOT_FOUND, "escrow not found")
        return EscrowView.from_escrow(self.storage.escrows.load(key))

    def get_batch_escrows(self, hashlocks: List[str]) -> List[EscrowView]:
        escrows = self.storage.escrows
        views = []
        for hashlock in hashlocks:
            key = lookup_key(hashlock)
            escrow = escrows.get(key) if key is not None else None
            if escrow is not None:
                views.append(EscrowView.from_escrow(escrow))
        return views

    def get_escrows_by_account(self, account: str, role: Role = Role.CREATOR) -> List[EscrowView]:
        """Linear scan of every escrow, filtered by the account's role."""
        field_name = "creator" if role is Role.CREATOR else "recipient"
        return [
            EscrowView.from_escrow(escrow)
            for _, escrow in self.storage.escrows.range()
            if getattr(escrow, field_name) == account
        ]

    def get_user_escrows(self, account: str) -> UserEscrowsView:
        account = self._address(account)
        return UserEscrowsView.from_index(self.storage.user_index.load(account))

    def get_config(self) -> ConfigView:
        return ConfigView.from_config(self.storage.config.load())

    def get_admin(self) -> Optional[str]:
        return self.storage.config.admin


def _payout(to_address: str, escrow: Escrow) -> BankSend:
    return BankSend(to_address=to_address, amount=(Coin(escrow.token, escrow.amount),))
