"""JSON codec for escrow state, request messages and responses.

Messages use the externally tagged snake_case form, e.g.
`{"create_escrow": {"recipient": ..., "hashlock": ..., ...}}`.
Amounts may be given as integers or decimal strings (Uint128 style).
"""

from __future__ import annotations

import re
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, Dict, List, Optional

from .config import COIN_DENOM_PATTERN, U32_MAX, U64_MAX, U128_MAX
from .errors import ErrorCode, EscrowError
from .msg import (
    Claim,
    CreateBatchEscrows,
    CreateEscrow,
    EscrowInput,
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
)
from .types import (
    BankSend,
    CallContext,
    Coin,
    Config,
    Escrow,
    EscrowState,
    EscrowStatus,
    Response,
    UserEscrows,
)
from .validation import canonical_hashlock

_COIN_RE = re.compile(rf"(\d+)({COIN_DENOM_PATTERN})")


def _bad(message: str) -> EscrowError:
    return EscrowError(ErrorCode.INVALID_MESSAGE, message)


def _field(data: Dict[str, Any], key: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise _bad(f"missing field {key!r}")
    return data[key]


def _str(data: Dict[str, Any], key: str) -> str:
    value = _field(data, key)
    if not isinstance(value, str):
        raise _bad(f"field {key!r} must be a string")
    return value


def _int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise _bad(f"field {key!r} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value):
        return int(value)
    raise _bad(f"field {key!r} must be an integer")


def _ranged(data: Dict[str, Any], key: str, upper: int) -> int:
    value = _int(_field(data, key), key)
    if not 0 <= value <= upper:
        raise _bad(f"field {key!r} out of range")
    return value


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    return None if value is None else _int(value, key)


def _list(data: Dict[str, Any], key: str) -> List[Any]:
    if not isinstance(data, dict):
        raise _bad(f"expected an object holding {key!r}")
    value = data.get(key, [])
    if not isinstance(value, list):
        raise _bad(f"field {key!r} must be a list")
    return value


def _hashlock(value: Any, key: str = "hashlock") -> str:
    try:
        return canonical_hashlock(value)
    except EscrowError as exc:
        raise _bad(f"field {key!r}: {exc.message}") from None


# --- coins ---


def coin_to_json(coin: Coin) -> Dict[str, Any]:
    return {"denom": coin.denom, "amount": str(coin.amount)}


def coin_from_json(data: Dict[str, Any]) -> Coin:
    return Coin(denom=_str(data, "denom"), amount=_int(_field(data, "amount"), "amount"))


def coins_from_json(data: Any) -> tuple[Coin, ...]:
    if data is None:
        return ()
    if not isinstance(data, list):
        raise _bad("funds must be a list")
    return tuple(coin_from_json(c) for c in data)


def parse_coins(text: str) -> tuple[Coin, ...]:
    """Parse a comma separated coin string such as `1000native,5uatom`."""
    coins = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        m = _COIN_RE.fullmatch(part)
        if m is None:
            raise _bad(f"invalid coin {part!r}")
        coins.append(Coin(denom=m.group(2), amount=int(m.group(1))))
    return tuple(coins)


# --- state ---


def escrow_to_json(escrow: Escrow) -> Dict[str, Any]:
    return {
        "hashlock": escrow.hashlock,
        "creator": escrow.creator,
        "recipient": escrow.recipient,
        "timelock": escrow.timelock,
        "token": escrow.token,
        "amount": str(escrow.amount),
        "status": escrow.status.name.lower(),
    }


def _status(value: Any) -> EscrowStatus:
    if not isinstance(value, str) or value.upper() not in EscrowStatus.__members__:
        raise _bad(f"unknown escrow status {value!r}")
    return EscrowStatus[value.upper()]


def escrow_from_json(data: Dict[str, Any]) -> Escrow:
    return Escrow(
        creator=_str(data, "creator"),
        recipient=_str(data, "recipient"),
        hashlock=_hashlock(_str(data, "hashlock")),
        timelock=_ranged(data, "timelock", U64_MAX),
        token=_str(data, "token"),
        amount=_ranged(data, "amount", U128_MAX),
        status=_status(data.get("status", "active")),
    )


def config_to_json(config: Config) -> Dict[str, Any]:
    return {
        "claim_fee": str(config.claim_fee),
        "refund_fee": str(config.refund_fee),
        "max_batch_size": config.max_batch_size,
        "paused": config.paused,
    }


def config_from_json(data: Dict[str, Any]) -> Config:
    if not isinstance(data, dict):
        raise _bad("config must be an object")
    paused = data.get("paused", False)
    if not isinstance(paused, bool):
        raise _bad("field 'paused' must be a boolean")
    return Config(
        claim_fee=_ranged(data, "claim_fee", U128_MAX),
        refund_fee=_ranged(data, "refund_fee", U128_MAX),
        max_batch_size=_ranged(data, "max_batch_size", U32_MAX),
        paused=paused,
    )


def state_to_json(state: EscrowState) -> Dict[str, Any]:
    return {
        "config": config_to_json(state.config) if state.config is not None else None,
        "admin": state.admin,
        "escrows": [escrow_to_json(state.escrows[k]) for k in sorted(state.escrows)],
        "user_escrows": [
            {
                "account": account,
                "escrow_ids": list(entry.escrow_ids),
                "count": entry.count,
            }
            for account, entry in sorted(state.user_escrows.items())
        ],
    }


def state_from_json(data: Dict[str, Any]) -> EscrowState:
    if not isinstance(data, dict):
        raise _bad("state must be an object")
    state = EscrowState()
    if data.get("config") is not None:
        state.config = config_from_json(data["config"])
    admin = data.get("admin")
    if admin is not None and not isinstance(admin, str):
        raise _bad("field 'admin' must be a string")
    state.admin = admin
    for e in _list(data, "escrows"):
        escrow = escrow_from_json(e)
        state.escrows[escrow.hashlock] = escrow
    for u in _list(data, "user_escrows"):
        ids = [_hashlock(h, "escrow_ids") for h in _list(u, "escrow_ids")]
        count = _opt_int(u, "count")
        state.user_escrows[_str(u, "account")] = UserEscrows(
            escrow_ids=ids, count=len(ids) if count is None else count
        )
    return state


# --- execute messages ---


def _escrow_input(data: Dict[str, Any], cls: type = EscrowInput) -> EscrowInput:
    return cls(
        recipient=_str(data, "recipient"),
        hashlock=_str(data, "hashlock"),
        timelock=_int(_field(data, "timelock"), "timelock"),
        token=_str(data, "token"),
        amount=_int(_field(data, "amount"), "amount"),
    )


def _update_config(data: Dict[str, Any]) -> UpdateConfig:
    paused = data.get("paused")
    if paused is not None and not isinstance(paused, bool):
        raise _bad("field 'paused' must be a boolean")
    return UpdateConfig(
        claim_fee=_opt_int(data, "claim_fee"),
        refund_fee=_opt_int(data, "refund_fee"),
        max_batch_size=_opt_int(data, "max_batch_size"),
        paused=paused,
    )


def _batch(data: Dict[str, Any]) -> CreateBatchEscrows:
    items = _field(data, "escrows")
    if not isinstance(items, list):
        raise _bad("field 'escrows' must be a list")
    return CreateBatchEscrows(escrows=[_escrow_input(item) for item in items])


_EXECUTE_DECODERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "instantiate": lambda d: Instantiate(admin=d.get("admin")),
    "create_escrow": lambda d: _escrow_input(d, CreateEscrow),
    "create_batch_escrows": _batch,
    "claim": lambda d: Claim(hashlock=_str(d, "hashlock"), secret=_str(d, "secret")),
    "redeem": lambda d: Claim(hashlock=_str(d, "hashlock"), secret=_str(d, "secret")),
    "refund": lambda d: Refund(hashlock=_str(d, "hashlock")),
    "update_config": _update_config,
}


def _untag(data: Any) -> tuple[str, Dict[str, Any]]:
    if not isinstance(data, dict) or len(data) != 1:
        raise _bad("message must be an object with exactly one variant key")
    ((tag, body),) = data.items()
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise _bad(f"body of {tag!r} must be an object")
    return tag, body


def execute_msg_from_json(data: Any) -> Any:
    tag, body = _untag(data)
    decoder = _EXECUTE_DECODERS.get(tag)
    if decoder is None:
        raise _bad(f"unknown execute message {tag!r}")
    return decoder(body)


def _input_to_json(item: EscrowInput) -> Dict[str, Any]:
    return {
        "recipient": item.recipient,
        "hashlock": item.hashlock,
        "timelock": item.timelock,
        "token": item.token,
        "amount": str(item.amount),
    }


def execute_msg_to_json(msg: Any) -> Dict[str, Any]:
    if isinstance(msg, CreateEscrow):
        return {"create_escrow": _input_to_json(msg)}
    if isinstance(msg, CreateBatchEscrows):
        return {"create_batch_escrows": {"escrows": [_input_to_json(i) for i in msg.escrows]}}
    if isinstance(msg, Claim):
        return {"claim": {"hashlock": msg.hashlock, "secret": msg.secret}}
    if isinstance(msg, Refund):
        return {"refund": {"hashlock": msg.hashlock}}
    if isinstance(msg, UpdateConfig):
        body = {k: v for k, v in asdict(msg).items() if v is not None}
        return {"update_config": body}
    if isinstance(msg, Instantiate):
        return {"instantiate": {"admin": msg.admin} if msg.admin is not None else {}}
    raise _bad(f"unsupported message: {type(msg).__name__}")


# --- query messages ---


def _by_account(role: Optional[Role]) -> Callable[[Dict[str, Any]], GetEscrowsByAccount]:
    def decode(d: Dict[str, Any]) -> GetEscrowsByAccount:
        if role is not None:
            key = "initiator" if role is Role.CREATOR else "recipient"
            return GetEscrowsByAccount(account=_str(d, key), role=role)
        try:
            parsed = Role.parse(d.get("role", "creator"))
        except ValueError:
            raise _bad(f"unknown role {d.get('role')!r}") from None
        return GetEscrowsByAccount(account=_str(d, "account"), role=parsed)

    return decode


def _user_escrows(d: Dict[str, Any]) -> GetUserEscrows:
    key = "user" if "user" in d else "account"
    return GetUserEscrows(account=_str(d, key))


def _hashlocks(d: Dict[str, Any]) -> GetBatchEscrows:
    items = _field(d, "hashlocks")
    if not isinstance(items, list) or not all(isinstance(h, str) for h in items):
        raise _bad("field 'hashlocks' must be a list of strings")
    return GetBatchEscrows(hashlocks=list(items))


_QUERY_DECODERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "get_escrow": lambda d: GetEscrow(hashlock=_str(d, "hashlock")),
    "get_batch_escrows": _hashlocks,
    "get_escrows_by_account": _by_account(None),
    "get_escrows_by_initiator": _by_account(Role.CREATOR),
    "get_escrows_by_recipient": _by_account(Role.RECIPIENT),
    "get_user_escrows": _user_escrows,
    "get_config": lambda d: GetConfig(),
    "get_admin": lambda d: GetAdmin(),
}


def query_msg_from_json(data: Any) -> Any:
    tag, body = _untag(data)
    decoder = _QUERY_DECODERS.get(tag)
    if decoder is None:
        raise _bad(f"unknown query message {tag!r}")
    return decoder(body)


# --- call context / outputs ---


def context_from_json(data: Dict[str, Any], now: Optional[int] = None) -> CallContext:
    when = data.get("now", now)
    if when is None:
        raise _bad("missing field 'now'")
    return CallContext(
        sender=_str(data, "sender"),
        now=_int(when, "now"),
        funds=coins_from_json(data.get("funds")),
    )


def context_to_json(ctx: CallContext) -> Dict[str, Any]:
    return {
        "sender": ctx.sender,
        "now": ctx.now,
        "funds": [coin_to_json(c) for c in ctx.funds],
    }


def bank_send_to_json(msg: BankSend) -> Dict[str, Any]:
    return {
        "bank_send": {
            "to_address": msg.to_address,
            "amount": [coin_to_json(c) for c in msg.amount],
        }
    }


def response_to_json(response: Response) -> Dict[str, Any]:
    return {
        "messages": [bank_send_to_json(m) for m in response.messages],
        "attributes": [{"key": k, "value": v} for k, v in response.attributes],
    }


def error_to_json(error: EscrowError) -> Dict[str, Any]:
    return {
        "code": error.code.name,
        "message": error.message,
        "details": dict(error.details),
    }


def view_to_json(view: Any) -> Any:
    if view is None:
        return None
    if isinstance(view, list):
        return [view_to_json(v) for v in view]
    if is_dataclass(view):
        out = asdict(view)
        for key in ("amount", "claim_fee", "refund_fee"):
            if key in out:
                out[key] = str(out[key])
        return out
    return view
