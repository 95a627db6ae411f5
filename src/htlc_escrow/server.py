#!/usr/bin/env python3
"""
HTLC escrow HTTP service.

Hosts one engine behind a small JSON API used by the conformance harness:

    POST /state/reset    empty state
    POST /state/load     replace state with a `state_to_json` snapshot
    GET  /state/digest   current state digest
    POST /execute        {"sender": ..., "now": ..., "funds": [...], "msg": {...}}
    POST /query          {"msg": {...}}
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import click
from aiohttp import web

from .codec import (
    context_from_json,
    error_to_json,
    execute_msg_from_json,
    query_msg_from_json,
    response_to_json,
    state_from_json,
    state_to_json,
    view_to_json,
)
from .config import EngineSettings
from .engine import EscrowStateMachine
from .errors import ErrorCode, EscrowError
from .ledger import InMemoryLedger
from .state_digest import compute_state_digest

logger = logging.getLogger(__name__)

ENGINE_KEY = web.AppKey("engine", EscrowStateMachine)


def _digest(engine: EscrowStateMachine) -> str:
    return compute_state_digest(state_to_json(engine.storage.state))


def _failure(error: EscrowError, status: int = 200) -> web.Response:
    return web.json_response({"success": False, "error": error_to_json(error)}, status=status)


async def _body(request: web.Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except json.JSONDecodeError:
        raise EscrowError(ErrorCode.INVALID_MESSAGE, "request body is not valid JSON") from None
    if not isinstance(data, dict):
        raise EscrowError(ErrorCode.INVALID_MESSAGE, "request body must be an object")
    return data


async def reset_state(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    engine.storage.reset()
    engine.ledger = InMemoryLedger()
    logger.debug("state reset")
    return web.json_response({"success": True, "state_digest": _digest(engine)})


async def load_state(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    try:
        state = state_from_json(await _body(request))
    except EscrowError as exc:
        return _failure(exc, status=400)
    engine.storage.reset(state)
    engine.ledger = InMemoryLedger()
    digest = _digest(engine)
    logger.debug(f"state loaded: {len(state.escrows)} escrows, digest {digest}")
    return web.json_response({"success": True, "state_digest": digest})


async def get_digest(request: web.Request) -> web.Response:
    return web.json_response({"state_digest": _digest(request.app[ENGINE_KEY])})


async def execute(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    try:
        body = await _body(request)
        ctx = context_from_json(body, now=int(time.time()))
        msg = execute_msg_from_json(body.get("msg"))
    except EscrowError as exc:
        return _failure(exc, status=400)

    result = engine.execute(ctx, msg)
    payload: Dict[str, Any] = {"success": result.ok, "state_digest": _digest(engine)}
    if result.ok:
        payload["response"] = response_to_json(result.response)
    else:
        payload["error"] = error_to_json(result.error)
    return web.json_response(payload)


async def query(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    try:
        body = await _body(request)
        result = engine.query(query_msg_from_json(body.get("msg")))
    except EscrowError as exc:
        return _failure(exc)
    return web.json_response({"success": True, "result": view_to_json(result)})


def create_app(engine: Optional[EscrowStateMachine] = None) -> web.Application:
    app = web.Application()
    app[ENGINE_KEY] = engine or EscrowStateMachine(settings=EngineSettings.from_env())
    app.router.add_post("/state/reset", reset_state)
    app.router.add_post("/state/load", load_state)
    app.router.add_get("/state/digest", get_digest)
    app.router.add_post("/execute", execute)
    app.router.add_post("/query", query)
    return app


@click.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", default=8080, type=int, help="Port to listen on")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
def main(host: str, port: int, verbose: bool) -> None:
    """Serve the HTLC escrow engine over HTTP."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    logger.info(f"Serving HTLC escrow engine on {host}:{port}")
    web.run_app(create_app(), host=host, port=port, print=None)


if __name__ == "__main__":
    main()
