"""
HTTP status / admin API

Exposes claim state via:
  GET  /api/status     JSON snapshot (wallet, strategy, last claim, balance)
  POST /api/claim-now  run a claim cycle now
  GET  /api/claim-now  usage hint
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from aiohttp import web

from core.engine import ClaimInProgressError

if TYPE_CHECKING:
    from core.engine import ClaimEngine
    from core.polymarket import ClobBalanceClient

log = logging.getLogger("polyclaim.dashboard")

_engine_key: web.AppKey[ClaimEngine] = web.AppKey("engine")
_wallet_key: web.AppKey[str] = web.AppKey("wallet")
_balance_key: web.AppKey[ClobBalanceClient | None] = web.AppKey("balance")

_START_TIME: float = time.time()


def _uptime() -> str:
    s = int(time.time() - _START_TIME)
    h, s = divmod(s, 3600)
    m, s = divmod(s, 60)
    return f"{h}h {m}m {s}s"


async def _build_status(
    engine: ClaimEngine,
    wallet: str,
    balance: ClobBalanceClient | None = None,
) -> dict:
    state = engine.state
    cash = await balance.get_balance_usdc() if balance else None
    return {
        "uptime": _uptime(),
        "wallet": wallet,
        "strategy": engine.strategy_name,
        "claim_in_progress": engine.busy,
        "state": {
            "lastClaimAt": state.last_claim_at,
            "lastClaimResult": state.last_claim_result,
            "lastError": state.last_error,
            "runs": state.runs,
            "runsSinceLastClaim": state.runs_since_last_claim,
        },
        "cash_balance": round(cash, 2) if cash is not None else None,
    }


async def _handle_status(request: web.Request) -> web.Response:
    try:
        status = await _build_status(
            request.app[_engine_key],
            request.app[_wallet_key],
            request.app[_balance_key],
        )
    except Exception as exc:
        log.error("Status error: %s", exc)
        return web.json_response({"error": "Failed to load status"}, status=500)
    return web.json_response(status)


async def _handle_claim_now(request: web.Request) -> web.Response:
    engine = request.app[_engine_key]
    if not engine.configured:
        return web.json_response({"error": "PRIVATE_KEY not configured"}, status=500)

    try:
        result = await engine.run_cycle("manual")
    except ClaimInProgressError as exc:
        return web.json_response({"ok": False, "error": str(exc)}, status=409)
    except Exception as exc:
        log.error("Claim now error: %s", exc)
        return web.json_response({"ok": False, "error": str(exc)}, status=500)

    return web.json_response({"ok": True, **result.to_dict()})


async def _handle_claim_now_info(request: web.Request) -> web.Response:
    return web.json_response(
        {"message": "Use POST to trigger claim winnings"},
        status=200,
    )


def create_dashboard_app(
    engine: ClaimEngine,
    wallet: str,
    balance: ClobBalanceClient | None = None,
) -> web.Application:
    """Create and return the aiohttp API application."""
    global _START_TIME
    _START_TIME = time.time()

    app = web.Application()
    app[_engine_key] = engine
    app[_wallet_key] = wallet
    app[_balance_key] = balance

    app.router.add_get("/api/status", _handle_status)
    app.router.add_post("/api/claim-now", _handle_claim_now)
    app.router.add_get("/api/claim-now", _handle_claim_now_info)

    return app


async def start_dashboard(
    engine: ClaimEngine,
    wallet: str,
    port: int = 8080,
    balance: ClobBalanceClient | None = None,
) -> web.AppRunner:
    """Start the API HTTP server as a background task."""
    app = create_dashboard_app(engine, wallet, balance=balance)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    log.info("Claim API running on http://0.0.0.0:%d", port)
    return runner
