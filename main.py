"""
PolyClaim v1.0 entry point

Runs the claim scheduler (redeem resolved positions every
CLAIM_INTERVAL_SECONDS) alongside the HTTP status / claim-now API.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.config import ConfigError, settings, validate_config
from core.dashboard import start_dashboard
from core.engine import ClaimEngine
from core.persistence import StateStore
from core.polymarket import ClobBalanceClient
from core.reconciler import ClaimReconciler
from utils.alerts import alert_crash

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10 MB
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

_LOG_FMT = "%(asctime)s.%(msecs)03d | %(name)-24s | %(levelname)-5s | %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _setup_logging() -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    formatter = logging.Formatter(_LOG_FMT, datefmt=_LOG_DATEFMT)

    console = logging.StreamHandler(
        open(sys.stdout.fileno(), mode="w", encoding="utf-8", closefd=False)
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        LOG_DIR / "polyclaim.log",
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


log = logging.getLogger("polyclaim")


async def main() -> None:
    config_errors = validate_config(settings)
    if config_errors:
        for err in config_errors:
            log.error("CONFIG  %s", err)
        raise ConfigError(
            f"{len(config_errors)} configuration error(s) — fix .env and restart"
        )

    cfg = settings.claim
    svc = settings.service

    reconciler = ClaimReconciler(cfg)

    log.info("=" * 60)
    log.info("  PolyClaim v1.0 — Resolved Position Redeemer")
    log.info("  Wallet: %s", cfg.wallet_address)
    log.info("  Strategy: %s", reconciler.strategy.name)
    log.info("  Interval: %s", f"{svc.claim_interval_seconds:.0f}s" if svc.claim_interval_seconds > 0 else "manual only")
    log.info("  API: http://0.0.0.0:%d", svc.api_port)
    log.info("=" * 60)
    if cfg.builder.partial:
        log.warning(
            "Builder credentials partially set — relayer disabled, using direct claims. "
            "Set POLY_BUILDER_API_KEY, POLY_BUILDER_SECRET and POLY_BUILDER_PASSPHRASE."
        )

    balance = ClobBalanceClient(cfg)
    await balance.init()

    state_store = StateStore(svc.state_path)
    engine = ClaimEngine(
        reconciler,
        cfg,
        state_store=state_store,
        balance=balance,
        interval=svc.claim_interval_seconds,
        timeout=svc.claim_timeout_seconds,
    )
    log.info(
        "Restored claim state: %d run(s), last result=%s",
        engine.state.runs, engine.state.last_claim_result,
    )

    api_runner = await start_dashboard(engine, cfg.wallet_address, port=svc.api_port, balance=balance)

    scheduler = asyncio.create_task(engine.run(), name="ClaimScheduler")
    stop_event = asyncio.Event()

    def _shutdown() -> None:
        log.info("Shutdown signal received — stopping...")
        engine.stop()
        scheduler.cancel()
        stop_event.set()

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _shutdown)

    try:
        await stop_event.wait()
        await asyncio.gather(scheduler, return_exceptions=True)
    except Exception as exc:
        log.critical("Fatal error: %s", exc)
        await alert_crash(str(exc))
        raise
    finally:
        await api_runner.cleanup()
        log.info("PolyClaim stopped.")


if __name__ == "__main__":
    _setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("PolyClaim stopped by user.")
