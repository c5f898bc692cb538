"""
Non-blocking Telegram alert system.

Sends notifications for: claim results, failed claim cycles, critical crashes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiohttp

from core.config import settings

if TYPE_CHECKING:
    from core.reconciler import ClaimResult

log = logging.getLogger("polyclaim.alerts")

_TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


async def send_alert(message: str) -> None:
    """Send a Telegram message. Fails silently if not configured."""
    cfg = settings.telegram
    if not cfg.enabled:
        log.debug("Telegram not configured — skipping alert")
        return

    url = _TELEGRAM_API.format(token=cfg.bot_token)
    payload = {
        "chat_id": cfg.chat_id,
        "text": f"[PolyClaim] {message}",
    }

    try:
        async with aiohttp.ClientSession() as sess:
            async with sess.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=5)) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    log.warning("Telegram API error %d: %s", resp.status, body)
    except Exception as exc:
        log.warning("Telegram send failed: %s", exc)


async def alert_claim_result(result: ClaimResult, trigger: str) -> None:
    """Only noisy when something happened: a claim or a failure."""
    if result.claimed == 0 and result.failed == 0:
        return
    lines = [f"Claim cycle ({trigger})", f"Claimed: {result.claimed} | Failed: {result.failed}"]
    lines.extend(result.errors[:5])
    await send_alert("\n".join(lines))


async def alert_claim_error(error: str) -> None:
    await send_alert(f"Claim cycle failed\nError: {error}")


async def alert_crash(error: str) -> None:
    await send_alert(f"CRITICAL CRASH\n{error}")
