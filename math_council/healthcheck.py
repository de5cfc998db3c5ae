"""Provider health check: ping the response backend before starting a debate."""

import asyncio
import logging

from math_council.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_SYSTEM = "You are a connectivity check."
_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def run_health_check(provider: AIProvider, timeout_sec: float = _TIMEOUT_SEC) -> tuple[bool, str]:
    """Ping a single provider.

    Returns:
        (ok, error_message); error_message is "" when ok is True.
    """
    try:
        await asyncio.wait_for(
            provider.generate(_PING_SYSTEM, _PING_PROMPT, round_number=0),
            timeout=timeout_sec,
        )
        return True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", provider.name(), exc)
        return False, str(exc) or type(exc).__name__
