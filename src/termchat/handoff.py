"""
Single-Slot Token Hand-off

The login response arrives on the receive loop while the code that needs the
token is waiting elsewhere. TokenHandoff carries that one value across.

Semantics:
    - At most one value is pending at a time; a newer value replaces an
      unconsumed older one.
    - put() never blocks, whether or not anyone is waiting.
    - Each value is delivered to exactly one waiter. Concurrent waiters are
      served first come, first served; the others keep waiting for the
      next value. Only one outstanding waiter is expected in practice.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class TokenHandoff:
    """Rendezvous slot delivering a bearer token to one waiter."""

    def __init__(self) -> None:
        self._slot: "asyncio.Queue[str]" = asyncio.Queue(maxsize=1)

    def put(self, token: str) -> None:
        """
        Offer a token to the current or next waiter.

        Args:
            token: Bearer token from a successful login
        """
        if self._slot.full():
            logger.debug("Replacing unconsumed token in hand-off")
            self._slot.get_nowait()
        self._slot.put_nowait(token)

    async def wait(self) -> str:
        """Block until a token is available and take it."""
        return await self._slot.get()

    def rearm(self) -> Optional[str]:
        """
        Drop any stale token so the next wait() sees only a fresh one.

        Returns:
            The discarded token, or None if the slot was empty
        """
        if self._slot.empty():
            return None
        return self._slot.get_nowait()

    @property
    def pending(self) -> bool:
        """True if a token is waiting to be taken."""
        return self._slot.full()
