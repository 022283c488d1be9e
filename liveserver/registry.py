import asyncio
import logging

from aiohttp import WSCloseCode

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Open reload channels keyed by session id.

    One lock covers the whole mapping: register, unregister and a full
    broadcast pass never overlap.
    """

    def __init__(self):
        self._channels = {}
        self._lock = asyncio.Lock()

    def __len__(self):
        return len(self._channels)

    def __contains__(self, session_id):
        return session_id in self._channels

    async def register(self, session_id, channel):
        async with self._lock:
            self._channels[session_id] = channel
        logger.debug("Session %s connected (%d open)", session_id, len(self._channels))

    async def unregister(self, session_id):
        async with self._lock:
            if self._channels.pop(session_id, None) is None:
                return
        logger.debug("Session %s disconnected (%d open)", session_id, len(self._channels))

    async def for_each_active(self, fn) -> int:
        """Await ``fn(channel)`` for every channel concurrently.

        Failures are logged and skipped. Returns how many calls succeeded.
        """
        async with self._lock:
            sessions = list(self._channels.items())
            results = await asyncio.gather(
                *(fn(channel) for _, channel in sessions), return_exceptions=True
            )

        delivered = 0
        for (session_id, _), result in zip(sessions, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to reach session %s: %r", session_id, result
                )
            else:
                delivered += 1
        return delivered

    async def close_all(self):
        async def close(channel):
            await channel.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")

        await self.for_each_active(close)
