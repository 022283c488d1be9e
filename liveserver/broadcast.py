import asyncio
import logging

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = ""
SEND_TIMEOUT = 5.0


class BroadcastCoordinator:
    """Turns every settled change into one reload pass over the registry."""

    def __init__(self, registry, send_timeout=SEND_TIMEOUT):
        self.registry = registry
        self.send_timeout = send_timeout

    async def _send(self, channel):
        await asyncio.wait_for(channel.send_str(RELOAD_MESSAGE), self.send_timeout)

    async def notify(self, event):
        logger.info("%s", event)
        return await self.registry.for_each_active(self._send)

    async def run(self, events):
        async for event in events:
            await self.notify(event)
