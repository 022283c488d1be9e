import asyncio

import pytest


class FakeChannel:
    def __init__(self, fail=False, stall=False):
        self.sent = []
        self.closed = False
        self.fail = fail
        self.stall = stall

    async def send_str(self, data):
        if self.fail or self.closed:
            raise ConnectionResetError("Cannot write to closing transport")
        if self.stall:
            await asyncio.sleep(3600)
        self.sent.append(data)

    async def close(self, code=None, message=b""):
        self.closed = True


@pytest.fixture
def make_channel():
    return FakeChannel


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def until():
    return wait_until
