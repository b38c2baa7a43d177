from __future__ import annotations

import asyncio

from core.channels import EventChannel


def test_channel_delivers_every_event_and_survives_failures() -> None:
    handled: list[int] = []

    async def handler(event: int) -> None:
        if event == 2:
            raise RuntimeError("boom")
        handled.append(event)

    async def scenario() -> None:
        channel: EventChannel[int] = EventChannel("numbers")
        consumer = asyncio.create_task(channel.consume(handler))
        for number in (1, 2, 3):
            channel.publish(number)
        await asyncio.wait_for(channel.join(), timeout=1)
        consumer.cancel()
        await asyncio.gather(consumer, return_exceptions=True)

    asyncio.run(scenario())

    assert sorted(handled) == [1, 3]
