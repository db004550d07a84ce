"""Inbound dispatcher -- the single consumer of the bus's work queue.

Front-end adapters publish :class:`InboundMessage` values; the dispatcher
feeds each one to the agent (or a router of agents) and broadcasts the
answer as an :class:`OutboundMessage` for the originating channel.
"""

from __future__ import annotations

import asyncio
import logging

from relay_agent.agent import Agent
from relay_agent.bus import EventBus
from relay_agent.envelopes import InboundMessage, OutboundMessage
from relay_agent.router import AgentRouter

logger = logging.getLogger(__name__)


class Dispatcher:
    """Consumes inbound work and publishes replies.

    Messages are handled concurrently up to ``max_concurrency``; a terminal
    agent error becomes an ``"Error: ..."`` reply instead of stopping the
    dispatcher.

    Usage::

        dispatcher = Dispatcher(agent, bus)
        task = asyncio.create_task(dispatcher.run())
        ...
        dispatcher.stop()
        await task
    """

    def __init__(
        self,
        target: Agent | AgentRouter,
        bus: EventBus,
        *,
        max_concurrency: int = 4,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._target = target
        self._bus = bus
        self._slots = asyncio.Semaphore(max_concurrency)
        self._stop = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def stop(self) -> None:
        """Ask :meth:`run` to return once in-flight messages finish."""
        self._stop.set()

    async def run(self) -> None:
        """Consume the inbound queue until :meth:`stop` or cancellation."""
        stop_waiter = asyncio.ensure_future(self._stop.wait())
        receive: asyncio.Future[InboundMessage] | None = None
        try:
            while not self._stop.is_set():
                await self._slots.acquire()
                receive = asyncio.ensure_future(self._bus.recv_inbound())
                done, _ = await asyncio.wait(
                    {receive, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                if receive not in done:
                    break
                self._spawn(receive.result())
                receive = None
        finally:
            stop_waiter.cancel()
            if receive is not None:
                self._settle_receive(receive)
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)

    async def handle(self, message: InboundMessage) -> OutboundMessage:
        """Process one inbound message and publish the reply."""
        metadata: dict[str, str] = {"in_reply_to": message.id}
        try:
            if isinstance(self._target, AgentRouter):
                agent_name, answer = await self._target.process(
                    message.content, message.session_key, message.media, bus=self._bus
                )
                metadata["agent"] = agent_name
            else:
                answer = await self._target.process(
                    message.content, message.session_key, message.media, bus=self._bus
                )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to process message %s from %s: %s", message.id, message.channel, exc
            )
            answer = f"Error: {exc}"
            metadata["error"] = type(exc).__name__

        reply = OutboundMessage(
            channel=message.channel,
            chat_id=message.chat_id,
            content=answer,
            metadata=metadata,
        )
        self._bus.publish_outbound(reply)
        return reply

    def _spawn(self, message: InboundMessage) -> None:
        task = asyncio.create_task(self._handle_and_release(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _settle_receive(self, receive: asyncio.Future[InboundMessage]) -> None:
        """Resolve the receive left pending when :meth:`run` exits.

        A message already taken off the queue is still handled; otherwise the
        receive is cancelled so it cannot swallow a later message.
        """
        if receive.done() and not receive.cancelled() and receive.exception() is None:
            self._spawn(receive.result())
            return
        receive.cancel()
        self._slots.release()

    async def _handle_and_release(self, message: InboundMessage) -> None:
        try:
            await self.handle(message)
        finally:
            self._slots.release()
