#!/usr/bin/env python3
"""Event stream classification and dispatch.

This module turns raw push frames into typed events and fans them out to
listeners registered per event kind. The dispatcher runs as a background
task with its own reconnect loop, so a dropped connection or a failing
listener never stops delivery.
"""

import asyncio
import functools
import inspect
import json
import logging
import threading
from collections.abc import Callable, Mapping
from contextlib import aclosing
from enum import Enum
from typing import Any

from .config import StreamConfig
from .errors import StreamError
from .models import (
    BundleEvent,
    Event,
    EventKind,
    EventLog,
    TransactionEvent,
    TxDescriptor,
    parse_quantity,
)
from .transport import EventSource

Listener = Callable[[Event], Any]
ErrorListener = Callable[[Exception, Event | None], Any]


class ConnectionState(Enum):
    """Connection state of the event dispatcher."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


def _parse_logs(raw: Any) -> tuple[EventLog, ...] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise StreamError(f"Event logs must be a list, got {type(raw).__name__}")
    return tuple(
        EventLog(
            address=entry["address"],
            topics=tuple(entry.get("topics") or ()),
            data=entry.get("data"),
        )
        for entry in raw
    )


def _parse_tx(raw: Mapping[str, Any]) -> TxDescriptor:
    return TxDescriptor(
        to=raw.get("to"),
        function_selector=raw.get("functionSelector"),
        call_data=raw.get("callData"),
    )


def classify_event(data: Mapping[str, Any]) -> Event:
    """Build a typed event from a decoded event record.

    The variant depends only on the `txs` field: null or missing yields a
    TransactionEvent, anything else a BundleEvent.

    Args:
        data: Decoded JSON object of a single event

    Returns:
        TransactionEvent or BundleEvent

    Raises:
        StreamError: If the record is missing required fields or malformed
    """
    if not isinstance(data, Mapping):
        raise StreamError(f"Event must be an object, got {type(data).__name__}")

    try:
        event_hash = data["hash"]
        if not isinstance(event_hash, str):
            raise StreamError(f"Event hash must be a string, got {event_hash!r}")

        logs = _parse_logs(data.get("logs"))
        mev_gas_price = parse_quantity(data.get("mevGasPrice"))
        gas_used = parse_quantity(data.get("gasUsed"))

        match data.get("txs"):
            case None:
                return TransactionEvent(
                    hash=event_hash,
                    logs=logs,
                    mev_gas_price=mev_gas_price,
                    gas_used=gas_used,
                )
            case list() as txs:
                return BundleEvent(
                    hash=event_hash,
                    txs=tuple(_parse_tx(tx) for tx in txs),
                    logs=logs,
                    mev_gas_price=mev_gas_price,
                    gas_used=gas_used,
                )
            case other:
                raise StreamError(f"Event txs must be a list, got {type(other).__name__}")
    except StreamError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise StreamError(f"Malformed event record: {e}") from e


def parse_frame(frame: str) -> Event:
    """Decode and classify one raw push frame.

    Raises:
        StreamError: If the frame is not valid JSON or not a valid event
    """
    try:
        data = json.loads(frame)
    except json.JSONDecodeError as e:
        raise StreamError(f"Frame is not valid JSON: {e}", frame=frame) from e
    try:
        return classify_event(data)
    except StreamError as e:
        e.frame = frame
        raise


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class EventDispatcher:
    """
    Long-lived consumer of an EventSource that delivers typed events.

    Features:
    - Per-kind listener registries, invoked in registration order
    - Listener failures isolated and forwarded to error listeners
    - Automatic resubscription with bounded exponential backoff
    - At-most-once delivery per connection epoch; gaps are not replayed

    Listeners may be plain functions or coroutine functions. Plain functions
    run inline; coroutine listeners run as their own tasks, so a slow listener
    never holds back other listeners or later frames. Registration is
    thread-safe and valid before or after the stream starts; an event is
    delivered to the listeners registered at the moment it is dispatched.
    """

    def __init__(
        self,
        stream_url: str,
        source: EventSource,
        config: StreamConfig | None = None
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            stream_url: Endpoint to subscribe to
            source: Frame source; each subscribe() opens a new connection
            config: Reconnect settings
        """
        self.stream_url = stream_url
        self.source = source
        self.config = config or StreamConfig()

        self.state = ConnectionState.IDLE
        self.epoch = 0

        self._listeners: dict[EventKind, list[Listener]] = {kind: [] for kind in EventKind}
        self._error_listeners: list[ErrorListener] = []
        self._lock = threading.Lock()
        self._task: asyncio.Task | None = None
        self._listener_tasks: set[asyncio.Task] = set()

        # Metrics tracking
        self.events_delivered = 0
        self.frames_invalid = 0
        self.listener_failures = 0
        self.reconnects = 0

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending_listeners(self) -> int:
        """Number of coroutine listener invocations still running."""
        return len(self._listener_tasks)

    def on(self, kind: EventKind, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for one event kind.

        Returns:
            A function that removes the listener again
        """
        if not isinstance(kind, EventKind):
            raise TypeError(f"Event kind must be an EventKind, got {kind!r}")
        with self._lock:
            self._listeners[kind].append(listener)
        self.logger.debug(f"Registered {kind.value} listener {listener!r}")
        return lambda: self.off(kind, listener)

    def off(self, kind: EventKind, listener: Listener) -> bool:
        """Remove a listener; returns False if it was not registered."""
        with self._lock:
            try:
                self._listeners[kind].remove(listener)
                return True
            except ValueError:
                return False

    def on_error(self, listener: ErrorListener) -> None:
        """Register a listener for malformed frames and listener failures."""
        with self._lock:
            self._error_listeners.append(listener)

    def listeners(self, kind: EventKind) -> list[Listener]:
        """Snapshot of the listeners currently registered for a kind."""
        with self._lock:
            return list(self._listeners[kind])

    def start(self) -> asyncio.Task:
        """
        Start the background stream task on the running event loop.

        Calling start on a running dispatcher returns the existing task.

        Raises:
            RuntimeError: If the dispatcher was closed or no loop is running
        """
        if self.state is ConnectionState.CLOSED:
            raise RuntimeError("Event dispatcher is closed")
        if self.is_running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="mev-share-event-stream"
        )
        return self._task

    async def stop(self) -> None:
        """Close the stream and wait for the background task to finish."""
        self.state = ConnectionState.CLOSED
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass  # Expected when cancelling
        self._task = None

        pending = list(self._listener_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            self.logger.info(f"Cancelled {len(pending)} running listener(s)")
        self.logger.info("Event stream closed")

    async def _run(self) -> None:
        attempt = 0
        while self.state is not ConnectionState.CLOSED:
            self.state = ConnectionState.CONNECTING if attempt == 0 else ConnectionState.RECONNECTING
            self.logger.info(f"Subscribing to event stream: {self.stream_url}")
            connected = False
            try:
                async with aclosing(self.source.subscribe(self.stream_url)) as frames:
                    async for frame in frames:
                        if not connected:
                            connected = True
                            attempt = 0
                            self.epoch += 1
                            self.state = ConnectionState.CONNECTED
                            self.logger.info(f"Event stream connected (epoch {self.epoch})")
                        await self._dispatch_frame(frame)
                self.logger.warning("Event stream closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.warning(f"Event stream connection lost: {e}")

            if self.state is ConnectionState.CLOSED:
                break

            attempt += 1
            self.reconnects += 1
            self.state = ConnectionState.RECONNECTING
            delay = self.config.backoff(attempt)
            self.logger.warning(f"Reconnecting in {delay} seconds (attempt {attempt})...")
            await asyncio.sleep(delay)

    async def _dispatch_frame(self, frame: str) -> None:
        try:
            event = parse_frame(frame)
        except StreamError as e:
            self.frames_invalid += 1
            self.logger.error(f"Skipping malformed frame: {e}")
            await self._report(e, None)
            return

        await self.dispatch(event)

    async def dispatch(self, event: Event) -> None:
        """
        Deliver an event to every listener registered for its kind.

        Awaitable listener results are scheduled as tasks and not waited for;
        their failures are reported once they finish.
        """
        for listener in self.listeners(event.kind):
            try:
                result = listener(event)
            except Exception as e:
                await self._listener_failed(listener, event, e)
                continue
            if inspect.isawaitable(result):
                self._track(asyncio.ensure_future(result), listener, event)
        self.events_delivered += 1

    def _track(self, task: asyncio.Future, listener: Listener, event: Event) -> None:
        self._listener_tasks.add(task)
        task.add_done_callback(functools.partial(self._listener_done, listener, event))

    def _listener_done(self, listener: Listener, event: Event, task: asyncio.Future) -> None:
        self._listener_tasks.discard(task)
        if task.cancelled() or (error := task.exception()) is None:
            return
        report = asyncio.ensure_future(self._listener_failed(listener, event, error))
        self._listener_tasks.add(report)
        report.add_done_callback(self._listener_tasks.discard)

    async def _listener_failed(self, listener: Listener, event: Event, error: Exception) -> None:
        self.listener_failures += 1
        self.logger.error(
            f"Listener {listener!r} failed on {event.kind.value} {event.hash}: {error}",
            exc_info=error
        )
        await self._report(error, event)

    async def _report(self, error: Exception, event: Event | None) -> None:
        with self._lock:
            error_listeners = list(self._error_listeners)
        for listener in error_listeners:
            try:
                await _invoke(listener, error, event)
            except Exception as e:
                self.logger.error(f"Error listener {listener!r} failed: {e}", exc_info=True)

    def get_metrics(self) -> dict[str, Any]:
        """Get current stream metrics."""
        return {
            "state": self.state.value,
            "epoch": self.epoch,
            "events_delivered": self.events_delivered,
            "frames_invalid": self.frames_invalid,
            "listener_failures": self.listener_failures,
            "reconnects": self.reconnects,
        }
