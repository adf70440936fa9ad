"""
Call state machine for the AI receptionist.

CallStateMachine sequences one call at a time: microphone acquisition,
credential exchange and transport start, then reacts to the transport's
connect/disconnect/mode/error triggers until the call reaches `ended` or
`error`. Every path into a terminal state releases the microphone and the
transport before returning, and a new `start()` always begins from a clean
`idle` session.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from receptionist.bot.transport import (
    MODE_LISTENING,
    MODE_SPEAKING,
    Transport,
    TransportCallbacks,
)
from receptionist.config.constants import LOGGER_NAME, TIMER_INTERVAL
from receptionist.errors import ReceptionistError, TransportError, describe
from receptionist.media.microphone import Microphone
from receptionist.models.call_session import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    CallSession,
    CallSnapshot,
    CallState,
    can_transition,
)
from receptionist.services.credential_client import CredentialClient

logger = logging.getLogger(LOGGER_NAME)

Listener = Callable[[CallSnapshot], None]


class DurationTimer:
    """Calls `on_tick` once per interval until stopped; at most one loop runs."""

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval: float = TIMER_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.on_tick = on_tick
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            self.on_tick()


class CallStateMachine:
    """
    Orchestrates a voice call with the receptionist.

    Args:
        transport: The session transport (PeerTransport or ManagedTransport)
        credential_client: Fetches the credential the transport needs
        microphone: Microphone acquirer
        timer_interval: Seconds per duration tick
        sleep: Sleep function for the duration timer
    """

    def __init__(
        self,
        transport: Transport,
        credential_client: Optional[CredentialClient] = None,
        microphone: Optional[Microphone] = None,
        timer_interval: float = TIMER_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transport = transport
        self.credential_client = credential_client or CredentialClient()
        self.microphone = microphone or Microphone()
        self.session = CallSession()
        self._timer = DurationTimer(self._on_tick, timer_interval, sleep)
        self._listeners: List[Listener] = []
        self._starting = False
        self._ending = False
        self._attempt = 0

    # Presentation accessors
    @property
    def state(self) -> CallState:
        return self.session.state

    @property
    def duration(self) -> int:
        return self.session.duration

    @property
    def error(self) -> Optional[str]:
        return self.session.error

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def is_speaking(self) -> bool:
        return self.session.is_speaking

    def add_listener(self, listener: Listener) -> None:
        """Register a callback receiving a CallSnapshot after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.session.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Error in call state listener: {e}", exc_info=True)

    # Public operations
    async def start(self) -> None:
        """Start a new call. Ignored while another start or an end is in progress."""
        if self._starting or self._ending:
            logger.warning("Ignoring start(): a call is already starting or ending")
            return

        self._starting = True
        try:
            await self._run_start()
        finally:
            self._starting = False

    async def end(self) -> None:
        """Hang up. A no-op when there is no call to end."""
        if self._ending:
            logger.warning("Ignoring end(): the call is already ending")
            return
        if self.session.state == CallState.IDLE or self.session.state in TERMINAL_STATES:
            logger.debug(f"Ignoring end() in state {self.session.state.value}")
            return

        self._ending = True
        try:
            logger.info("Ending call")
            self._attempt += 1
            await self._release()
            self._transition(CallState.ENDED)
        finally:
            self._ending = False

    async def reset(self) -> None:
        """Release everything and return to a clean idle session."""
        self._attempt += 1
        await self._release()
        self.session.state = CallState.IDLE
        self.session.duration = 0
        self.session.error = None
        self._notify()

    async def close(self) -> None:
        """Host teardown: release resources without touching the visible state."""
        self._attempt += 1
        await self._release()

    async def __aenter__(self) -> "CallStateMachine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Start sequence
    async def _run_start(self) -> None:
        await self.reset()
        attempt = self._attempt
        logger.info(f"Starting call (attempt {attempt})")
        self._transition(CallState.CONNECTING)

        try:
            handle = await self.microphone.acquire()
            if not self._is_current(attempt):
                self.microphone.release(handle)
                return
            self.session.microphone = handle

            credential = await self.credential_client.fetch_credential(self.transport.credential_kind)
            if not self._is_current(attempt):
                return

            self.session.transport = self.transport
            await self.transport.start(credential, handle, self._callbacks_for(attempt))
        except ReceptionistError as e:
            if self._is_current(attempt):
                await self._fail(e)
            return
        except Exception as e:
            logger.error(f"Error starting conversation: {e}", exc_info=True)
            if self._is_current(attempt):
                await self._fail(TransportError(f"Failed to start conversation: {describe(e)}"))
            return

        if not self._is_current(attempt):
            await self._release_transport(self.transport)
            return
        logger.info("Transport started, waiting for provider to connect")

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt

    def _callbacks_for(self, attempt: int) -> TransportCallbacks:
        return TransportCallbacks(
            on_connect=lambda: self._handle_connect(attempt),
            on_disconnect=lambda: self._handle_disconnect(attempt),
            on_mode_change=lambda mode: self._handle_mode_change(attempt, mode),
            on_error=lambda error: self._handle_error(attempt, error),
        )

    # Transport triggers
    def _handle_connect(self, attempt: int) -> None:
        if not self._is_current(attempt) or self.session.state in ACTIVE_STATES:
            return
        if self._transition(CallState.CONNECTED):
            self._timer.start()

    async def _handle_disconnect(self, attempt: int) -> None:
        if not self._is_current(attempt) or self._ending:
            return
        if self.session.state == CallState.IDLE or self.session.state in TERMINAL_STATES:
            return
        logger.info("Provider disconnected, ending call")
        self._attempt += 1
        self._transition(CallState.ENDED)
        await self._release()

    def _handle_mode_change(self, attempt: int, mode: str) -> None:
        if not self._is_current(attempt) or self.session.state not in ACTIVE_STATES:
            return
        if mode == MODE_SPEAKING:
            self._transition(CallState.SPEAKING)
        elif mode == MODE_LISTENING:
            self._transition(CallState.LISTENING)
        else:
            logger.debug(f"Ignoring unknown mode: {mode}")

    async def _handle_error(self, attempt: int, error: BaseException) -> None:
        if not self._is_current(attempt):
            return
        await self._fail(error)

    # Transitions and teardown
    def _transition(self, new_state: CallState, error: Optional[str] = None) -> bool:
        current = self.session.state
        if current == new_state and new_state != CallState.ERROR:
            return False
        if not can_transition(current, new_state):
            logger.debug(f"Ignoring transition {current.value} -> {new_state.value}")
            return False

        self.session.state = new_state
        self.session.error = error if new_state == CallState.ERROR else None
        if new_state == CallState.CONNECTED:
            self.session.duration = 0
        if new_state not in ACTIVE_STATES:
            self._timer.stop()
        logger.info(f"Call state: {current.value} -> {new_state.value}")
        self._notify()
        return True

    async def _fail(self, error: BaseException) -> None:
        message = describe(error)
        logger.error(f"Call failed: {message}")
        self._attempt += 1
        self._transition(CallState.ERROR, error=message)
        await self._release()

    def _on_tick(self) -> None:
        if self.session.state not in ACTIVE_STATES:
            self._timer.stop()
            return
        self.session.duration += 1
        self._notify()

    async def _release(self) -> None:
        """Stop the timer and release microphone and transport; safe to repeat."""
        self._timer.stop()

        handle, self.session.microphone = self.session.microphone, None
        if handle is not None:
            self.microphone.release(handle)
        self.microphone.release()

        transport, self.session.transport = self.session.transport, None
        if transport is not None:
            await self._release_transport(transport)

    async def _release_transport(self, transport: Transport) -> None:
        transport.detach()
        try:
            await transport.end()
        except Exception as e:
            logger.error(f"Error releasing transport: {e}", exc_info=True)
