import asyncio

import pytest

from fakes import (
    FakeCredentialClient,
    FakeResponse,
    FakeSession,
    FakeTransport,
    TrackFactory,
)
from receptionist.call_state_machine import CallStateMachine, DurationTimer
from receptionist.config.constants import (
    CREDENTIAL_REALTIME_SESSION,
    MICROPHONE_PERMISSION_MESSAGE,
)
from receptionist.errors import CredentialFetchError, NegotiationError
from receptionist.media.microphone import Microphone
from receptionist.models.call_session import CallState
from receptionist.services.credential_client import CredentialClient


def build_machine(clock, transport=None, credential_client=None, tracks=None):
    tracks = tracks or TrackFactory()
    machine = CallStateMachine(
        transport or FakeTransport(),
        credential_client=credential_client or FakeCredentialClient(),
        microphone=Microphone(track_factory=tracks),
        sleep=clock.sleep,
    )
    return machine, tracks


@pytest.mark.asyncio
class TestDurationTimer:

    async def test_ticks_once_per_interval(self, clock):
        ticks = []
        timer = DurationTimer(lambda: ticks.append(1), sleep=clock.sleep)

        timer.start()
        await clock.advance(2)

        assert len(ticks) == 2
        assert timer.running
        timer.stop()
        assert not timer.running

    async def test_restart_replaces_the_running_loop(self, clock):
        ticks = []
        timer = DurationTimer(lambda: ticks.append(1), sleep=clock.sleep)

        timer.start()
        timer.start()
        await clock.advance(1)

        assert len(ticks) == 1
        timer.stop()

    async def test_no_ticks_after_stop(self, clock):
        ticks = []
        timer = DurationTimer(lambda: ticks.append(1), sleep=clock.sleep)

        timer.start()
        await clock.advance(1)
        timer.stop()
        await clock.advance(2)

        assert len(ticks) == 1


@pytest.mark.asyncio
class TestCallStateMachine:

    async def test_happy_path_counts_duration(self, clock):
        transport = FakeTransport()
        session = FakeSession(FakeResponse(200, {"token": "t", "sessionId": "s", "model": "m"}))
        machine, tracks = build_machine(
            clock,
            transport=transport,
            credential_client=CredentialClient(base_url="http://backend.test", session=session),
        )

        await machine.start()

        assert machine.state == CallState.CONNECTING
        assert session.calls[0]["method"] == "POST"
        assert transport.started[0].token == "t"
        assert transport.started[0].session_id == "s"
        assert transport.started[0].model == "m"

        await transport.connect()
        assert machine.state == CallState.CONNECTED
        assert machine.is_connected
        assert machine.duration == 0

        await clock.advance(3)
        assert machine.duration == 3

        await machine.end()
        assert machine.state == CallState.ENDED
        assert machine.error is None
        assert len(tracks.live) == 0

    async def test_start_fetches_the_transport_credential_kind(self, clock):
        credentials = FakeCredentialClient()
        machine, _ = build_machine(clock, credential_client=credentials)

        await machine.start()

        assert credentials.kinds == [CREDENTIAL_REALTIME_SESSION]

    async def test_mode_changes_only_while_active(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()
        await transport.mode("speaking")
        assert machine.state == CallState.CONNECTING

        await transport.connect()
        await transport.mode("speaking")
        assert machine.state == CallState.SPEAKING
        assert machine.is_speaking

        await transport.mode("listening")
        assert machine.state == CallState.LISTENING
        assert not machine.is_speaking
        assert machine.is_connected

    async def test_duration_keeps_counting_across_modes(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await clock.advance(1)
        await transport.mode("speaking")
        await clock.advance(1)

        assert machine.duration == 2

    async def test_repeated_connect_keeps_the_call_running(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await clock.advance(2)
        await transport.mode("speaking")
        await transport.connect()

        assert machine.state == CallState.SPEAKING
        assert machine.duration == 2
        await clock.advance(1)
        assert machine.duration == 3

    async def test_duration_freezes_after_end(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await clock.advance(2)
        await machine.end()
        await clock.advance(3)

        assert machine.duration == 2

    async def test_end_releases_microphone_and_transport(self, clock):
        transport = FakeTransport()
        machine, tracks = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await machine.end()

        assert transport.end_calls >= 1
        assert not transport.active
        assert all(track.stopped for track in tracks.tracks)
        assert machine.microphone.handle is None
        assert not machine.session.has_resources

    async def test_end_in_idle_is_a_noop(self, clock):
        machine, _ = build_machine(clock)

        await machine.end()

        assert machine.state == CallState.IDLE
        assert machine.error is None

    async def test_end_after_ended_is_a_noop(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()
        await machine.end()
        end_calls = transport.end_calls
        await machine.end()

        assert machine.state == CallState.ENDED
        assert transport.end_calls == end_calls

    async def test_end_in_error_keeps_the_error(self, clock):
        machine, _ = build_machine(clock, credential_client=FakeCredentialClient(error=CredentialFetchError("nope")))

        await machine.start()
        await machine.end()

        assert machine.state == CallState.ERROR
        assert machine.error == "nope"

    async def test_credential_failure(self, clock):
        transport = FakeTransport()
        session = FakeSession(FakeResponse(500, {"error": "boom"}))
        machine, tracks = build_machine(
            clock,
            transport=transport,
            credential_client=CredentialClient(base_url="http://backend.test", session=session),
        )

        await machine.start()

        assert machine.state == CallState.ERROR
        assert "status: 500" in machine.error
        assert transport.started == []
        assert len(tracks.tracks) == 1
        assert tracks.tracks[0].stopped
        assert machine.session.microphone is None

    async def test_permission_denial(self, clock):
        transport = FakeTransport()
        credentials = FakeCredentialClient()
        machine, _ = build_machine(
            clock,
            transport=transport,
            credential_client=credentials,
            tracks=TrackFactory(fail=True),
        )

        await machine.start()

        assert machine.state == CallState.ERROR
        assert machine.error == MICROPHONE_PERMISSION_MESSAGE
        assert machine.microphone.handle is None
        assert machine.session.microphone is None
        assert credentials.kinds == []
        assert transport.started == []

    async def test_transport_start_failure(self, clock):
        transport = FakeTransport(start_error=NegotiationError("Failed to establish connection with OpenAI: HTTP error! Status: 500"))
        machine, tracks = build_machine(clock, transport=transport)

        await machine.start()

        assert machine.state == CallState.ERROR
        assert "Status: 500" in machine.error
        assert transport.end_calls >= 1
        assert tracks.live == []

    async def test_unexpected_transport_exception_is_reported(self, clock):
        transport = FakeTransport(start_error=RuntimeError("socket exploded"))
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()

        assert machine.state == CallState.ERROR
        assert machine.error == "Failed to start conversation: socket exploded"

    async def test_two_quick_starts_start_one_transport(self, clock):
        transport = FakeTransport()
        machine, tracks = build_machine(clock, transport=transport)

        await asyncio.gather(machine.start(), machine.start())

        assert len(transport.started) == 1
        assert len(tracks.tracks) == 1

    async def test_restart_releases_previous_call(self, clock):
        transport = FakeTransport()
        machine, tracks = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await machine.start()

        assert machine.state == CallState.CONNECTING
        assert len(transport.started) == 2
        assert tracks.tracks[0].stopped
        assert len(tracks.live) == 1
        assert machine.duration == 0

    async def test_provider_disconnect_ends_the_call(self, clock):
        transport = FakeTransport()
        machine, tracks = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await clock.advance(1)
        await transport.disconnect()

        assert machine.state == CallState.ENDED
        assert machine.duration == 1
        assert tracks.live == []
        assert not machine.session.has_resources

    async def test_provider_error_fails_the_call(self, clock):
        transport = FakeTransport()
        machine, tracks = build_machine(clock, transport=transport)

        await machine.start()
        await transport.connect()
        await transport.fail(RuntimeError("Conversation error: lost"))

        assert machine.state == CallState.ERROR
        assert machine.error == "Conversation error: lost"
        assert tracks.live == []
        assert not machine.is_connected

    async def test_stale_callbacks_are_ignored(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)

        await machine.start()
        stale = transport.all_callbacks[0]
        await machine.reset()

        stale.on_connect()
        await stale.on_error(RuntimeError("late"))

        assert machine.state == CallState.IDLE
        assert machine.error is None

    async def test_reset_after_error(self, clock):
        machine, _ = build_machine(clock, credential_client=FakeCredentialClient(error=CredentialFetchError("nope")))

        await machine.start()
        await machine.reset()

        assert machine.state == CallState.IDLE
        assert machine.error is None
        assert machine.duration == 0

    async def test_start_after_error_clears_error(self, clock):
        credentials = FakeCredentialClient(error=CredentialFetchError("nope"))
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport, credential_client=credentials)

        await machine.start()
        credentials.error = None
        await machine.start()

        assert machine.state == CallState.CONNECTING
        assert machine.error is None
        assert len(transport.started) == 1

    async def test_listeners_receive_snapshots(self, clock):
        transport = FakeTransport()
        machine, _ = build_machine(clock, transport=transport)
        states = []

        def broken(snapshot):
            raise ValueError("listener bug")

        machine.add_listener(broken)
        machine.add_listener(lambda snapshot: states.append(snapshot.state))

        await machine.start()
        await transport.connect()

        assert CallState.CONNECTING in states
        assert states[-1] == CallState.CONNECTED

        machine.remove_listener(broken)
        machine.remove_listener(broken)

    async def test_context_manager_releases_on_exit(self, clock):
        transport = FakeTransport()
        machine, tracks = build_machine(clock, transport=transport)

        async with machine:
            await machine.start()
            await transport.connect()

        assert tracks.live == []
        assert not transport.active
        assert not machine.session.has_resources
