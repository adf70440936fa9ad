"""
Terminal call runner for the salon voice receptionist.

Places one call with the chosen provider, prints every state change with the
call duration, and hangs up after the given time or on Ctrl+C.

Usage:
    python client.py [--provider openai|elevenlabs] [--backend URL] [--time SECONDS]
"""

import argparse
import asyncio
import logging

from receptionist.bot import ManagedTransport, PeerTransport
from receptionist.call_state_machine import CallStateMachine
from receptionist.config import backend_url
from receptionist.config.constants import LOGGER_NAME
from receptionist.config.logging_config import configure_logging
from receptionist.models.call_session import CallSnapshot, CallState
from receptionist.services.credential_client import CredentialClient

logger = logging.getLogger(LOGGER_NAME)

STATE_LABELS = {
    CallState.IDLE: "Ready to call",
    CallState.CONNECTING: "Connecting...",
    CallState.CONNECTED: "Connected",
    CallState.SPEAKING: "Receptionist is speaking",
    CallState.LISTENING: "Listening...",
    CallState.ENDED: "Call ended",
    CallState.ERROR: "Call failed",
}


def format_duration(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def print_snapshot(snapshot: CallSnapshot) -> None:
    line = f"[{format_duration(snapshot.duration)}] {STATE_LABELS[snapshot.state]}"
    if snapshot.error:
        line += f": {snapshot.error}"
    print(line)


def build_transport(provider: str):
    if provider == "elevenlabs":
        return ManagedTransport()
    return PeerTransport()


async def run_call(provider: str, backend: str, call_time: int) -> CallState:
    """Place one call and return the state it finished in."""
    machine = CallStateMachine(
        build_transport(provider),
        credential_client=CredentialClient(base_url=backend),
    )
    machine.add_listener(print_snapshot)

    async with machine:
        await machine.start()
        try:
            for _ in range(call_time):
                if machine.state in (CallState.ENDED, CallState.ERROR):
                    break
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            logger.info("Call interrupted by user")
        finally:
            await machine.end()
        final_state = machine.state
        await machine.reset()
    return final_state


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Call the salon AI receptionist")
    parser.add_argument("--provider", choices=["openai", "elevenlabs"], default="openai",
                        help="Voice provider (default: openai)")
    parser.add_argument("--backend", type=str, default=backend_url(),
                        help="Credential backend URL (default: BACKEND_URL env var)")
    parser.add_argument("--time", type=int, default=120,
                        help="Maximum call time in seconds (default: 120)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    configure_logging(args.log_level)
    try:
        state = asyncio.run(run_call(args.provider, args.backend, args.time))
    except KeyboardInterrupt:
        state = CallState.ENDED
    raise SystemExit(0 if state != CallState.ERROR else 1)
