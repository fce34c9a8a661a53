"""Progress events emitted by an export job.

Hey future me - internally an export narrates itself with these small frozen
dataclasses, NOT with strings. Only the ProgressChannel turns them into the
line-oriented wire text the browser parses ("progress:96:24:120" etc). That
keeps the orchestrator testable: assert on events, not on string formatting.

Wire format (kept stable for the JS client):
    Started        -> "started:<playlist name>"
    Status         -> "<free text>"
    BatchProgress  -> "progress:<added>:<missing>:<total>"
    Done           -> "done:<added>:<missing>:<failed>:<total>"
    Error          -> "error:<message>"
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Started:
    playlist_name: str

    def encode(self) -> str:
        return f"started:{self.playlist_name}"


@dataclass(frozen=True)
class Status:
    """Free-text status line shown as-is by the client."""

    text: str

    def encode(self) -> str:
        return self.text


@dataclass(frozen=True)
class BatchProgress:
    added: int
    missing: int
    total: int

    def encode(self) -> str:
        return f"progress:{self.added}:{self.missing}:{self.total}"


@dataclass(frozen=True)
class Done:
    added: int
    missing: int
    failed: int
    total: int

    def encode(self) -> str:
        return f"done:{self.added}:{self.missing}:{self.failed}:{self.total}"


@dataclass(frozen=True)
class Error:
    message: str

    def encode(self) -> str:
        # Newlines would break the one-line-per-frame contract
        return "error:" + " ".join(self.message.split())


ProgressEvent = Union[Started, Status, BatchProgress, Done, Error]

TERMINAL_EVENTS = (Done, Error)


def is_terminal(event: ProgressEvent) -> bool:
    """True for events that end a job's stream (Done or Error)."""
    return isinstance(event, TERMINAL_EVENTS)


def encode_event(event: ProgressEvent | str) -> str:
    """Serialize an event (or pass through plain text) to its wire form."""
    if isinstance(event, str):
        return event
    return event.encode()
