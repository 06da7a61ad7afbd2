"""Trigger messages, connector protocol and user notices."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Coroutine, Protocol, runtime_checkable

if TYPE_CHECKING:
    from scenesync.core import PassResult


class TriggerKind(str, enum.Enum):
    TIMER = "timer"
    COMMAND = "command"
    DOCUMENT_CHANGED = "document_changed"


@dataclass(frozen=True)
class PassTrigger:
    """A request for reconciliation from any source."""

    kind: TriggerKind
    path: str | None = None  # vault-relative, DOCUMENT_CHANGED only
    source: str = ""


# Callback type: core.Reconciler.handle_trigger
TriggerHandler = Callable[[PassTrigger], Coroutine[None, None, "PassResult | None"]]


@runtime_checkable
class Connector(Protocol):
    """Protocol that all trigger sources must implement."""

    @property
    def name(self) -> str: ...

    async def start(self, handler: TriggerHandler) -> None:
        """Start producing triggers. Call handler for each one."""
        ...

    async def stop(self) -> None:
        """Gracefully stop the connector."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Where user-facing notices go."""

    def notify(self, message: str) -> None: ...
