# -*- coding: utf-8 -*-
"""
Activity records and event sinks for the two-factor core.

The core talks to two sinks through the same narrow ``emit(kind, payload)``
capability:

- the activity sink receives :class:`ActivityEvent` records (the user-visible
  security feed), ``kind`` being the activity subject;
- the event bus receives domain events such as ``twofactor.provider.success``
  with a plain dict payload.

Delivery is best effort. Sinks may raise ``AuditPublishError``; the manager
logs and drops such failures.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

__all__ = [
    "ActivityEvent",
    "EmittedEvent",
    "LoggingEventSink",
    "RecordingEventSink",
]

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityEvent:
    """
    One entry of the user's security activity stream.

    Attributes:
        app: Emitting app, ``core`` for the two-factor manager.
        type: Activity type, ``security``.
        actor_uid: User who acted.
        affected_uid: User the entry is shown to.
        subject: ``twofactor_success`` / ``twofactor_failed``.
        params: Subject parameters, e.g. ``{"provider": "TOTP"}``.
    """

    app: str
    type: str
    actor_uid: str
    affected_uid: str
    subject: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "app": self.app,
            "type": self.type,
            "actor_uid": self.actor_uid,
            "affected_uid": self.affected_uid,
            "subject": self.subject,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class EmittedEvent:
    """Captured ``emit`` call."""

    kind: str
    payload: Any


class LoggingEventSink:
    """Writes every event to a logger; default sink when the host wires nothing."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self._logger = logger or LOG
        self._level = level

    def emit(self, kind: str, payload: Any) -> None:
        if isinstance(payload, ActivityEvent):
            payload = payload.to_dict()
        self._logger.log(self._level, "event kind=%s payload=%s", kind, payload)


class RecordingEventSink:
    """Keeps emitted events in memory (tests, local diagnostics)."""

    def __init__(self) -> None:
        self._events: List[EmittedEvent] = []
        self._lock = threading.Lock()

    def emit(self, kind: str, payload: Any) -> None:
        with self._lock:
            self._events.append(EmittedEvent(kind=kind, payload=payload))

    @property
    def events(self) -> Tuple[EmittedEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

