"""Queue status notifications for long-running synthesis jobs.

Updates are observational only: listeners cannot retry, cancel, or alter the
awaited synthesis call. A failing listener is logged and skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueUpdate:
    """One status snapshot reported by the synthesis queue."""

    request_id: str
    status: str
    queue_position: int | None = None
    logs: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED"


StatusListener = Callable[[str, QueueUpdate], None]


class StatusFeed:
    """Fan queue updates out to subscribed listeners.

    Listeners receive `(scenario_id, update)`.
    """

    def __init__(self) -> None:
        self._listeners: list[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, scenario_id: str, update: QueueUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(scenario_id, update)
            except Exception:
                logger.exception("Status listener failed for Scenario %s", scenario_id)
