"""
In-process domain events.

Publishers never know who listens: handlers are registered at startup and a
failing handler is reported as a failed DeliveryOutcome instead of raising.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChanged:
    request_id: str
    status: str
    user_id: str
    amount: Decimal
    payment_method: str | None = None
    currency: str = "USD"
    admin_notes: str | None = None


@dataclass
class DeliveryOutcome:
    handler: str
    success: bool
    skipped: bool = False
    error: str | None = None


Handler = Callable[[object], Awaitable[DeliveryOutcome | None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[tuple[str, Handler]]] = {}

    def subscribe(self, event_type: type, handler: Handler, name: str | None = None) -> None:
        name = name or getattr(handler, "__qualname__", type(handler).__name__)
        self._handlers.setdefault(event_type, []).append((name, handler))

    async def publish(self, event: object) -> list[DeliveryOutcome]:
        outcomes: list[DeliveryOutcome] = []
        for name, handler in self._handlers.get(type(event), []):
            try:
                outcome = await handler(event)
            except Exception as e:
                logger.warning("Event handler %s failed for %s: %s", name, type(event).__name__, e)
                outcome = DeliveryOutcome(handler=name, success=False, error=str(e) or type(e).__name__)
            if outcome is None:
                outcome = DeliveryOutcome(handler=name, success=True)
            outcomes.append(outcome)
        return outcomes
