"""
User-interaction signals.

The host UI forwards raw input events to an InteractionBus; the session
manager subscribes to the tracked signal types while a user is signed in and
unsubscribes when the session ends.
"""
import logging
from collections import defaultdict
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class ActivitySignal(str, Enum):
    POINTER_MOVE = "mousemove"
    KEY_DOWN = "keydown"
    CLICK = "click"
    SCROLL = "scroll"
    TOUCH_START = "touchstart"


TRACKED_SIGNALS: tuple[ActivitySignal, ...] = tuple(ActivitySignal)

SignalHandler = Callable[[ActivitySignal], None]


class InteractionBus:
    def __init__(self) -> None:
        self._handlers: dict[ActivitySignal, list[SignalHandler]] = defaultdict(list)

    def subscribe(self, signal: ActivitySignal | str, handler: SignalHandler) -> None:
        handlers = self._handlers[ActivitySignal(signal)]
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, signal: ActivitySignal | str, handler: SignalHandler) -> None:
        handlers = self._handlers.get(ActivitySignal(signal))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, signal: ActivitySignal | str) -> int:
        """Deliver a signal, return how many handlers received it."""
        try:
            kind = ActivitySignal(signal)
        except ValueError:
            logger.debug("Ignoring untracked interaction signal %r", signal)
            return 0
        handlers = list(self._handlers.get(kind, ()))
        for handler in handlers:
            handler(kind)
        return len(handlers)

    def listener_count(self, signal: ActivitySignal | str | None = None) -> int:
        if signal is not None:
            return len(self._handlers.get(ActivitySignal(signal), ()))
        return sum(len(handlers) for handlers in self._handlers.values())


class ActivitySubscription:
    """
    Handle for one handler registered on every tracked signal.

    ``cancel`` is idempotent so teardown paths can call it unconditionally.
    """

    def __init__(
        self,
        bus: InteractionBus,
        handler: SignalHandler,
        signals: tuple[ActivitySignal, ...] = TRACKED_SIGNALS,
    ) -> None:
        self._bus = bus
        self._handler = handler
        self._signals = signals
        for signal in signals:
            bus.subscribe(signal, handler)
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        for signal in self._signals:
            self._bus.unsubscribe(signal, self._handler)
        self.active = False
