"""Observable state holders.

A class declares its observable fields with :class:`Published`. Assigning to
such a field notifies every subscriber synchronously, before the assignment
returns.

Examples:
    >>> class Counter(ObservableState):
    ...     value = Published(0)
    >>> counter = Counter()
    >>> seen = []
    >>> unsubscribe = counter.subscribe(lambda name, value: seen.append((name, value)))
    >>> counter.value = 3
    >>> seen
    [('value', 3)]
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Any], None]

_MISSING = object()


class Published:
    """Descriptor for a field whose changes are broadcast to subscribers.

    Args:
        default: Initial value
        default_factory: Callable producing the initial value (for dicts, sets)
    """

    def __init__(self, default: Any = None, default_factory: Optional[Callable[[], Any]] = None):
        self.default = default
        self.default_factory = default_factory
        self.name = ""

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        value = instance.__dict__.get(self.name, _MISSING)
        if value is _MISSING:
            value = self.default_factory() if self.default_factory else self.default
            instance.__dict__[self.name] = value
        return value

    def __set__(self, instance, value):
        instance.__dict__[self.name] = value
        instance._notify(self.name, value)


class ObservableState:
    """Base for objects whose Published fields can be observed."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked as ``callback(field_name, new_value)``.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, name: str, value: Any) -> None:
        for callback in list(getattr(self, "_subscribers", ())):
            try:
                callback(name, value)
            except Exception as exc:
                logger.error(f"Subscriber failed for field '{name}': {exc}")

    def snapshot(self) -> Dict[str, Any]:
        """Current values of all Published fields."""
        fields = {}
        for cls in reversed(type(self).__mro__):
            for name, attr in vars(cls).items():
                if isinstance(attr, Published):
                    fields[name] = getattr(self, name)
        return fields
