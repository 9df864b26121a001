"""
Roster Manager

Owns the participant names of a session. Names are opaque, case-sensitive
identifiers kept in insertion order; trimming is the caller's job.

Removal is announced to listeners so that items still pointing at the
removed name can be corrected. The roster itself depends on nothing.
"""

from typing import Callable, Iterable, Iterator

RemovalListener = Callable[[str], None]


class RosterManager:
    """Ordered set of attendee names."""

    def __init__(self, names: Iterable[str] = ()):
        self._names: list[str] = []
        self._listeners: list[RemovalListener] = []
        for name in names:
            self.add(name)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def subscribe(self, listener: RemovalListener) -> None:
        """Call listener(name) after every successful remove()."""
        self._listeners.append(listener)

    def add(self, name: str) -> bool:
        """Append name. Returns False if it was already present."""
        if name in self._names:
            return False
        self._names.append(name)
        return True

    def remove(self, name: str) -> bool:
        """
        Remove name and notify listeners.

        Returns False (and notifies nobody) if the name was not present.
        """
        if name not in self._names:
            return False
        self._names.remove(name)
        for listener in self._listeners:
            listener(name)
        return True

    def clear(self) -> None:
        """Forget every name. Listeners are not notified."""
        self._names.clear()
