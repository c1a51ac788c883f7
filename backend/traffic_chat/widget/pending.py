"""Optimistic update then reconcile, for any list of id-keyed entities.

A screen shows a locally built entity straight away with ``begin``, then either
``commit``s the server's record in its place or ``rollback``s it.
"""

from typing import Callable, Generic, Iterator, TypeVar

T = TypeVar("T")


class OptimisticList(Generic[T]):
    """Ordered entities with unique ids."""

    def __init__(self, key: Callable[[T], str]) -> None:
        self._key = key
        self._items: list[T] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __contains__(self, entity_id: object) -> bool:
        return any(self._key(item) == entity_id for item in self._items)

    def key_of(self, item: T) -> str:
        return self._key(item)

    @property
    def items(self) -> list[T]:
        return list(self._items)

    def replace_all(self, items: list[T]) -> None:
        seen: set[str] = set()
        unique = []
        for item in items:
            if self._key(item) not in seen:
                seen.add(self._key(item))
                unique.append(item)
        self._items = unique

    def append(self, item: T) -> bool:
        """Append unless an entity with the same id is already present."""
        if self._key(item) in self:
            return False
        self._items.append(item)
        return True

    def remove(self, entity_id: str) -> T | None:
        for i, item in enumerate(self._items):
            if self._key(item) == entity_id:
                return self._items.pop(i)
        return None

    def replace(self, entity_id: str, item: T) -> bool:
        for i, existing in enumerate(self._items):
            if self._key(existing) == entity_id:
                self._items[i] = item
                return True
        return False

    def begin(self, temp: T) -> "PendingMutation[T]":
        self._items.append(temp)
        return PendingMutation(self, temp)


class PendingMutation(Generic[T]):
    """A temporary entity awaiting server confirmation. Settles exactly once."""

    def __init__(self, target: OptimisticList[T], temp: T) -> None:
        self._target = target
        self.temp = temp
        self.settled = False

    @property
    def temp_id(self) -> str:
        return self._target.key_of(self.temp)

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError(f"mutation {self.temp_id} already settled")
        self.settled = True

    def commit(self, confirmed: T) -> None:
        """Swap the temporary entity for the confirmed one, keeping its position.

        If the temporary entity is gone (the list was reloaded) the confirmed
        one is appended instead, unless its id is already listed.
        """
        self._settle()
        confirmed_id = self._target.key_of(confirmed)
        if confirmed_id in self._target:
            self._target.remove(self.temp_id)
            return
        if not self._target.replace(self.temp_id, confirmed):
            self._target.append(confirmed)

    def rollback(self) -> T | None:
        self._settle()
        return self._target.remove(self.temp_id)
