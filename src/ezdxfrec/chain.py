from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Iterable, Iterator, Mapping, TypeVar

from .entity import Record
from .errors import ChainError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class ChainManager(Generic[R]):
    """Allocation and teardown of one record type and its singly linked chains.

    ``owned`` maps an attribute of the record to the manager of the
    sub-record chain it holds (a polyline's vertices, a table's cells).
    The ``allocated`` and ``freed`` counters are updated under a lock; the
    records themselves are not shared between threads.
    """

    def __init__(self, factory: Callable[[], R], owned: Mapping[str, "ChainManager"] | None = None):
        self._factory = factory
        self._owned = dict(owned or {})
        self._lock = threading.Lock()
        self.allocated = 0
        self.freed = 0

    @property
    def live(self) -> int:
        with self._lock:
            return self.allocated - self.freed

    def allocate(self) -> R:
        node = self._factory()
        with self._lock:
            self.allocated += 1
        return node

    def default_init(self, node: R | None = None) -> R:
        if node is None:
            logger.warning("default_init() got no node, allocating a new one")
            node = self.allocate()
        node.init_defaults()
        return node

    def new(self) -> R:
        return self.default_init(self.allocate())

    def free_one(self, node: R) -> None:
        if node is None:
            raise ChainError("cannot free a missing record")
        if node.freed:
            raise ChainError(f"{_label(node)} record was already freed")
        if node.next is not None:
            raise ChainError(f"cannot free {_label(node)}: successor reference is not empty")
        for attr in self._owned:
            if getattr(node, attr) is not None:
                raise ChainError(
                    f"cannot free {_label(node)}: it still owns a {attr} chain, use free_chain()"
                )
        node._freed = True
        with self._lock:
            self.freed += 1

    def free_chain(self, head: R | None) -> int:
        if head is None:
            logger.warning("free_chain() got an empty chain")
            return 0
        # Walk the whole chain first so a freed or cyclic node refuses the
        # operation before anything is released.
        nodes = list(iter_chain(head))
        for node in nodes:
            for attr in self._owned:
                list(iter_chain(getattr(node, attr)))
        count = 0
        for node in nodes:
            node.next = None
            self.release_owned(node)
            self.free_one(node)
            count += 1
        return count

    def release_owned(self, node: R) -> int:
        """Free every sub-chain ``node`` owns and detach it; returns the count."""
        count = 0
        for attr, manager in self._owned.items():
            owned_head = getattr(node, attr)
            if owned_head is not None:
                count += manager.free_chain(owned_head)
                setattr(node, attr, None)
        return count


def iter_chain(head: R | None) -> Iterator[R]:
    node = head
    seen: set[int] = set()
    while node is not None:
        if id(node) in seen:
            raise ChainError(f"cycle detected in {_label(node)} chain")
        seen.add(id(node))
        node.ensure_live()
        yield node
        node = node.next


def chain_length(head: R | None) -> int:
    return sum(1 for _ in iter_chain(head))


def chain_from(nodes: Iterable[R]) -> R | None:
    head: R | None = None
    tail: R | None = None
    for node in nodes:
        if node.next is not None:
            raise ChainError(f"{_label(node)} is already linked to a successor")
        if tail is None:
            head = node
        else:
            tail.next = node
        tail = node
    return head


def append_node(head: R | None, node: R) -> R:
    node.ensure_live()
    if node.next is not None:
        raise ChainError(f"{_label(node)} is already linked to a successor")
    if head is None:
        return node
    tail = head
    for tail in iter_chain(head):
        pass
    tail.next = node
    return head


def _label(node: Record) -> str:
    return node.DXFTYPE or type(node).__name__
