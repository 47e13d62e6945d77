"""Ordered work lists whose members can be moved between lists."""

from __future__ import annotations

from typing import Any, Iterator, List, Optional


class ActiveList:
    """A member of a circular list; any member can serve as its head.

    Adding a node to an element places it immediately before that element,
    so adding to a head appends at the end, and adding to a member inserts
    the node ahead of the member it depends on.
    """

    def __init__(self, pkg: Any = None) -> None:
        self.pkg = pkg
        self.depended: Optional[ActiveList] = None
        self._ring: List[ActiveList] = [self]

    def add(self, node: "ActiveList") -> None:
        """Move ``node`` out of its list and put it just before this element."""
        if node is self:
            raise ValueError("cannot add a list to itself")
        node._ring.remove(node)
        ring = self._ring
        ring.insert(ring.index(self), node)
        node._ring = ring
        node.depended = self

    def _neighbour(self, ptr: Optional["ActiveList"],
                   step: int) -> Optional["ActiveList"]:
        ptr = self if ptr is None else ptr
        ring = ptr._ring
        other = ring[(ring.index(ptr) + step) % len(ring)]
        return None if other is self else other

    def next(self, ptr: Optional["ActiveList"] = None) -> Optional["ActiveList"]:
        """Return the member after ``ptr`` (the first if None), or None."""
        return self._neighbour(ptr, 1)

    def prev(self, ptr: Optional["ActiveList"] = None) -> Optional["ActiveList"]:
        """Return the member before ``ptr`` (the last if None), or None."""
        return self._neighbour(ptr, -1)

    def move_node(self, new_head: "ActiveList",
                  node: "ActiveList") -> Optional["ActiveList"]:
        """Move ``node`` from this list to ``new_head``.

        Returns the member that preceded ``node`` here, so iteration can
        continue from it; if both heads are the same, ``node`` is returned.
        """
        if self is new_head:
            return node
        previous = self.prev(node)
        new_head.add(node)
        return previous

    def clear(self) -> None:
        """Detach every member, leaving each on its own."""
        for member in list(self._ring):
            member._ring = [member]
            member.depended = None

    def __iter__(self) -> Iterator["ActiveList"]:
        node = self.next()
        while node is not None:
            yield node
            node = self.next(node)