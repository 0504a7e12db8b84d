"""Iterative lockstep walk over two object graphs.

No recursion is used so the depth of graph we can handle is limited by
memory, not by ``sys.getrecursionlimit()``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

from .errors import FatalIterationCeilingExceeded
from .identity import DedupKey, DedupSet, IdentityRegistry
from .introspect import Introspector, MemberDescriptor

__all__ = ['Frame', 'ValidatedMember', 'Traversal']

LengthCheckFn = Callable[[object, object, Sequence, Sequence], None]


@dataclass(frozen=True)
class ValidatedMember:
    """What the member hooks get told about each member step"""
    expected_parent: object
    actual_parent: object
    expected_parent_id: int
    actual_parent_id: int
    member: MemberDescriptor
    expected_value: object
    actual_value: object
    index: int | None = None
    """Index into the elements (only for the ``<elements>`` member)"""


class Frame:
    """One level of the walk. Only ever touched by the owning Traversal."""
    __slots__ = ('expected', 'actual', 'expected_id', 'actual_id',
                 '_members', '_next_member', 'member',
                 'expected_items', 'actual_items', 'index')

    def __init__(self, expected: object, actual: object, expected_id: int,
                 actual_id: int, members: Sequence[MemberDescriptor]):
        self.expected = expected
        self.actual = actual
        self.expected_id = expected_id
        self.actual_id = actual_id
        self._members = members
        self._next_member = 0
        self.member: MemberDescriptor | None = None
        self.expected_items: Sequence | None = None
        self.actual_items: Sequence | None = None
        self.index = -1

    def next_member(self) -> MemberDescriptor | None:
        if self._next_member >= len(self._members):
            self.member = None
            return None
        self.member = self._members[self._next_member]
        self._next_member += 1
        return self.member

    def start_items(self, expected_items: Sequence, actual_items: Sequence):
        self.expected_items = expected_items
        self.actual_items = actual_items
        self.index = -1

    def next_item(self) -> bool:
        if self.expected_items is None:
            return False
        self.index += 1
        if self.index < len(self.expected_items):
            return True
        self.expected_items = self.actual_items = None
        self.index = -1
        return False

    def label(self) -> str:
        if self.member is None:
            return ''
        if self.member.is_elements:
            # No index yet means we're looking at the whole sequence
            return f'[{self.index}]' if self.index >= 0 else ''
        return f'.{self.member.name}'

    def current(self) -> ValidatedMember:
        if self.member.is_elements:
            return ValidatedMember(
                self.expected, self.actual, self.expected_id, self.actual_id,
                self.member, self.expected_items[self.index],
                self.actual_items[self.index], self.index)
        return ValidatedMember(
            self.expected, self.actual, self.expected_id, self.actual_id,
            self.member, self.member.get(self.expected), self.member.get(self.actual))


class Traversal:
    def __init__(self, introspector: Introspector, check_lengths: LengthCheckFn,
                 max_iterations: int):
        self.introspector = introspector
        self.check_lengths = check_lengths
        self.max_iterations = max_iterations
        self.identities = IdentityRegistry()
        self.dedup = DedupSet()
        self.stack: list[Frame] = []
        self.n_ops = 0
        self.max_depth = 0
        self.root_label = ''

    def start(self, expected: object, actual: object):
        self._push(expected, actual)

    def push_if_new(self, member: MemberDescriptor, expected: object, actual: object) -> bool:
        """Returns False if this pair was already seen at this member
        (so it is either already proven equal or it is still on the stack)"""
        key = DedupKey(self.identities.get_or_create(expected),
                       self.identities.get_or_create(actual), member.name)
        if not self.dedup.add_if_new(key):
            return False
        self._push(expected, actual)
        return True

    def _push(self, expected: object, actual: object):
        self._tick()
        self.stack.append(Frame(
            expected, actual, self.identities.get_or_create(expected),
            self.identities.get_or_create(actual),
            self.introspector.members_of(expected, actual)))
        self.max_depth = max(self.max_depth, len(self.stack))

    def _tick(self):
        self.n_ops += 1
        if self.n_ops > self.max_iterations:
            raise FatalIterationCeilingExceeded(self.max_iterations)

    def steps(self) -> Iterator[ValidatedMember]:
        """Yields every member step. The consumer may call ``push_if_new``
        before asking for the next one to descend into that step's values."""
        while self.stack:
            self._tick()
            frame = self.stack[-1]
            if self._advance(frame):
                yield frame.current()
            else:
                self.stack.pop()  # Exhausted, everything below is equal

    def _advance(self, frame: Frame) -> bool:
        if frame.next_item():
            return True
        while (member := frame.next_member()) is not None:
            if not member.is_elements:
                return True
            exp_items = self.introspector.elements_of(frame.expected)
            act_items = self.introspector.elements_of(frame.actual)
            # Raises on mismatch, before any of the elements are looked at
            self.check_lengths(frame.expected, frame.actual, exp_items, act_items)
            frame.start_items(exp_items, act_items)
            if frame.next_item():
                return True
            # Empty sequences, nothing to do for this member
        return False

    def path(self) -> str:
        return self.root_label + ''.join(f.label() for f in self.stack)
