"""Hierarchical counters of what a test run (e.g. a validation) saw.

A statistic counts the sources it matches. Groups match if their
children match, either any number of them (NonExclusiveStatisticGroup)
or at most one (ExclusiveStatisticGroup). ``MemberStatisticsCollector``
plugs a tree of them into the ``on_member_done`` validation hook."""
from __future__ import annotations

from typing import Callable, Generic, Iterable, Iterator, TypeVar

from .errors import StatisticsError
from .traversal import ValidatedMember

__all__ = [
    'TestStatisticBase', 'TestStatistic', 'StatisticGroupBase',
    'NonExclusiveStatisticGroup', 'ExclusiveStatisticGroup', 'TestStatistics',
    'MemberStatisticsCollector',
]

ST = TypeVar('ST')


class TestStatisticBase(Generic[ST]):
    __test__ = False  # Not a test class, despite the name

    def __init__(self, name: str):
        self.name = name
        self.counter = 0
        self._parent: StatisticGroupBase[ST] | None = None

    @property
    def parent(self) -> StatisticGroupBase[ST] | None:
        return self._parent

    @parent.setter
    def parent(self, value: StatisticGroupBase[ST]):
        if self._parent is not None:
            raise StatisticsError(
                f"Parent of statistic {self.name!r} was already set and cannot be changed")
        self._parent = value

    def update(self, source: ST) -> bool:
        """Returns True (and increments the counter) if ``source`` matched"""
        matched = self._matches(source)
        if matched:
            self.counter += 1
        return matched

    def _matches(self, source: ST) -> bool:
        raise NotImplementedError

    def ancestry(self) -> list[TestStatisticBase[ST]]:
        """From the root group down to (and including) ``self``"""
        chain = []
        stat = self
        while stat is not None:
            chain.append(stat)
            stat = stat.parent
        return chain[::-1]

    def path(self) -> str:
        return '=>'.join(f'[{s.name}]' for s in self.ancestry())

    def is_path_match(self, *names: str, starts_with: bool = False) -> bool:
        """Whether the names on the path from the root are ``names``.
        With ``starts_with``, ``names`` only has to be a prefix of the path."""
        if not names:
            return False
        chain = self.ancestry()
        if len(chain) < len(names) or (len(chain) != len(names) and not starts_with):
            return False
        return all(s.name == name for s, name in zip(chain, names))

    def find_parent(self, is_match: Callable[[StatisticGroupBase[ST]], bool]):
        parent = self.parent
        while parent is not None:
            if is_match(parent):
                return parent
            parent = parent.parent
        return None

    def __repr__(self):
        return f'{type(self).__name__}({self.path()}, counter={self.counter})'


class TestStatistic(TestStatisticBase[ST]):
    def __init__(self, name: str, predicate: Callable[[ST], bool]):
        super().__init__(name)
        self.predicate = predicate

    def _matches(self, source: ST) -> bool:
        return bool(self.predicate(source))


class StatisticGroupBase(TestStatisticBase[ST]):
    def __init__(self, name: str, children: Iterable[TestStatisticBase[ST]] = (),
                 filter_out: Callable[[TestStatisticBase[ST]], bool] | None = None):
        super().__init__(name)
        self.filter_out = filter_out
        self.children: list[TestStatisticBase[ST]] = []
        for c in children:
            self.add_child(c)

    def add_child(self, child: TestStatisticBase[ST]):
        if self.filter_out is not None and self.filter_out(child):
            return
        child.parent = self
        self.children.append(child)


class NonExclusiveStatisticGroup(StatisticGroupBase[ST]):
    def _matches(self, source: ST) -> bool:
        # Don't short-circuit, every child must get to count it
        return any([c.update(source) for c in self.children])


class ExclusiveStatisticGroup(StatisticGroupBase[ST]):
    def _matches(self, source: ST) -> bool:
        matched: TestStatisticBase[ST] | None = None
        for c in self.children:
            if not c.update(source):
                continue
            if matched is not None:
                raise StatisticsError(
                    f"Group {self.name!r} matched source {type(source).__qualname__!r}"
                    f" using both {matched.name!r} and {c.name!r}."
                    f" At most one child statistic should match.")
            matched = c
        return matched is not None


class TestStatistics(Generic[ST]):
    __test__ = False

    def __init__(self, name: str, statistics: Iterable[TestStatisticBase[ST]]):
        self.name = name
        self.counter = 0
        self.statistics = list(statistics)

    def update(self, source: ST):
        self.counter += 1
        for s in self.statistics:
            s.update(source)

    def walk(self) -> Iterator[TestStatisticBase[ST]]:
        """All statistics, depth first, parents before children.
        Stop early by just not consuming the rest of the iterator."""
        stack = list(reversed(self.statistics))
        while stack:
            stat = stack.pop()
            yield stat
            if isinstance(stat, StatisticGroupBase):
                stack.extend(reversed(stat.children))

    def find(self, *names: str) -> TestStatisticBase[ST] | None:
        return next((s for s in self.walk() if s.is_path_match(*names)), None)

    def format(self) -> str:
        lines = [f'{self.name}: {self.counter}']
        for s in self.walk():
            indent = '  ' * len(s.ancestry())
            lines.append(f'{indent}{s.name}: {s.counter}')
        return '\n'.join(lines)


class MemberStatisticsCollector:
    """Use as the ``on_member_done`` hook:
    ``ValidationOptions(on_member_done=MemberStatisticsCollector(stats))``"""
    def __init__(self, statistics: TestStatistics[ValidatedMember]):
        self.statistics = statistics

    def __call__(self, member: ValidatedMember):
        self.statistics.update(member)
