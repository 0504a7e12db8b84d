import unittest

from common import Root
from structeq import ValidationOptions, validate
from structeq.errors import StatisticsError
from structeq.introspect import MemberKind
from structeq.statistics import (ExclusiveStatisticGroup, MemberStatisticsCollector,
                                 NonExclusiveStatisticGroup, TestStatistic,
                                 TestStatistics)


def _is_even(n):
    return n % 2 == 0


def _is_small(n):
    return n < 10


class TestStatisticCounters(unittest.TestCase):
    def test_leaf(self):
        s = TestStatistic('even', _is_even)
        self.assertTrue(s.update(2))
        self.assertFalse(s.update(3))
        self.assertEqual(1, s.counter)

    def test_non_exclusive_updates_all(self):
        even, small = TestStatistic('even', _is_even), TestStatistic('small', _is_small)
        group = NonExclusiveStatisticGroup('numbers', [even, small])
        self.assertTrue(group.update(4))
        self.assertTrue(group.update(12))
        self.assertFalse(group.update(13))
        self.assertEqual((2, 2, 1), (group.counter, even.counter, small.counter))

    def test_exclusive(self):
        group = ExclusiveStatisticGroup('parity', [
            TestStatistic('even', _is_even),
            TestStatistic('odd', lambda n: not _is_even(n))])
        self.assertTrue(group.update(1))
        self.assertTrue(group.update(2))
        self.assertEqual(2, group.counter)

    def test_exclusive_two_matches(self):
        group = ExclusiveStatisticGroup('bad', [
            TestStatistic('even', _is_even), TestStatistic('small', _is_small)])
        with self.assertRaises(StatisticsError):
            group.update(2)

    def test_parent_set_once(self):
        s = TestStatistic('even', _is_even)
        NonExclusiveStatisticGroup('a', [s])
        with self.assertRaises(StatisticsError):
            NonExclusiveStatisticGroup('b', [s])

    def test_filter_out(self):
        group = NonExclusiveStatisticGroup(
            'g', [TestStatistic('keep', _is_even), TestStatistic('drop', _is_even)],
            filter_out=lambda s: s.name == 'drop')
        self.assertEqual(['keep'], [c.name for c in group.children])


class TestPaths(unittest.TestCase):
    def setUp(self):
        self.even = TestStatistic('even', _is_even)
        self.inner = NonExclusiveStatisticGroup('inner', [self.even])
        self.outer = NonExclusiveStatisticGroup('outer', [self.inner])
        self.stats = TestStatistics('all', [self.outer])

    def test_path(self):
        self.assertEqual('[outer]=>[inner]=>[even]', self.even.path())

    def test_is_path_match(self):
        self.assertTrue(self.even.is_path_match('outer', 'inner', 'even'))
        self.assertFalse(self.even.is_path_match('outer', 'inner'))
        self.assertTrue(self.even.is_path_match('outer', 'inner', starts_with=True))
        self.assertFalse(self.even.is_path_match('inner', 'even'))
        self.assertFalse(self.even.is_path_match())

    def test_find_parent(self):
        self.assertIs(self.outer, self.even.find_parent(lambda p: p.name == 'outer'))
        self.assertIsNone(self.even.find_parent(lambda p: p.name == 'nope'))

    def test_walk(self):
        self.assertEqual(['outer', 'inner', 'even'], [s.name for s in self.stats.walk()])

    def test_walk_early_stop(self):
        it = self.stats.walk()
        self.assertEqual('outer', next(it).name)

    def test_find(self):
        self.assertIs(self.even, self.stats.find('outer', 'inner', 'even'))
        self.assertIsNone(self.stats.find('even'))

    def test_format(self):
        self.stats.update(2)
        self.stats.update(3)
        self.assertEqual('all: 2\n  outer: 1\n    inner: 1\n      even: 1',
                         self.stats.format())


class TestMemberStatisticsCollector(unittest.TestCase):
    def test_counts_members(self):
        stats = TestStatistics('members', [ExclusiveStatisticGroup('kind', [
            TestStatistic('field', lambda m: m.member.kind is MemberKind.FIELD),
            TestStatistic('element', lambda m: m.member.is_elements),
        ])])
        opts = ValidationOptions(on_member_done=MemberStatisticsCollector(stats))
        self.assertIsNone(validate(Root('r', [1, 2, 3]), Root('r', [1, 2, 3]), opts))
        self.assertEqual(5, stats.counter)
        self.assertEqual(2, stats.find('kind', 'field').counter)
        self.assertEqual(3, stats.find('kind', 'element').counter)


if __name__ == '__main__':
    unittest.main()
