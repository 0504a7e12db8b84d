import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path

from common import CommonTestCase
from structeq.errors import SimulationError
from structeq.simulation import (ProbabilityBasedRandomNumberGenerator,
                                 RandomNumberGenerator,
                                 SimulationRandomNumberGenerator,
                                 random_numbers_range, simulation_file_path)


class TestRandomNumberGenerator(CommonTestCase):
    def test_range_inclusive(self):
        rng = RandomNumberGenerator.with_seed(1)
        seen = {rng.next_between(3, 5) for _ in range(300)}
        self.assertEqual({3, 4, 5}, seen)

    def test_next(self):
        rng = RandomNumberGenerator.with_random_seed()
        for _ in range(100):
            self.assertBetweenIncl(0, 4, rng.next(4))

    def test_single_value(self):
        self.assertEqual(7, RandomNumberGenerator.with_null_seed().next_between(7, 7))

    def test_invalid(self):
        rng = RandomNumberGenerator.with_seed(1)
        with self.assertRaises(ValueError):
            rng.next_between(-1, 3)
        with self.assertRaises(ValueError):
            rng.next_between(5, 4)

    def test_seeds(self):
        self.assertEqual(42, RandomNumberGenerator.with_seed(42).seed)
        self.assertIsNone(RandomNumberGenerator.with_null_seed().seed)
        self.assertIsNotNone(RandomNumberGenerator.with_random_seed().seed)

    def test_same_seed_same_numbers(self):
        a, b = RandomNumberGenerator.with_seed(5), RandomNumberGenerator.with_seed(5)
        self.assertEqual([a.next(1000) for _ in range(20)],
                         [b.next(1000) for _ in range(20)])


class TestRandomNumbersRange(unittest.TestCase):
    def test_range(self):
        self.assertEqual([2, 3, 4], random_numbers_range(2, 4))
        self.assertEqual([0], random_numbers_range(0, 0))

    def test_invalid(self):
        with self.assertRaises(ValueError):
            random_numbers_range(-1, 2)
        with self.assertRaises(ValueError):
            random_numbers_range(3, 2)


class TestSimulationRandomNumberGenerator(CommonTestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)

    def _make(self, seed=None):
        if seed is None:
            return SimulationRandomNumberGenerator.with_random_seed(lambda: self.dir)
        return SimulationRandomNumberGenerator.with_seed(seed, lambda: self.dir)

    def test_save_and_replay(self):
        rng = self._make(11)
        rng.on_iteration_starting('sim', '3', False)
        numbers = [rng.next_between(0, 100) for _ in range(10)]
        path = rng.save_random_numbers()
        self.assertEqual(simulation_file_path(self.dir, 'sim'), path)
        self.assertEqual('SimulationData_sim.xml', path.name)

        replay = self._make()
        replay.on_iteration_starting('sim', '3', True)
        self.assertEqual(numbers, [replay.next_between(0, 100) for _ in range(10)])

    def test_file_format(self):
        rng = self._make(5)
        rng.on_iteration_starting('sim', 'it1', False)
        rng.next(9)
        rng.next(9)
        root = ET.parse(rng.save_random_numbers()).getroot()
        self.assertEqual('Simulation', root.tag)
        self.assertEqual('sim', root.get('SimulationIdentifier'))
        it = root.find('SimulationIteration')
        self.assertEqual('it1', it.get('SimulationIterationIdentifier'))
        self.assertEqual('5', it.get('RandomNumberSeed'))
        values = it.find('RandomNumbers').get('Values')
        self.assertEqual(rng.generated_numbers, [int(v) for v in values.split(',')])

    def test_replay_exhausted(self):
        rng = self._make(1)
        rng.on_iteration_starting('sim', '1', False)
        rng.next(5)
        rng.save_random_numbers()
        rng.on_iteration_starting('sim', '1', True)
        rng.next(5)
        with self.assertRaises(SimulationError):
            rng.next(5)

    def test_replay_out_of_range(self):
        (self.dir / 'SimulationData_sim.xml').write_text(
            '<Simulation SimulationIdentifier="sim">'
            '<SimulationIteration SimulationIterationIdentifier="1" RandomNumberSeed="">'
            '<RandomNumbers Values="50" /></SimulationIteration></Simulation>')
        rng = self._make()
        rng.on_iteration_starting('sim', '1', True)
        with self.assertRaises(SimulationError):
            rng.next_between(0, 10)

    def test_missing_file(self):
        rng = self._make()
        with self.assertRaises(SimulationError):
            rng.on_iteration_starting('nope', '1', True)

    def test_unknown_iteration(self):
        rng = self._make(2)
        rng.on_iteration_starting('sim', '1', False)
        rng.next(3)
        rng.save_random_numbers()
        with self.assertRaises(SimulationError):
            self._make().on_iteration_starting('sim', '2', True)

    def test_malformed_numbers(self):
        (self.dir / 'SimulationData_sim.xml').write_text(
            '<Simulation SimulationIdentifier="sim">'
            '<SimulationIteration SimulationIterationIdentifier="1">'
            '<RandomNumbers Values="1,x" /></SimulationIteration></Simulation>')
        with self.assertLogs('structeq.simulation', 'ERROR'):
            with self.assertRaises(SimulationError):
                self._make().on_iteration_starting('sim', '1', True)

    def test_blank_ids(self):
        rng = self._make()
        with self.assertRaises(ValueError):
            rng.on_iteration_starting(' ', '1', False)
        with self.assertRaises(ValueError):
            rng.on_iteration_starting('sim', '', False)

    def test_save_before_start(self):
        with self.assertRaises(SimulationError):
            self._make().save_random_numbers()

    def test_new_iteration_clears_numbers(self):
        rng = self._make(3)
        rng.on_iteration_starting('sim', '1', False)
        rng.next(3)
        rng.on_iteration_starting('sim', '2', False)
        self.assertEqual([], rng.generated_numbers)


class TestProbabilityBasedRandomNumberGenerator(CommonTestCase):
    def test_distribution(self):
        gen = ProbabilityBasedRandomNumberGenerator(RandomNumberGenerator.with_seed(3), 100)
        gen.add_numbers_for_probability(90, [1])
        gen.add_numbers([2, 3])
        results = [gen.get_random_number() for _ in range(2000)]
        self.assertEqual({1, 2, 3}, set(results))
        self.assertBetweenIncl(1600, 1900, results.count(1))

    def test_single_bucket(self):
        gen = ProbabilityBasedRandomNumberGenerator(RandomNumberGenerator.with_seed(3), 10)
        gen.add_numbers([4, 5])
        self.assertEqual({4, 5}, {gen.get_random_number() for _ in range(200)})

    def test_incomplete(self):
        gen = ProbabilityBasedRandomNumberGenerator(RandomNumberGenerator.with_seed(3), 100)
        gen.add_numbers_for_probability(50, [1])
        with self.assertRaises(SimulationError):
            gen.get_random_number()

    def test_too_much(self):
        gen = ProbabilityBasedRandomNumberGenerator(RandomNumberGenerator.with_seed(3), 100)
        gen.add_numbers_for_probability(60, [1])
        with self.assertRaises(ValueError):
            gen.add_numbers_for_probability(50, [2])
        gen.add_numbers([2])
        self.assertEqual(100, gen.cumulative_probability)
        with self.assertRaises(ValueError):
            gen.add_numbers([3])


if __name__ == '__main__':
    unittest.main()
