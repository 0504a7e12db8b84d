"""Random numbers for simulation-style tests that can be replayed.

``SimulationRandomNumberGenerator`` remembers the numbers it handed out
during a simulation iteration and can save them to an XML file, so that a
failing iteration can be re-run with exactly the same numbers::

    <Simulation SimulationIdentifier="TestFoo_test_bar">
        <SimulationIteration SimulationIterationIdentifier="7" RandomNumberSeed="42">
            <RandomNumbers Values="3,1,4,1,5" />
        </SimulationIteration>
    </Simulation>
"""
from __future__ import annotations

import logging
import os
import random
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Iterable, NamedTuple

from .errors import SimulationError

__all__ = [
    'RandomNumberGenerator', 'SimulationRandomNumberGenerator',
    'ProbabilityBasedRandomNumberGenerator', 'random_numbers_range',
    'simulation_file_path',
]

logger = logging.getLogger(__name__)

_MAX_SEED = 2 ** 31 - 1


def random_numbers_range(min_value: int, max_value: int) -> list[int]:
    """All ints from ``min_value`` to ``max_value`` (both inclusive)"""
    if min_value < 0:
        raise ValueError("min_value can't be negative")
    if max_value < min_value:
        raise ValueError("max_value can't be less than min_value")
    return list(range(min_value, max_value + 1))


class RandomNumberGenerator:
    def __init__(self, rng: random.Random, seed: int | None):
        self._rng = rng
        self.seed = seed

    def next(self, max_value: int) -> int:
        return self.next_between(0, max_value)

    def next_between(self, min_value: int, max_value: int) -> int:
        """Random int in [min_value, max_value] (both inclusive)"""
        if min_value < 0 or max_value < min_value:
            raise ValueError(f"Invalid range [{min_value}, {max_value}]")
        return self._rng.randint(min_value, max_value)

    @classmethod
    def with_null_seed(cls, *args, **kwargs):
        return cls(random.Random(), None, *args, **kwargs)

    @classmethod
    def with_seed(cls, seed: int, *args, **kwargs):
        return cls(random.Random(seed), seed, *args, **kwargs)

    @classmethod
    def with_random_seed(cls, *args, **kwargs):
        seed = random.Random().randint(0, _MAX_SEED)
        return cls(random.Random(seed), seed, *args, **kwargs)


def simulation_file_path(directory: str | os.PathLike, simulation_id: str) -> Path:
    return Path(directory) / f'SimulationData_{simulation_id}.xml'


class SimulationRandomNumberGenerator(RandomNumberGenerator):
    def __init__(self, rng: random.Random, seed: int | None,
                 get_directory: Callable[[], str | os.PathLike]):
        super().__init__(rng, seed)
        self.get_directory = get_directory
        self._lock = threading.Lock()
        self._numbers: list[int] = []
        self._replay_idx = 0
        self._reuse_saved = False
        self.simulation_id: str | None = None
        self.iteration_id: str | None = None

    def next_between(self, min_value: int, max_value: int) -> int:
        with self._lock:
            if not self._reuse_saved:
                number = super().next_between(min_value, max_value)
                self._numbers.append(number)
                return number
            if self._replay_idx >= len(self._numbers):
                raise SimulationError(
                    "Too many calls to next() when replaying saved random numbers")
            number = self._numbers[self._replay_idx]
            if not min_value <= number <= max_value:
                raise SimulationError(
                    f"The saved random number is not between {min_value} and"
                    f" {max_value}. The value is {number}.")
            self._replay_idx += 1
            return number

    @property
    def generated_numbers(self) -> list[int]:
        return list(self._numbers)

    def on_iteration_starting(self, simulation_id: str, iteration_id: str,
                              reuse_saved: bool):
        """Must be called before each simulation iteration.

        With ``reuse_saved``, the numbers saved for that iteration are
        handed out again (in the same order) instead of new ones."""
        if not simulation_id or simulation_id.isspace():
            raise ValueError("simulation_id must not be empty")
        if not iteration_id or iteration_id.isspace():
            raise ValueError("iteration_id must not be empty")
        with self._lock:
            self.simulation_id = simulation_id.strip()
            self.iteration_id = iteration_id.strip()
            self._reuse_saved = reuse_saved
            self._numbers = []
            self._replay_idx = 0
            if reuse_saved:
                self._numbers = self._load_numbers(self._file_path())

    def _file_path(self) -> Path:
        return simulation_file_path(self.get_directory(), self.simulation_id)

    def _load_numbers(self, path: Path) -> list[int]:
        if not path.exists():
            raise SimulationError(f"File '{path}' does not exist.")
        try:
            numbers = self._parse_numbers(ET.parse(path).getroot())
        except (ET.ParseError, ValueError) as e:
            logger.error('Failed to read simulation file %s: %s', path, e)
            raise SimulationError(
                f"Failed to load simulation data for simulation {self.simulation_id!r}"
                f" and iteration {self.iteration_id!r} from file '{path}'.") from e
        if not numbers:
            raise SimulationError(
                f"Failed to find random numbers for simulation {self.simulation_id!r}"
                f" and iteration {self.iteration_id!r} in '{path}'.")
        return numbers

    def _parse_numbers(self, root: ET.Element) -> list[int]:
        simulations = [root] if root.tag == 'Simulation' else root.iter('Simulation')
        for sim in simulations:
            if sim.get('SimulationIdentifier', '').lower() != self.simulation_id.lower():
                continue
            for it in sim.iter('SimulationIteration'):
                if (it.get('SimulationIterationIdentifier', '').lower()
                        != self.iteration_id.lower()):
                    continue
                numbers_el = it.find('RandomNumbers')
                if numbers_el is None or numbers_el.get('Values') is None:
                    return []
                return _parse_values(numbers_el.get('Values'))
        return []

    def save_random_numbers(self, path: str | os.PathLike | None = None) -> Path:
        """Saves the numbers of the current iteration, overwriting the file."""
        if self.simulation_id is None or self.iteration_id is None:
            raise SimulationError(
                "save_random_numbers() can only be called after on_iteration_starting()")
        path = Path(path) if path is not None else self._file_path()
        with self._lock:
            root = ET.Element('Simulation', SimulationIdentifier=self.simulation_id)
            it = ET.SubElement(root, 'SimulationIteration', {
                'SimulationIterationIdentifier': self.iteration_id,
                'RandomNumberSeed': '' if self.seed is None else str(self.seed),
            })
            ET.SubElement(it, 'RandomNumbers', Values=','.join(map(str, self._numbers)))
            ET.indent(root, space='    ')
            try:
                ET.ElementTree(root).write(path, encoding='utf-8', xml_declaration=True)
            except OSError as e:
                logger.error('Failed to write simulation file %s: %s', path, e)
                raise SimulationError(
                    f"Failed to save the simulation data to file '{path}' for simulation"
                    f" {self.simulation_id!r} and iteration {self.iteration_id!r}.") from e
        return path


def _parse_values(values: str) -> list[int]:
    if not values.strip():
        return []
    try:
        return [int(v) for v in values.split(',')]
    except ValueError as e:
        raise ValueError(f"Could not parse random numbers {values!r}") from e


class _ProbabilityData(NamedTuple):
    probability: int
    candidates: list[int]


class ProbabilityBasedRandomNumberGenerator:
    """Picks one of several candidate lists according to their probability,
    then a random value from that list.

    ``value_for_100_percent`` sets the resolution: with 1000, a probability
    of 1 means 0.1%; with 100 it means 1%."""

    def __init__(self, rng: RandomNumberGenerator, value_for_100_percent: int):
        self.rng = rng
        self.value_for_100_percent = value_for_100_percent
        self.cumulative_probability = 0
        self._data: list[_ProbabilityData] = []

    def add_numbers_for_probability(self, probability: int, candidates: Iterable[int]):
        new_total = self.cumulative_probability + probability
        if new_total > self.value_for_100_percent:
            raise ValueError(f"Sum of probabilities can't be bigger than"
                             f" {self.value_for_100_percent}")
        candidates = list(candidates)
        if not candidates:
            raise ValueError("candidates must not be empty")
        self.cumulative_probability = new_total
        self._data.append(_ProbabilityData(probability, candidates))

    def add_numbers(self, candidates: Iterable[int]):
        """Give ``candidates`` all of the remaining probability"""
        if self.cumulative_probability == self.value_for_100_percent:
            raise ValueError(f"Cumulative probability is already"
                             f" {self.value_for_100_percent}")
        self.add_numbers_for_probability(
            self.value_for_100_percent - self.cumulative_probability, candidates)

    def get_random_number(self) -> int:
        if self.cumulative_probability != self.value_for_100_percent:
            raise SimulationError(
                f"Total cumulative probability is less than {self.value_for_100_percent}."
                f" Call add_numbers_for_probability() to set up the probabilities.")
        roll = self.rng.next(self.value_for_100_percent)
        chosen = self._data[-1]  # Also gets roll == value_for_100_percent
        start = 0
        for data in self._data[:-1]:
            if start <= roll < start + data.probability:
                chosen = data
                break
            start += data.probability
        return chosen.candidates[self.rng.next(len(chosen.candidates) - 1)]
