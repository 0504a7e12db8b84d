import cProfile
import contextlib
import functools
import time
from dataclasses import dataclass, field
from typing import Callable

from structeq import ValidationOptions, validate

PROFILER = True


@dataclass(eq=False)
class Node:
    value: int
    children: list['Node'] = field(default_factory=list)
    next: 'Node | None' = None


def make_deep(n: int) -> Node:
    """Linked list of ``n`` nodes (via ``.next``)"""
    head = node = Node(0)
    for i in range(1, n):
        node.next = Node(i)
        node = node.next
    return head


def make_wide(n: int) -> Node:
    return Node(-1, [Node(i, [Node(i * 2)]) for i in range(n)])


def make_cyclic(n: int) -> Node:
    """Each node points at the next one and at the first one"""
    nodes = [Node(i) for i in range(n)]
    for i, nd in enumerate(nodes):
        nd.next = nodes[(i + 1) % n]
        nd.children.append(nodes[0])
    return nodes[0]


class _Timer:
    _start = _end = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._end = time.perf_counter()

    def get(self):
        return self._end - self._start


class PerfOnce:
    def __init__(self, name: str, make_graph: Callable[[], Node], idx: int = -1):
        self.name = name
        self.make_graph = make_graph
        self.graph = make_graph()
        self.idx = idx
        self.lines: list[tuple[float, str]] = []  # First item used as key
        self.n_steps = 0

    @classmethod
    def _fmt_time_taken(cls, name: str, delta_sec: float):
        return f'{name:<17} done in {delta_sec * 1000:.2f}ms'

    @classmethod
    def _maybe_profiler(cls):
        if PROFILER:
            return cProfile.Profile()
        return contextlib.nullcontext(None)

    def run(self):
        with self._maybe_profiler() as p:
            self.do_same()
            self.do_copy()
            self.do_mismatch()
        if p:
            p.dump_stats(f'perf_dump_{self.idx}.prof')
        print(f'Perf for {self.name} (idx={self.idx}, {PROFILER=}):')
        for _k, s in sorted(self.lines):
            print(f'  {s}')

    def _add_line(self, sort_key: float, name: str, delta_sec: float):
        self.lines.append((sort_key, self._fmt_time_taken(name, delta_sec)))

    def _count_step(self, _member):
        self.n_steps += 1

    def do_same(self):
        with _Timer() as t:
            report = validate(self.graph, self.graph)
        assert report is None
        self._add_line(0.0, 'Same object', t.get())

    def do_copy(self):
        other = self.make_graph()
        self.n_steps = 0
        with _Timer() as t:
            report = validate(self.graph, other, ValidationOptions(
                on_member_done=self._count_step))
        assert report is None
        self._add_line(1.0, f'Copy ({self.n_steps} steps)', t.get())

    def do_mismatch(self):
        other = self.make_graph()
        other.value = -2
        with _Timer() as t:
            report = validate(self.graph, other)
        assert report is not None
        self._add_line(2.0, 'Mismatch', t.get())


def run(name: str, make_graph: Callable[[], Node], idx: int = -1):
    return PerfOnce(name, make_graph, idx).run()


def main():
    run('deep', functools.partial(make_deep, 100_000), 0)
    run('wide', functools.partial(make_wide, 20_000), 1)
    run('cyclic', functools.partial(make_cyclic, 5_000), 2)


if __name__ == '__main__':
    main()
