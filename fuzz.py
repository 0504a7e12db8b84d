import time
from dataclasses import dataclass, field

from pythonfuzz.fuzzer import Fuzzer
import pythonfuzz.fuzzer as fuzzer_ns  # For patching pythonfuzz

from structeq import validate


class UsePerfCounterInsteadOfTime:
    """Hack to avoid overwriting everyone's time module so we only
    overwrite `pythonfuzz`'s time module and don't modify the module itself.
    This hack is necessary because time.time() is rather inaccurate so
    it is possible that between 2 iterations, the difference in time.time() is 0
    which results in DivisionByZeroError (when calculating iterations/sec).
    Therefore, we replace with the more accurate time.perf_counter(),
    just for `pythonfuzz`"""
    def __getattr__(self, item):
        if item == 'time':  # time.time
            item = 'perf_counter'
        return getattr(time, item)


fuzzer_ns.time = UsePerfCounterInsteadOfTime()


@dataclass(eq=False)
class FuzzNode:
    tag: int
    items: list = field(default_factory=list)
    link: 'FuzzNode | None' = None


def build_graph(buf: bytes):
    """Interpret the bytes as instructions that build a (possibly cyclic)
    graph. The same bytes always give the same shape of graph."""
    nodes = [FuzzNode(0)]
    for i in range(0, len(buf) - 1, 2):
        op, arg = buf[i] % 6, buf[i + 1]
        target = nodes[arg % len(nodes)]
        if op == 0:
            nodes.append(FuzzNode(arg))
            target.items.append(nodes[-1])
        elif op == 1:
            target.link = nodes[(arg // 7) % len(nodes)]  # Can make cycles
        elif op == 2:
            target.items.append(arg)
        elif op == 3:
            target.items.append({arg: nodes[(arg // 3) % len(nodes)], 'k': str(arg)})
        elif op == 4:
            target.items.append(frozenset({arg, arg // 2, str(arg)}))
        else:
            target.items.append((arg, None, [arg] * (arg % 4)))
    return nodes[0]


def fuzz(buf):
    a = build_graph(buf)
    if validate(a, a) is not None:
        raise AssertionError("Graph isn't equal to itself")
    if validate(a, build_graph(buf)) is not None:
        raise AssertionError("Graph isn't equal to an identically built graph")
    if buf:
        changed = buf[:-1] + bytes([(buf[-1] + 1) % 256])
        r1 = validate(a, build_graph(changed))
        r2 = validate(a, build_graph(changed))
        if r1 != r2:
            raise AssertionError(f'Reports are different:\n{r1}\n\n{r2}')


if __name__ == '__main__':
    import argparse
    ap = argparse.ArgumentParser("fuzz.py", description="Runs a fuzzer for n iterations")
    # Use type=float as gh mobile cannot specify integers as workflow args
    ap.add_argument('-n', '--iterations', default=-1,
                    type=float, help="Number of iterations to run pythonfuzz for")
    ap.add_argument('-i', '--infinite',
                    action='store_const', const=-1, dest='iterations')
    args = ap.parse_args()

    fuzzer = Fuzzer(fuzz, dirs=['./pythonfuzz_corpus'], timeout=30, runs=int(args.iterations))
    fuzzer.start()
