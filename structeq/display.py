"""Single-line rendering of values for mismatch reports.

Like the builtin ``repr`` but safe for circular structures and it stops
as soon as the output is longer than ``max_len`` so that rendering a
huge graph costs no more than rendering its first few hundred chars."""
from __future__ import annotations

import dataclasses
import enum
from typing import Sequence

from .introspect import Introspector

__all__ = ['ValueFormatter', 'render', 'truncate', 'TRUNCATION_MARKER']

TRUNCATION_MARKER = ' ...'


def render(o: object, max_len: int | None = None) -> str:
    """Strings are shown as they are (not repr-ed), everything else is
    formatted. The result is truncated to ``max_len`` chars."""
    if isinstance(o, str):
        return truncate(o, max_len)
    return truncate(ValueFormatter(max_len).format(o), max_len)


def truncate(s: str, max_len: int | None) -> str:
    if max_len is None or len(s) <= max_len:
        return s
    return s[:max_len] + TRUNCATION_MARKER


class _LimitReached(Exception):
    ...


class ValueFormatter:
    def __init__(self, max_len: int | None = None):
        self.max_len = max_len
        self._parts: list[str] = []
        self._len = 0
        self._stack: list[int] = []  # ids of containers being formatted
        self._introspector = Introspector()

    def format(self, o: object) -> str:
        self._parts = []
        self._len = 0
        self._stack = []
        try:
            self._fmt(o)
        except _LimitReached:
            pass  # Output will be truncated anyway
        return ''.join(self._parts)

    def _write(self, *args: str):
        for s in args:
            self._parts.append(s)
            self._len += len(s)
        # Go one over so that the caller can still tell that it was truncated
        if self.max_len is not None and self._len > self.max_len:
            raise _LimitReached

    def _fmt(self, o: object):
        if id(o) in self._stack:
            n_up = len(self._stack) - self._stack.index(id(o))
            return self._write(f'<Circular: {n_up} up>')
        self._stack.append(id(o))
        try:
            self._fmt_inner(o)
        finally:
            self._stack.pop()

    def _fmt_inner(self, o: object):
        if isinstance(o, enum.Enum):
            return self._write(f'{type(o).__name__}.{o.name}')
        if isinstance(o, list):
            return self._fmt_seq(o, '[', ']')
        if isinstance(o, tuple):
            return self._fmt_seq(o, '(', ')', trailing_comma_if_unitary=True)
        if isinstance(o, (set, frozenset)):
            start, end = ('{', '}') if type(o) is set else ('frozenset({', '})')
            if len(o) == 0:
                return self._write(f'{type(o).__name__}()')
            return self._fmt_seq(sorted(o, key=self._introspector.sort_key), start, end)
        if isinstance(o, dict):
            return self._fmt_dict(o)
        # is_dataclass returns True for the class itself so check for that
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return self._fmt_dataclass(o)
        return self._write(repr(o))

    def _fmt_seq(self, items: Sequence[object], start: str, end: str,
                 trailing_comma_if_unitary=False):
        self._write(start)
        for i, v in enumerate(items):
            if i != 0:
                self._write(', ')
            self._fmt(v)
        if trailing_comma_if_unitary and len(items) == 1:
            self._write(',')
        self._write(end)

    def _fmt_dict(self, d: dict):
        self._write('{')
        for i, (k, v) in enumerate(d.items()):
            if i != 0:
                self._write(', ')
            self._fmt(k)
            self._write(': ')
            self._fmt(v)
        self._write('}')

    def _fmt_dataclass(self, o: object):
        self._write(f'{type(o).__name__}(')
        fields = [f for f in dataclasses.fields(o) if f.repr]
        for i, f in enumerate(fields):
            if i != 0:
                self._write(', ')
            self._write(f'{f.name}=')
            self._fmt(getattr(o, f.name))
        self._write(')')
