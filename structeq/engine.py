from __future__ import annotations

import logging
from typing import Sequence

from .display import render
from .errors import (MismatchError, MismatchKind, MismatchReport,
                     mismatch_error_for)
from .introspect import MISSING, Introspector
from .options import ValidationOptions
from .traversal import Traversal, ValidatedMember

__all__ = ['EqualityEngine', 'validate', 'assert_equal', 'is_null']

logger = logging.getLogger(__name__)


def is_null(o: object):
    return o is None or o is MISSING


class EqualityEngine:
    """Compares two object graphs, stopping at the first difference.

    A new engine (and with it a new identity registry and dedup set) must
    be used for each comparison; ``validate`` does this for you."""

    def __init__(self, options: ValidationOptions | None = None):
        self.options = options = options if options is not None else ValidationOptions()
        self.introspector = Introspector(
            options.ignore, options.include_properties, options.primitive_types)
        self.traversal = Traversal(
            self.introspector, self._check_lengths, options.max_iterations)
        self._used = False

    def run(self, expected: object, actual: object) -> None:
        """Raises a MismatchError subclass if the graphs are different."""
        if self._used:
            raise RuntimeError("EqualityEngine instances can only be used once")
        self._used = True
        self.traversal.root_label = type(actual if is_null(expected) else expected).__qualname__
        logger.debug('Validating %s against %s', type(expected).__qualname__,
                     type(actual).__qualname__)
        try:
            if self._check_pair(expected, actual, None):
                self.traversal.start(expected, actual)
                self._walk()
        except MismatchError as e:
            logger.info('Validation failed. %s', e.report.format())
            raise
        logger.debug('Objects are equal (%d frame operations, max depth %d)',
                     self.traversal.n_ops, self.traversal.max_depth)

    def validate(self, expected: object, actual: object) -> MismatchReport | None:
        try:
            self.run(expected, actual)
        except MismatchError as e:
            return e.report
        return None

    def _walk(self):
        on_start = self.options.on_member_start
        on_done = self.options.on_member_done
        for step in self.traversal.steps():
            if on_start is not None:
                on_start(step)
            try:
                self._validate_step(step)
            finally:
                if on_done is not None:
                    on_done(step)

    def _validate_step(self, step: ValidatedMember):
        e, a = step.expected_value, step.actual_value
        if self._check_pair(e, a, step):
            self.traversal.push_if_new(step.member, e, a)

    def _check_pair(self, e: object, a: object, step: ValidatedMember | None) -> bool:
        """Returns True if the pair is composite so must be walked into"""
        if is_null(e) or is_null(a):
            if is_null(e) and is_null(a):
                return False
            self._fail(MismatchKind.NULL, e, a, self._null_message(e, step))
        if e is a:
            return False
        if type(e) is not type(a):
            self._fail(MismatchKind.TYPE, e, a, (
                f'Expected type {_type_name(e)!r} is different from'
                f' actual type {_type_name(a)!r}'))
        if self.introspector.is_primitive(type(e)):
            if e != a:
                name = 'the root objects' if step is None else f'member {step.member.name!r}'
                self._fail(MismatchKind.VALUE, e, a,
                           f'Expected and actual values are different for {name}')
            return False
        return True

    @classmethod
    def _null_message(cls, e: object, step: ValidatedMember | None):
        non_null, null = ('expected', 'actual') if not is_null(e) else ('actual', 'expected')
        what = 'value' if step is None else f'value of member {step.member.name!r}'
        return f"The {what} is not null in the {non_null} object but is null in the {null} object"

    def _check_lengths(self, expected: object, actual: object,
                       expected_items: Sequence, actual_items: Sequence):
        if len(expected_items) != len(actual_items):
            self._fail(MismatchKind.LENGTH, expected, actual, (
                f'Number of items is different (expected {len(expected_items)}'
                f', got {len(actual_items)})'))

    def _fail(self, kind: MismatchKind, e: object, a: object, message: str):
        if self.options.on_mismatch is not None:
            self.options.on_mismatch(e, a)
        max_len = self.options.max_display_length
        raise mismatch_error_for(MismatchReport(
            self.traversal.path(),
            kind, render(e, max_len), render(a, max_len), message))


def _type_name(o: object):
    tp = type(o)
    if tp.__module__ == 'builtins':
        return tp.__qualname__
    return f'{tp.__module__}.{tp.__qualname__}'


def validate(expected: object, actual: object, options: ValidationOptions | None = None,
             **overrides) -> MismatchReport | None:
    """Returns None if equal, otherwise the report of the first difference.
    This doesn't enforce ``timeout_ms``, use ``structeq.harness`` for that."""
    return EqualityEngine(ValidationOptions.resolve(options, **overrides)).validate(
        expected, actual)


def assert_equal(expected: object, actual: object, options: ValidationOptions | None = None,
                 **overrides) -> None:
    EqualityEngine(ValidationOptions.resolve(options, **overrides)).run(expected, actual)
