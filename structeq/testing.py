from __future__ import annotations

import logging
import unittest
from typing import Callable

from .engine import validate
from .errors import MismatchReport
from .harness import validate_with_timeout
from .options import ValidationOptions

__all__ = ['GraphAssertionsMixin']

logger = logging.getLogger(__name__)


class GraphAssertionsMixin(unittest.TestCase):
    """Structural-equality assertions for unittest test cases.
    Keyword arguments are passed on as ``ValidationOptions`` overrides."""

    def _validate_graphs(self, expected: object, actual: object,
                         options: ValidationOptions | None, overrides: dict):
        options = ValidationOptions.resolve(options, **overrides)
        if options.timeout_ms is not None:
            return validate_with_timeout(expected, actual, options, self.id)
        return validate(expected, actual, options)

    def assertGraphsEqual(self, expected: object, actual: object, msg: str | None = None,
                          options: ValidationOptions | None = None, **overrides):
        report = self._validate_graphs(expected, actual, options, overrides)
        if report is not None:
            self.fail(self._formatMessage(msg, report.format()))

    def assertGraphsNotEqual(self, expected: object, actual: object, msg: str | None = None,
                             options: ValidationOptions | None = None,
                             **overrides) -> MismatchReport:
        report = self._validate_graphs(expected, actual, options, overrides)
        if report is None:
            self.fail(self._formatMessage(msg, 'Object graphs are structurally equal'))
        return report

    def assertExceptionIsThrown(self, fn: Callable[[], object],
                                exc_type: type[BaseException] = Exception) -> BaseException:
        """Like ``assertRaises`` but the exception is also logged
        (so it's in the output even when the test passes)"""
        with self.assertRaises(exc_type) as cm:
            fn()
        logger.info('Expected exception was thrown: %r', cm.exception)
        return cm.exception
