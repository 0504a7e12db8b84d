from __future__ import annotations

import contextlib
import time
import unittest

from unittest.util import safe_repr


class TestCaseUtils(unittest.TestCase):
    def assertBetweenIncl(self, lo, hi, value, msg=None):
        """Just like self.assertTrue(lo <= value <= hi), but with a nicer default message."""
        if lo <= value <= hi:
            return
        standard_msg = (f'{safe_repr(value)} is not between'
                        f' {safe_repr(lo)} and {safe_repr(hi)}')
        self.fail(self._formatMessage(msg, standard_msg))

    @contextlib.contextmanager
    def assertFinishesWithin(self, max_sec: float, msg=None):
        start = time.perf_counter()
        yield
        self.assertBetweenIncl(0.0, max_sec, time.perf_counter() - start, msg)
