import pickle
import unittest

from structeq.errors import (LengthMismatch, MismatchKind, MismatchReport,
                             ValidationTimeout, mismatch_error_for)


class TestMismatchError(unittest.TestCase):
    def setUp(self):
        self.report = MismatchReport('Root.items', MismatchKind.LENGTH, '[1]', '[]',
                                     'Number of items is different')

    def test_error_for_kind(self):
        err = mismatch_error_for(self.report)
        self.assertIsInstance(err, LengthMismatch)
        self.assertIsInstance(err, AssertionError)
        self.assertIs(self.report, err.report)

    def test_pickle(self):
        err = pickle.loads(pickle.dumps(mismatch_error_for(self.report)))
        self.assertIsInstance(err, LengthMismatch)
        self.assertEqual(self.report, err.report)

    def test_format_without_message(self):
        r = MismatchReport('int', MismatchKind.VALUE, '1', '2')
        self.assertEqual("ValueMismatch at int\nExpected value is:\n'1'\n"
                         "Actual value is:\n'2'", r.format())


class TestValidationTimeout(unittest.TestCase):
    def test_message(self):
        self.assertEqual('Task validate was cancelled after 1500 milliseconds.',
                         str(ValidationTimeout(1500)))
        self.assertEqual('Task check was cancelled after 2.5 milliseconds. Id=abc.',
                         str(ValidationTimeout(2.5, 'abc', 'check')))

    def test_is_timeout_error(self):
        self.assertIsInstance(ValidationTimeout(1), TimeoutError)

    def test_pickle(self):
        err = pickle.loads(pickle.dumps(ValidationTimeout(10, 'x')))
        self.assertEqual('x', err.identifier)
        self.assertEqual(str(ValidationTimeout(10, 'x')), str(err))


if __name__ == '__main__':
    unittest.main()
