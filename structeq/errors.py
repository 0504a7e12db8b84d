from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    'MismatchKind', 'MismatchReport', 'StructEqError', 'MismatchError',
    'NullMismatch', 'TypeMismatch', 'LengthMismatch', 'ValueMismatch',
    'ValidationTimeout', 'FatalIterationCeilingExceeded',
    'SimulationError', 'StatisticsError', 'mismatch_error_for',
]


class MismatchKind(Enum):
    NULL = 'NullMismatch'
    TYPE = 'TypeMismatch'
    LENGTH = 'LengthMismatch'
    VALUE = 'ValueMismatch'


@dataclass(frozen=True)
class MismatchReport:
    path: str
    kind: MismatchKind
    expected_text: str
    actual_text: str
    message: str = ''

    def format(self) -> str:
        head = f'{self.kind.value} at {self.path}'
        if self.message:
            head += f': {self.message}'
        return (f'{head}\n'
                f'Expected value is:\n'
                f"'{self.expected_text}'\n"
                f'Actual value is:\n'
                f"'{self.actual_text}'")

    def __str__(self):
        return self.format()


class StructEqError(Exception):
    pass


class MismatchError(StructEqError, AssertionError):
    kind: MismatchKind

    def __init__(self, report: MismatchReport):
        super().__init__(report.format())
        self.report = report

    # Needed so these survive pickling (e.g. to a subprocess test runner)
    def __reduce__(self):
        return type(self), (self.report,)


class NullMismatch(MismatchError):
    kind = MismatchKind.NULL


class TypeMismatch(MismatchError):
    kind = MismatchKind.TYPE


class LengthMismatch(MismatchError):
    kind = MismatchKind.LENGTH


class ValueMismatch(MismatchError):
    kind = MismatchKind.VALUE


_ERROR_FOR_KIND: dict[MismatchKind, type[MismatchError]] = {
    MismatchKind.NULL: NullMismatch,
    MismatchKind.TYPE: TypeMismatch,
    MismatchKind.LENGTH: LengthMismatch,
    MismatchKind.VALUE: ValueMismatch,
}


def mismatch_error_for(report: MismatchReport) -> MismatchError:
    return _ERROR_FOR_KIND[report.kind](report)


class ValidationTimeout(StructEqError, TimeoutError):
    def __init__(self, timeout_ms: float, identifier: str | None = None,
                 task_name: str = 'validate'):
        msg = f"Task {task_name} was cancelled after {timeout_ms:g} milliseconds."
        if identifier is not None:
            msg += f' Id={identifier}.'
        super().__init__(msg)
        self.timeout_ms = timeout_ms
        self.identifier = identifier
        self.task_name = task_name

    def __reduce__(self):
        return type(self), (self.timeout_ms, self.identifier, self.task_name)


class FatalIterationCeilingExceeded(StructEqError, RuntimeError):
    """The traversal did more than ``max_iterations`` frame operations.
    This means a bug (e.g. in the dedup logic or an ignore predicate),
    not that the graphs differ."""
    def __init__(self, max_iterations: int):
        super().__init__(f'Traversal exceeded {max_iterations} frame operations')
        self.max_iterations = max_iterations

    def __reduce__(self):
        return type(self), (self.max_iterations,)


class SimulationError(StructEqError):
    ...


class StatisticsError(StructEqError):
    ...
