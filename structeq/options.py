from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from .introspect import MemberDescriptor
    from .traversal import ValidatedMember

__all__ = ['ValidationOptions', 'DEFAULT_MAX_ITERATIONS', 'DEFAULT_MAX_DISPLAY_LENGTH']

DEFAULT_MAX_DISPLAY_LENGTH = 200
DEFAULT_MAX_ITERATIONS = 10_000_000

IgnoreFn = Callable[['MemberDescriptor'], bool]
MemberHookFn = Callable[['ValidatedMember'], Any]
MismatchHookFn = Callable[[object, object], Any]


@dataclass(frozen=True)
class ValidationOptions:
    ignore: IgnoreFn | None = None
    """Members for which this returns True are never visited"""
    max_display_length: int = DEFAULT_MAX_DISPLAY_LENGTH
    timeout_ms: int | None = None
    on_member_start: MemberHookFn | None = None
    on_member_done: MemberHookFn | None = None
    on_mismatch: MismatchHookFn | None = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    include_properties: bool = False
    primitive_types: tuple[type, ...] = ()

    def __post_init__(self):
        if self.max_display_length < 0:
            raise ValueError("max_display_length must not be negative")
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if self.timeout_ms is not None and self.timeout_ms < 0:
            raise ValueError("timeout_ms must not be negative")

    def replace(self, **changes) -> ValidationOptions:
        return dataclasses.replace(self, **changes)

    @classmethod
    def resolve(cls, options: ValidationOptions | None = None,
                **overrides) -> ValidationOptions:
        """Merge keyword overrides into ``options`` (or the defaults)."""
        options = options if options is not None else cls()
        if overrides:
            options = options.replace(**overrides)
        return options
