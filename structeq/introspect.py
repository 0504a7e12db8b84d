"""Finding out which members of an object take part in a comparison.

The order of members is deterministic: dataclass fields (or ``__slots__``)
in declaration order, then instance attributes, then (optionally)
properties and finally the ``<elements>`` pseudo-member for iterable types.
"""
from __future__ import annotations

import dataclasses
import datetime
import decimal
import fractions
import pathlib
import types
import uuid
from collections.abc import Iterable, Iterator, Mapping, Set
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple

__all__ = [
    'MISSING', 'MemberKind', 'MemberDescriptor', 'ELEMENTS_NAME',
    'Introspector',
]

ELEMENTS_NAME = '<elements>'

_TOTALLY_ORDERED = frozenset({bool, int, str, bytes})
# Past this, elements only differing deeper down may keep their original order
_MAX_SORT_KEY_DEPTH = 64


class _MissingType:
    _inst = None

    def __new__(cls):
        if cls._inst is None:
            cls._inst = super().__new__(cls)
        return cls._inst

    def __repr__(self):
        return '<missing>'

    def __reduce__(self):
        return _MissingType, ()


MISSING = _MissingType()
"""Value of a member that one of the two objects doesn't have"""


class MemberKind(Enum):
    FIELD = 'field'
    SLOT = 'slot'
    ATTRIBUTE = 'attribute'
    PROPERTY = 'property'
    ELEMENTS = 'elements'


@dataclass(frozen=True)
class MemberDescriptor:
    name: str
    kind: MemberKind
    owner: type

    def get(self, o: object):
        if self.kind is MemberKind.ELEMENTS:
            return o  # Iteration is over the object itself
        try:
            return getattr(o, self.name)
        except AttributeError:
            # Unset slot or attribute that only the other object has
            return MISSING

    @property
    def is_elements(self):
        return self.kind is MemberKind.ELEMENTS


IgnoreFn = Callable[[MemberDescriptor], bool]


class _TypeMembers(NamedTuple):
    head: tuple[MemberDescriptor, ...]
    uses_vars: bool
    tail: tuple[MemberDescriptor, ...]


class Introspector:
    primitive_types: frozenset[type] = frozenset({
        type(None), bool, int, float, complex, str, bytes, bytearray,
        Enum, decimal.Decimal, fractions.Fraction,
        datetime.date, datetime.time, datetime.timedelta, datetime.tzinfo,
        uuid.UUID, pathlib.PurePath, range, type,
        types.FunctionType, types.BuiltinFunctionType, types.MethodType,
        types.ModuleType,
    })
    """Matched against the whole MRO, so subclasses count as well"""

    def __init__(self, ignore: IgnoreFn | None = None,
                 include_properties: bool = False,
                 extra_primitive_types: Iterable[type] = ()):
        self.ignore = ignore
        self.include_properties = include_properties
        self._primitives = self.primitive_types | frozenset(extra_primitive_types)
        self._is_primitive_cache: dict[type, bool] = {}
        self._members_cache: dict[type, _TypeMembers] = {}

    # region ---- <Classification> ----
    def is_primitive(self, tp: type) -> bool:
        if (res := self._is_primitive_cache.get(tp)) is None:
            res = self._is_primitive_cache[tp] = self._compute_is_primitive(tp)
        return res

    def _compute_is_primitive(self, tp: type):
        for sup in tp.__mro__:  # MRO small => faster than iterating over primitive types
            if sup in self._primitives:
                return True
        return self._is_value_like(tp)

    @classmethod
    def _is_value_like(cls, tp: type):
        """Types with no inspectable state but their own ``__eq__``
        (C extension scalars, mostly) can only be compared with ``==``"""
        if dataclasses.is_dataclass(tp) or cls.has_elements(tp):
            return False
        if getattr(tp, '__dictoffset__', 0) != 0 or cls._slot_names(tp):
            return False
        return tp.__eq__ is not object.__eq__

    @classmethod
    def has_elements(cls, tp: type) -> bool:
        """Whether the ``<elements>`` pseudo-member applies. One-shot
        iterators don't count, comparing them would consume them."""
        return issubclass(tp, Iterable) and not issubclass(tp, Iterator)
    # endregion

    # region ---- <Members> ----
    def members_of(self, expected: object, actual: object) -> tuple[MemberDescriptor, ...]:
        """Members of a pair of objects of the same type.
        Ignored members are already removed."""
        info = self._type_members(type(expected))
        if not info.uses_vars:
            return info.head + info.tail
        attrs = self._attribute_members(type(expected), expected, actual, info.head)
        return info.head + attrs + info.tail

    def members_of_type(self, tp: type) -> tuple[MemberDescriptor, ...]:
        """Only the members that don't depend on the instance
        (so no instance attributes)"""
        info = self._type_members(tp)
        return info.head + info.tail

    def _type_members(self, tp: type) -> _TypeMembers:
        if (info := self._members_cache.get(tp)) is None:
            info = self._members_cache[tp] = self._compute_type_members(tp)
        return info

    def _compute_type_members(self, tp: type) -> _TypeMembers:
        if dataclasses.is_dataclass(tp):
            head = [MemberDescriptor(f.name, MemberKind.FIELD, tp)
                    for f in dataclasses.fields(tp) if f.compare]
            uses_vars = False
        else:
            head = [MemberDescriptor(name, MemberKind.SLOT, tp)
                    for name in self._slot_names(tp)]
            uses_vars = getattr(tp, '__dictoffset__', 0) != 0
        tail = []
        if self.include_properties:
            seen = {m.name for m in head}
            tail += [MemberDescriptor(name, MemberKind.PROPERTY, tp)
                     for name in self._property_names(tp) if name not in seen]
        if self.has_elements(tp):
            tail.append(MemberDescriptor(ELEMENTS_NAME, MemberKind.ELEMENTS, tp))
        return _TypeMembers(self._filter(head), uses_vars, self._filter(tail))

    def _attribute_members(self, tp: type, expected: object, actual: object,
                           head: tuple[MemberDescriptor, ...]):
        names: dict[str, None] = {}  # dict as an ordered set
        for o in (expected, actual):
            names.update(dict.fromkeys(self._instance_vars(o)))
        for m in head:
            names.pop(m.name, None)
        return self._filter(MemberDescriptor(name, MemberKind.ATTRIBUTE, tp)
                            for name in names)

    def _filter(self, members: Iterable[MemberDescriptor]):
        if self.ignore is None:
            return tuple(members)
        return tuple(m for m in members if not self.ignore(m))

    @classmethod
    def _instance_vars(cls, o: object) -> Iterable[str]:
        d = getattr(o, '__dict__', None)
        return d.keys() if isinstance(d, dict) else ()

    @classmethod
    def _slot_names(cls, tp: type) -> list[str]:
        names: dict[str, None] = {}
        for sup in reversed(tp.__mro__):  # Base classes first
            slots = sup.__dict__.get('__slots__', ())
            if isinstance(slots, str):
                slots = (slots,)
            for name in slots:
                if name in ('__dict__', '__weakref__'):
                    continue
                names[_mangle(sup, name)] = None
        return list(names)

    @classmethod
    def _property_names(cls, tp: type) -> list[str]:
        names: dict[str, None] = {}
        for sup in reversed(tp.__mro__):
            for name, v in sup.__dict__.items():
                if isinstance(v, property):
                    names[name] = None
        return list(names)
    # endregion

    # region ---- <Elements> ----
    def elements_of(self, o: object) -> list:
        """Materialise the elements of ``o`` in a deterministic order"""
        if isinstance(o, Mapping):
            return list(o.items())
        if isinstance(o, Set):
            return sorted(o, key=self.sort_key)
        return list(o)

    def sort_key(self, o: object) -> tuple:
        """Orders values by their content (never by address) so that
        equal sets always give their elements in the same order.

        Keys start with the type's full name so keys of different types
        never have to compare their values."""
        return self._sort_key(o, [])

    def _sort_key(self, o: object, stack: list[int]) -> tuple:
        tp = type(o)
        name = f'{tp.__module__}.{tp.__qualname__}'
        if tp in _TOTALLY_ORDERED:
            return name, o
        if tp is float:
            return name, ((True, 0.0) if o != o else (False, o))  # NaN last
        if isinstance(o, (type, types.FunctionType, types.BuiltinFunctionType,
                          types.MethodType)):
            return name, f'{o.__module__}.{o.__qualname__}'
        if isinstance(o, types.ModuleType):
            return name, o.__name__
        if self.is_primitive(tp):
            return name, repr(o)
        if id(o) in stack:
            return name, (('<circular>', ('', len(stack) - stack.index(id(o)))),)
        if len(stack) >= _MAX_SORT_KEY_DEPTH:
            return name, (('<deep>', ('', 0)),)
        stack.append(id(o))
        try:
            parts = []
            for m in self.members_of(o, o):
                if m.is_elements:
                    raw = o.items() if isinstance(o, Mapping) else o
                    items = [self._sort_key(v, stack) for v in raw]
                    if isinstance(o, Set):
                        items.sort()
                    parts.append((m.name, tuple(items)))
                else:
                    parts.append((m.name, self._sort_key(m.get(o), stack)))
            return name, tuple(parts)
        finally:
            stack.pop()
    # endregion


def _mangle(cls: type, name: str):
    if name.startswith('__') and not name.endswith('__'):
        return f'_{cls.__name__.lstrip("_")}{name}'
    return name
