"""Utils specific to this project. General utils that could be
used in all projects should go in utils.py"""
from __future__ import annotations

import time
from dataclasses import dataclass, field

from structeq.testing import GraphAssertionsMixin
from utils import TestCaseUtils


@dataclass(eq=False)
class Node:
    """Identity-compared node so that ``==`` can't do our job for us"""
    value: object
    next: Node | None = None
    children: list[Node] = field(default_factory=list)


@dataclass
class Root:
    name: str
    items: list


class Plain:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


class Slotted:
    __slots__ = ('a', 'b')

    def __init__(self, a=None, b=None):
        self.a = a
        self.b = b


def make_chain(n: int, start: int = 0) -> Node:
    head = node = Node(start)
    for i in range(start + 1, start + n):
        node.next = Node(i)
        node = node.next
    return head


def make_ring(n: int) -> Node:
    """``n`` nodes where the last one links back to the first"""
    head = make_chain(n)
    node = head
    while node.next is not None:
        node = node.next
    node.next = head
    return head


def make_mutual_pair() -> Node:
    a, b = Node('a'), Node('b')
    a.next, b.next = b, a
    a.children.append(b)
    b.children.append(a)
    return a


class SleepOnFirstStep:
    """Member hook that makes the traversal slow"""
    def __init__(self, sleep_sec: float):
        self.sleep_sec = sleep_sec
        self.done = False

    def __call__(self, _member):
        if not self.done:
            self.done = True
            time.sleep(self.sleep_sec)


class CommonTestCase(GraphAssertionsMixin, TestCaseUtils):
    maxDiff = 65535
