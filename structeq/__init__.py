from .errors import *
from .options import *
from .introspect import MISSING, MemberKind, MemberDescriptor, Introspector
from .traversal import ValidatedMember
from .engine import *
from .harness import *
