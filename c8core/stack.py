#!/usr/bin/env python3

"""
Stack Emulator

The call stack is not part of system RAM, because there is no specified
location for it, and nothing exposes it to the running program.  Only CALL
writes to it and only RET reads from it.

Entries are call-site addresses (the address of the CALL itself), rather than
return addresses.  The CPU's normal post-instruction increment then lands on
the instruction following the call.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import STACK_DEPTH
from .errors import ProtocolViolationError


class Stack:
    def __init__(self, size=STACK_DEPTH):
        self.items = []
        self.size = size

    @property
    def sp(self):
        # Stack pointer, i.e. the index of the first free slot
        return len(self.items)

    def push(self, item):
        if len(self.items) >= self.size:
            raise ProtocolViolationError("Stack overflow: more than {} nested calls".format(self.size))

        self.items.append(item)

    def pop(self):
        try:
            return self.items.pop()
        except IndexError:
            raise ProtocolViolationError("Stack underflow: return without a matching call") from None

    def get_items(self):
        # For debugging
        return self.items
