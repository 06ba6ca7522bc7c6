#!/usr/bin/env python3

"""
Keypad State

Holds the 16-key hexadecimal keypad as seen by the CPU, along with the state of
the blocking 'wait for key' instruction (Fx0A).

The host replaces the whole key vector whenever it likes.  Entries may be
booleans or small integers (0/1), as long as there are exactly 16 of them.

Key capture is a two-state protocol.  Fx0A puts the keypad into the waiting
state the first time it runs.  The host then delivers the captured key, and
the next run of Fx0A collects it, returning the keypad to idle.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import NUM_KEYS
from .errors import InputContractViolationError, OutOfBoundsError, ProtocolViolationError


class Keypad:
    def __init__(self):
        self.key_down = [False] * NUM_KEYS
        self.awaiting_keypress = False
        self.captured_key = None

    def set_keys(self, flags):
        try:
            num_flags = len(flags)
        except TypeError:
            raise InputContractViolationError("Key state must be a sequence of {} flags".format(NUM_KEYS)) from None

        if num_flags != NUM_KEYS:
            raise InputContractViolationError(
                "Key state must have exactly {} flags, not {}".format(NUM_KEYS, num_flags)
            )

        self.key_down = [bool(flag) for flag in flags]

    def is_key_down(self, key):
        if not 0 <= key < NUM_KEYS:
            raise OutOfBoundsError("Key 0x{:x} does not exist on the keypad".format(key))

        return self.key_down[key]

    def begin_wait(self):
        self.awaiting_keypress = True
        self.captured_key = None

    def is_waiting(self):
        return self.awaiting_keypress

    def deliver(self, key):
        if not self.awaiting_keypress:
            raise ProtocolViolationError("A captured key was delivered, but no key was requested")

        if not 0 <= key < NUM_KEYS:
            raise InputContractViolationError("Captured key 0x{:x} does not exist on the keypad".format(key))

        self.captured_key = key

    def collect(self):
        # Returns the captured key and goes back to idle, or None if the host hasn't delivered one yet
        key = self.captured_key

        if key is not None:
            self.awaiting_keypress = False
            self.captured_key = None

        return key
