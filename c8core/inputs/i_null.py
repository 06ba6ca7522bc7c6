#!/usr/bin/env python3

"""
Null Input Plugin

Serves as a base class for other Input plugins.  Can be used on its own if zero
input functionality is required.

Input plugins translate host key events into the state the CPU understands: a
vector of 16 flags for the hexadecimal keypad, and (for the Fx0A key wait
instruction) the last key released since setup_keypress() was called.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from ..constants import NUM_KEYS


class InputsError(Exception):
    pass


class Inputs:
    def __init__(self, keymap, renderer):
        self.keymap_dict = {}
        self.renderer = renderer
        keymap_split = keymap.split(",")

        if len(keymap_split) != NUM_KEYS:
            raise InputsError("Incorrect number of keys defined -- 16 required.  Use commas to split numbers")

        for key_num, key_defined in enumerate(keymap_split):
            try:
                key_defined_ord = int(key_defined)
            except ValueError:
                raise InputsError("Defined keys are not all integer values") from None

            if key_defined_ord in self.keymap_dict:
                raise InputsError("Duplicate keys defined")

            self.keymap_dict[key_defined_ord] = key_num

        self.last_keypress = None

    def process_messages(self):
        return False  # Don't exit the program

    def get_key_states(self):
        return [0] * NUM_KEYS  # No keys are held

    def setup_keypress(self):
        self.last_keypress = None

    def get_keypress(self):
        return None  # No keys down

    def shutdown(self):
        pass
