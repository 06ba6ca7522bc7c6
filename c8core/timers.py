#!/usr/bin/env python3

"""
Delay and Sound Timers

Both timers count down once per tick, and stop at zero.  The host is
responsible for ticking them at 60Hz, independently of the CPU clock speed.
While the sound timer is non-zero, the buzzer should sound.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

TIMER_FREQ = 60.0  # Conventional tick rate, in Hz


class Timers:
    def __init__(self):
        self.dt = 0  # Delay timer (byte)
        self.st = 0  # Sound timer (byte)

    def tick(self):
        if self.dt > 0:
            self.dt -= 1

        if self.st > 0:
            self.st -= 1

    def set_delay(self, value):
        self.dt = value & 0xFF

    def set_sound(self, value):
        self.st = value & 0xFF

    def is_tone_active(self):
        return self.st > 0
