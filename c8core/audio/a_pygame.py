#!/usr/bin/env python3

"""
PyGame Audio Plugin

Plays the buzzer as a looping square wave within PyGame / SDL.

The buzzer only has an 'on' or 'off' status.  A single cycle of the wave is
built once, at the requested pitch, and looped for as long as the buzzer is
enabled.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import pygame
from .a_null import Audio as AudioBase

PLAYBACK_FREQUENCY = 44100
DEFAULT_TONE = 440.0
DEFAULT_VOLUME = 0.1


class Audio(AudioBase):
    def __init__(self, frequency=DEFAULT_TONE):
        super().__init__()
        pygame.mixer.pre_init(PLAYBACK_FREQUENCY, size=8, channels=1, buffer=512, allowedchanges=0)
        pygame.mixer.init()

        # Unsigned 8-bit samples: first half of the cycle high, second half low
        cycle_length = max(2, int(PLAYBACK_FREQUENCY / frequency))
        half_cycle = cycle_length // 2
        wave = bytes([0xFF] * half_cycle + [0x00] * (cycle_length - half_cycle))
        self.sound = pygame.mixer.Sound(buffer=wave)
        self.sound.set_volume(DEFAULT_VOLUME)

    def enable_buzzer(self, enabled):
        # If there is already a sound being played, it won't be restarted
        if enabled:
            if not self.buzzer_enabled:
                self.sound.play(-1)
        elif self.buzzer_enabled:
            self.sound.stop()

        super().enable_buzzer(enabled)

    def shutdown(self):
        self.sound.stop()
        pygame.mixer.quit()
        super().shutdown()
