#!/usr/bin/env python3

"""
Host Driver

Runs a CPU in real time, and connects it to the renderer, input and audio
plugins.  The CPU keeps no time itself, so this drives its two independent
cadences:

    * Instructions, at the requested clock speed (or as fast as possible)
    * Timers, at 60Hz

Input is polled and the display is redrawn at 60Hz too, to avoid slowing the
CPU down with constant external calls.  The display is only redrawn if the CPU
reports its framebuffer has changed.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from time import perf_counter
from .constants import APP_NAME, DEFAULT_CLOCK_SPEED
from .timers import TIMER_FREQ

DISPLAY_FREQ = 60.0  # 60Hz host display refresh
DISPLAY_INTERVAL = 1.0 / DISPLAY_FREQ
TIMER_INTERVAL = 1.0 / TIMER_FREQ


class Host:
    def __init__(self, cpu, renderer, inputs, audio, clock_speed=None, clock=perf_counter):
        self.cpu = cpu
        self.renderer = renderer
        self.inputs = inputs
        self.audio = audio
        self.clock = clock

        if clock_speed is None:
            clock_speed = DEFAULT_CLOCK_SPEED

        # User can specify 0 for uncapped
        self.core_interval = None if clock_speed <= 0 else 1.0 / clock_speed

        self.next_display_update_time = 0
        self.next_timer_tick_time = 0
        self.next_perf_report_time = 0
        self.perf_counter_fps = 0
        self.perf_counter_ops = 0
        self.buzzer_enabled = False
        self.awaiting_keypress = False
        self.renderer.set_resolution(*self.cpu.framebuffer.get_vid_size())
        self.report_perf()

    def run(self):
        while not self.cycle():
            pass

    def cycle(self):
        # Returns True once the user has asked to quit
        this_time = self.clock()  # Do this first for maximum precision

        # Performance counters
        if this_time >= self.next_perf_report_time:
            self.next_perf_report_time = int(this_time) + 1.0
            self.report_perf(self.perf_counter_fps, self.perf_counter_ops)
            self.perf_counter_ops = 0
            self.perf_counter_fps = 0

        # Prevent unnecessary display rendering in excess of host frame rate
        if this_time >= self.next_display_update_time:
            if self.inputs.process_messages():
                return True

            self.next_display_update_time = this_time + DISPLAY_INTERVAL
            self.cpu.set_keys(self.inputs.get_key_states())
            self.refresh_framebuffer()
            self.perf_counter_fps += 1

        if this_time >= self.next_timer_tick_time:
            self.next_timer_tick_time = this_time + TIMER_INTERVAL
            self.cpu.tick_timers()
            self.update_buzzer()

        self.update_keypress()
        self.cpu.step()
        self.update_buzzer()  # Fx18 may have just started or stopped the tone

        if self.core_interval is not None:
            # Wait for next CPU instruction.  Do this last for maximum precision (takes into account time spent on
            # this instruction)
            next_time = this_time + self.core_interval

            while self.clock() < next_time:  # Unfortunately we have to do this to get the timing right
                pass

        self.perf_counter_ops += 1
        return False

    def refresh_framebuffer(self):
        # Render pending screen updates.  Should be called whenever there will be a pause, a quit, or the display
        # refresh interval expires.
        content_changed = self.cpu.consume_dirty_flag()

        if content_changed:
            self.renderer.draw_frame(self.cpu.read_display())

        self.renderer.refresh_display(content_changed)

    def update_buzzer(self):
        tone = self.cpu.should_sound_tone()

        if tone != self.buzzer_enabled:
            self.audio.enable_buzzer(tone)
            self.buzzer_enabled = tone

    def update_keypress(self):
        if not self.cpu.is_waiting_for_key():
            self.awaiting_keypress = False
            return

        if not self.awaiting_keypress:
            # The CPU has just started waiting.  Forget anything pressed before now.
            self.inputs.setup_keypress()
            self.awaiting_keypress = True
            return

        key = self.inputs.get_keypress()

        if key is not None:
            # The next step collects the key and moves on
            self.cpu.deliver_captured_key(key)
            self.awaiting_keypress = False

    def report_perf(self, fps=0, ops=0):
        self.renderer.set_title("{} - {} FPS, {} OPS".format(APP_NAME, fps, ops))
