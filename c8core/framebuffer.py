#!/usr/bin/env python3

"""
Framebuffer Emulator

Pixels are written here by the CPU, and the host reads them back whenever it
wants to draw the actual display.  Programs for this system cannot write
directly into video RAM.  Instead, sprites are drawn to the screen using an XOR
method, and collisions (where any pixel was set, but was unset by an XOR) are
reported back to the CPU.

The buffer has a dirty flag, set whenever the contents may have changed (a
clear, or any sprite draw).  Only the host clears it, by consuming it, so the
host redraws once per batch of changes rather than after every instruction.

The host never gets a reference to the pixel store itself, only an immutable
snapshot.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import VID_WIDTH, VID_HEIGHT
from .ram import RAM


class Framebuffer:
    def __init__(self, vid_width=VID_WIDTH, vid_height=VID_HEIGHT, allow_wrapping=False):
        self.vid_width = vid_width
        self.vid_height = vid_height
        self.vid_size = vid_width * vid_height
        self.allow_wrapping = allow_wrapping
        self.plane = RAM(self.vid_size)  # One byte per pixel, 0 or 1
        self.dirty = False

    def clear(self):
        self.plane.clear()
        self.dirty = True

    def xor_pixel(self, x, y):
        # Returns flagging any collision, or None if the pixel was clipped

        if self.allow_wrapping:
            x %= self.vid_width
            y %= self.vid_height
        elif x >= self.vid_width or y >= self.vid_height:
            return None

        vram_loc = y * self.vid_width + x
        pixel = self.plane.read(vram_loc)
        self.plane.write(vram_loc, pixel ^ 1)

        return pixel != 0

    def mark_dirty(self):
        self.dirty = True

    def consume_dirty(self):
        dirty = self.dirty
        self.dirty = False
        return dirty

    def snapshot(self):
        # Rows of booleans, top to bottom
        mem = self.plane.mem
        width = self.vid_width

        return tuple(
            tuple(bool(pixel) for pixel in mem[row * width:(row + 1) * width]) for row in range(self.vid_height)
        )

    def get_vid_size(self):
        return self.vid_width, self.vid_height
