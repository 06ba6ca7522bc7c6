#!/usr/bin/env python3

"""
PyGame Renderer Plugin

Draws display snapshots onto an SDL window surface via PyGame.  The surface is
allocated at the emulated screen size, and the contents are stretched (using
'Nearest Neighbour' translation) to fit the window itself.  This means we don't
have to draw the same pixel multiple times.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import pygame
from .r_null import RendererError, Renderer as RendererBase
from ..constants import APP_NAME

DEFAULT_PALETTE = "222222,DDDDDD"  # Background, foreground


class Renderer(RendererBase):
    def __init__(self, scale=None, pygame_palette=None, **kwargs):
        if scale is None:
            scale = 512  # Default window width if not supplied, or set to default

        pygame.display.init()
        self.set_title(APP_NAME)
        self.rgb_buffer = None
        self.scaled_size = (scale, scale // 2)
        self.display_surface = pygame.display.set_mode(self.scaled_size)

        palette_split = (DEFAULT_PALETTE if pygame_palette is None else pygame_palette).split(",")

        if len(palette_split) != 2:
            raise RendererError("Exactly two palette colours (background, foreground) must be defined.")

        colour_map = []

        for pygame_colour in palette_split:
            if len(pygame_colour) != 6:
                raise RendererError("Palette colours must all be 6 hex digits long.")

            try:
                colour_map.append(int(pygame_colour, 16))
            except ValueError:
                raise RendererError("Invalid palette colour defined.") from None

        # Split compound RGB values for faster byte-based lookup later
        self.rgb_map = [bytes([i >> 16, (i >> 8) & 0xFF, i & 0xFF]) for i in colour_map]

        super().__init__(scale)

    def set_resolution(self, width, height):
        total_pixels = width * height
        # Fill the offscreen RGB buffer with the background colour
        self.rgb_buffer = bytearray(self.rgb_map[0] * total_pixels)
        super().set_resolution(width, height)

    def draw_frame(self, frame):
        if len(frame) != self.height or (frame and len(frame[0]) != self.width):
            self.set_resolution(len(frame[0]) if frame else 0, len(frame))

        background, foreground = self.rgb_map
        self.rgb_buffer[:] = b"".join(foreground if pixel else background for row in frame for pixel in row)

    def refresh_display(self, content_changed=False):
        if content_changed and self.rgb_buffer:
            # Blit the bytearray straight to the surface
            render_surface = pygame.image.frombuffer(bytes(self.rgb_buffer), (self.width, self.height), "RGB")
            scaled_win = pygame.transform.scale(render_surface, self.scaled_size)
            self.display_surface.blit(scaled_win, (0, 0))
            pygame.display.flip()

    def set_title(self, title):
        pygame.display.set_caption(title)

    def shutdown(self):
        pygame.display.quit()
        super().shutdown()
