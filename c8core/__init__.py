#!/usr/bin/env python3

"""
Main Startup Module

Simply call main(args) to start the emulator, replacing args with a dictionary
of options.  This can be done via the Terminal or GUI.

All options must be supplied.  Defaults can be specified with a 'None'.

The interpreter core itself is the CPU class, which can also be embedded
directly in another application:

    cpu = CPU(rom_bytes, shift_quirks=False, load_quirks=False)
    cpu.step()          # Once per instruction
    cpu.tick_timers()   # At 60Hz
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import APP_INTRO, APP_COPYRIGHT, CPU_QUIRKS
from .cpu import CPU
from .debugger import Debugger
from .errors import (
    CoreError, OutOfBoundsError, InvalidOpcodeError, ProtocolViolationError, InputContractViolationError
)
from .host import Host
from .hostio import Loader

__all__ = [
    "main", "CPU", "Debugger", "Host", "Loader", "StartupError", "EmulationHalted", "CoreError", "OutOfBoundsError",
    "InvalidOpcodeError", "ProtocolViolationError", "InputContractViolationError"
]


class StartupError(Exception):
    pass


class EmulationHalted(Exception):
    pass


def _select_plugins(opt_renderer, mute_audio):
    # If necessary, try PyGame first, then fall back to running headless
    auto_select_renderer = opt_renderer is None

    # flake8: noqa: F401
    if auto_select_renderer or opt_renderer == "pygame":
        # pylint: disable=unused-import, import-outside-toplevel, raise-missing-from
        try:
            import pygame
        except ImportError:
            if not auto_select_renderer:
                raise StartupError("PyGame does not appear to be installed.")

            print("PyGame does not appear to be installed.  Running without display, input, or audio.")
        else:
            from .inputs.i_pygame import Inputs
            from .renderers.r_pygame import Renderer

            if mute_audio:
                from .audio.a_null import Audio
            else:
                from .audio.a_pygame import Audio

            return Renderer, Inputs, Audio

    # pylint: disable=import-outside-toplevel
    from .inputs.i_null import Inputs
    from .renderers.r_null import Renderer
    from .audio.a_null import Audio

    return Renderer, Inputs, Audio


def main(args):
    print("".join((APP_INTRO, APP_COPYRIGHT)))
    quirk_settings = {}

    for cpu_quirk in CPU_QUIRKS + ["screen_wrap"]:
        quirk_label = "{}_quirks".format(cpu_quirk)
        quirk_settings[quirk_label] = bool(args[quirk_label])

    Renderer, Inputs, Audio = _select_plugins(args["renderer"], args["mute"])

    # Read ROM binary.  The CPU writes it into RAM.
    rom = Loader().load_binary(args["filename"])

    # Set up debugger and live output if necessary
    debugger = Debugger(live=args["debug"])

    # Create a new CPU.  It boots at the default address.
    cpu = CPU(rom, debugger=debugger, **quirk_settings)

    renderer = Renderer(scale=args["scale"])

    # Set up host inputs, and link to the chosen rendering module in case it provides inputs too
    inputs = Inputs(args["keymap"], renderer)
    audio = Audio()
    host = Host(cpu, renderer, inputs, audio, clock_speed=args["clock_speed"])

    try:
        host.run()
    except CoreError as err:
        raise EmulationHalted(
            "Emulation halted.\n\n{}Debug info:\n{}\n\n{}".format(
                APP_INTRO, debugger.debug(cpu, cpu.instruction.disassemble(), verbose=True), err
            )
        ) from err
    finally:
        # The CPU has quit, so shut down the rendering framework.  __del__ cannot be relied upon when using PyPy
        audio.shutdown()
        inputs.shutdown()
        renderer.shutdown()
