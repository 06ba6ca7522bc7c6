#!/usr/bin/env python3

"""
CPU Emulator (CHIP-8)

Like a real computer, this is where most of the processing happens.  Each call
to step() fetches, decodes and executes exactly one instruction, and never
waits for anything.  The CPU does no time keeping of its own: the host decides
how often to step, and separately ticks the timers at 60Hz.

Every instruction finishes by advancing the program counter by 2.  Handlers
which jump therefore set the program counter to 2 before their target, and the
key wait instruction (Fx0A) steps it back by 2 so that it runs again.

Quirks
------

- Shift quirks: 8xy6/8xyE shift Vy into Vx, as the original COSMAC VIP
                interpreter did.  Otherwise Vx is shifted in place.
- Load quirks : Fx55/Fx65 leave I pointing after the last register accessed, as
                the original interpreter did.  Otherwise I is unchanged.
- Screen wrap : Sprites which cross the screen edge wrap around to the other
                side.  Otherwise they are clipped.  The sprite origin always
                wraps.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from random import randint
from .constants import MEM_SIZE, MEM_RESERVED, FONT_LOCATION, FONT_GLYPH_SIZE, SYSTEM_FONT
from .debugger import Debugger
from .decoder import decode
from .errors import OutOfBoundsError, InvalidOpcodeError
from .framebuffer import Framebuffer
from .keypad import Keypad
from .ram import RAM
from .stack import Stack
from .timers import Timers

CPU_ENDIAN = "big"  # CHIP-8 is big-endian


def random_byte():
    return randint(0, 0xFF)


class CPU:
    def __init__(self, rom=b"", shift_quirks=False, load_quirks=False, screen_wrap_quirks=False, random_source=None,
                 debugger=None):

        if len(rom) > MEM_SIZE - MEM_RESERVED:
            raise OutOfBoundsError(
                "ROM is {} bytes, but only {} bytes are available".format(len(rom), MEM_SIZE - MEM_RESERVED)
            )

        self._shift_quirks = bool(shift_quirks)
        self._load_quirks = bool(load_quirks)
        self._screen_wrap_quirks = bool(screen_wrap_quirks)
        self.random_source = random_byte if random_source is None else random_source
        self.debugger = Debugger() if debugger is None else debugger

        # Write the system font into the reserved area, and the program straight after it
        self.ram = RAM(MEM_SIZE)
        self.ram.write_block(FONT_LOCATION, SYSTEM_FONT)
        self.ram.write_block(MEM_RESERVED, rom)

        self.stack = Stack()
        self.framebuffer = Framebuffer(allow_wrapping=self._screen_wrap_quirks)
        self.keypad = Keypad()
        self.timers = Timers()

        # Initialise registers
        self.v = memoryview(bytearray(16))  # Bytearrays are mutable, so this should be fast when a register is updated
        self.i = 0  # Index register

        # Initialise program counter and current instruction
        self.pc = MEM_RESERVED
        self.debug_pc = MEM_RESERVED
        self.opcode = 0
        self.instruction = decode(0)

        # First lookup is on the instruction's top nibble.  Families which share a top nibble are looked up again
        # using the masked instruction.
        self.instructions = {
            0x0: self._masked,
            0x1: self._1nnn,
            0x2: self._2nnn,
            0x3: self._3xkk,
            0x4: self._4xkk,
            0x5: self._masked,
            0x6: self._6xkk,
            0x7: self._7xkk,
            0x8: self._masked,
            0x9: self._masked,
            0xA: self._Annn,
            0xB: self._Bnnn,
            0xC: self._Cxkk,
            0xD: self._Dxyn,
            0xE: self._masked,
            0xF: self._masked
        }

        self.masked_instructions = {
            # Bitmask 0xFFFF (i.e., exact match)
            0x00E0: self._00E0,
            0x00EE: self._00EE,
            # Bitmask 0xF00F
            0x5000: self._5xy0,
            0x8000: self._8xy0,
            0x8001: self._8xy1,
            0x8002: self._8xy2,
            0x8003: self._8xy3,
            0x8004: self._8xy4,
            0x8005: self._8xy5,
            0x8006: self._8xy6,
            0x8007: self._8xy7,
            0x800E: self._8xyE,
            0x9000: self._9xy0,
            # Bitmask 0xF0FF
            0xE09E: self._Ex9E,
            0xE0A1: self._ExA1,
            0xF007: self._Fx07,
            0xF00A: self._Fx0A,
            0xF015: self._Fx15,
            0xF018: self._Fx18,
            0xF01E: self._Fx1E,
            0xF029: self._Fx29,
            0xF033: self._Fx33,
            0xF055: self._Fx55,
            0xF065: self._Fx65
        }

    @property
    def shift_quirks(self):
        return self._shift_quirks

    @property
    def load_quirks(self):
        return self._load_quirks

    @property
    def screen_wrap_quirks(self):
        return self._screen_wrap_quirks

    @property
    def sp(self):
        return self.stack.sp

    # Host interface

    def step(self):
        """Execute a single instruction.

        Any CoreError is raised before the instruction changes anything, leaving
        the program counter on the faulting instruction.
        """
        self.debug_pc = self.pc  # Keep track of the program counter in case there is a crash
        self.opcode = self.fetch()
        self.instruction = decode(self.opcode)

        if self.debugger.is_live():
            self.debugger.output(self, self.instruction.disassemble())

        self.instructions[self.instruction.family]()
        self.inc_pc()

    def tick_timers(self):
        self.timers.tick()

    def read_display(self):
        return self.framebuffer.snapshot()

    def consume_dirty_flag(self):
        return self.framebuffer.consume_dirty()

    def set_keys(self, flags):
        self.keypad.set_keys(flags)

    def is_waiting_for_key(self):
        return self.keypad.is_waiting()

    def deliver_captured_key(self, key):
        self.keypad.deliver(key)

    def should_sound_tone(self):
        return self.timers.is_tone_active()

    # Internals

    def fetch(self):
        # The last instruction in memory may have advanced the program counter past the end
        if self.pc + 1 >= MEM_SIZE:
            raise OutOfBoundsError("Program counter 0x{:x} has run off the end of memory".format(self.pc))

        return int.from_bytes(self.ram.read_block(self.pc, 2), CPU_ENDIAN, signed=False)

    def inc_pc(self):
        self.pc += 2

    def dec_pc(self):
        # Only used to re-run instructions (i.e. keypress wait)
        self.pc -= 2

    def _jump(self, target):
        if target < MEM_RESERVED:
            raise OutOfBoundsError("Jump to 0x{:03x} lands in the reserved interpreter area".format(target))

        if target >= MEM_SIZE:
            raise OutOfBoundsError("Jump to 0x{:x} is outside of memory".format(target))

        # Compensate for the increment after every instruction
        self.pc = target - 2

    def _opcode_unsupported(self):
        raise InvalidOpcodeError(
            "Opcode 0x{:04x} at address 0x{:03x} is not a CHIP-8 instruction".format(self.opcode, self.debug_pc)
        )

    def _masked(self):
        instruction = self.masked_instructions.get(self.instruction.key)

        if instruction is None:
            self._opcode_unsupported()

        instruction()

    def _00E0(self):  # CLS
        self.framebuffer.clear()

    def _00EE(self):  # RET
        # The stack holds the address of the CALL, so the increment moves on to the instruction after it
        self.pc = self.stack.pop()

    def _1nnn(self):  # JP addr
        self._jump(self.instruction.addr)

    def _2nnn(self):  # CALL addr
        target = self.instruction.addr

        if target < MEM_RESERVED:
            raise OutOfBoundsError("Call to 0x{:03x} lands in the reserved interpreter area".format(target))

        self.stack.push(self.pc)
        self._jump(target)

    def _3xkk(self):  # SE Vx, byte
        if self.v[self.instruction.x] == self.instruction.byte:
            self.inc_pc()

    def _4xkk(self):  # SNE Vx, byte
        if self.v[self.instruction.x] != self.instruction.byte:
            self.inc_pc()

    def _5xy0(self):  # SE Vx, Vy
        if self.v[self.instruction.x] == self.v[self.instruction.y]:
            self.inc_pc()

    def _6xkk(self):  # LD Vx, byte
        self.v[self.instruction.x] = self.instruction.byte

    def _7xkk(self):  # ADD Vx, byte
        # No carry flag for this one
        vx = self.instruction.x
        self.v[vx] = (self.v[vx] + self.instruction.byte) & 0xFF

    def _8xy0(self):  # LD Vx, Vy
        self.v[self.instruction.x] = self.v[self.instruction.y]

    def _8xy1(self):  # OR Vx, Vy
        self.v[self.instruction.x] |= self.v[self.instruction.y]

    def _8xy2(self):  # AND Vx, Vy
        self.v[self.instruction.x] &= self.v[self.instruction.y]

    def _8xy3(self):  # XOR Vx, Vy
        self.v[self.instruction.x] ^= self.v[self.instruction.y]

    # From here on, Vf is always written after Vx, as Vf may also be specified as Vx.

    def _8xy4(self):  # ADD Vx, Vy
        vx = self.instruction.x
        val = self.v[vx] + self.v[self.instruction.y]
        self.v[vx] = val & 0xFF
        self.v[0xF] = int(val > 0xFF)  # Vf is set when carrying

    def _post_8xy5_8xy7(self, val):  # Post-SUB/SUBN
        self.v[self.instruction.x] = val & 0xFF
        self.v[0xF] = int(val >= 0)  # Vf is set when NOT borrowing

    def _8xy5(self):  # SUB Vx, Vy
        self._post_8xy5_8xy7(self.v[self.instruction.x] - self.v[self.instruction.y])

    def _8xy7(self):  # SUBN Vx, Vy
        self._post_8xy5_8xy7(self.v[self.instruction.y] - self.v[self.instruction.x])

    def _shift_source(self):
        return self.v[self.instruction.y if self._shift_quirks else self.instruction.x]

    def _8xy6(self):  # SHR Vx {, Vy}
        val = self._shift_source()
        self.v[self.instruction.x] = val >> 1
        self.v[0xF] = val & 1

    def _8xyE(self):  # SHL Vx {, Vy}
        val = self._shift_source()
        self.v[self.instruction.x] = (val << 1) & 0xFF
        self.v[0xF] = val >> 7

    def _9xy0(self):  # SNE Vx, Vy
        if self.v[self.instruction.x] != self.v[self.instruction.y]:
            self.inc_pc()

    def _Annn(self):  # LD I, addr
        self.i = self.instruction.addr

    def _Bnnn(self):  # JP V0, addr
        self._jump(self.instruction.addr + self.v[0x0])

    def _Cxkk(self):  # RND Vx, byte
        # The ANDing here is intentional.  This is not a random number between 0 and 'byte' inclusive.
        self.v[self.instruction.x] = self.random_source() & self.instruction.byte

    def _Dxyn(self):  # DRW Vx, Vy, nibble
        height = self.instruction.nibble
        i = self.i

        if i + height - 1 >= MEM_SIZE:
            raise OutOfBoundsError("Sprite at 0x{:03x} with height {} runs off the end of memory".format(i, height))

        # The sprite's start always wraps.  The rest of it is clipped unless screen wrapping is enabled.
        vid_width, vid_height = self.framebuffer.get_vid_size()
        vx_pos = self.v[self.instruction.x] % vid_width
        vy_pos = self.v[self.instruction.y] % vid_height
        collided = False

        for y in range(height):
            spr_data = self.ram.read(i + y)

            for x in range(8):
                if spr_data & (0x80 >> x) and self.framebuffer.xor_pixel(vx_pos + x, vy_pos + y):
                    # Don't stop drawing.  Set the flag, and never unset it for this sprite.
                    collided = True

        self.v[0xF] = int(collided)
        self.framebuffer.mark_dirty()

    def _Ex9E(self):  # SKP Vx
        if self.keypad.is_key_down(self.v[self.instruction.x]):
            self.inc_pc()

    def _ExA1(self):  # SKNP Vx
        if not self.keypad.is_key_down(self.v[self.instruction.x]):
            self.inc_pc()

    def _Fx07(self):  # LD Vx, DT
        self.v[self.instruction.x] = self.timers.dt

    def _Fx0A(self):  # LD Vx, K
        # This opcode waits for a keypress, but since the timers still need to run and the host needs control back,
        # we simply rerun this instruction until the host has delivered a key.
        if self.keypad.is_waiting():
            key = self.keypad.collect()
        else:
            self.keypad.begin_wait()
            key = None

        if key is None:
            self.dec_pc()
        else:
            self.v[self.instruction.x] = key

    def _Fx15(self):  # LD DT, Vx
        self.timers.set_delay(self.v[self.instruction.x])

    def _Fx18(self):  # LD ST, Vx
        self.timers.set_sound(self.v[self.instruction.x])

    def _Fx1E(self):  # ADD I, Vx
        val = self.i + self.v[self.instruction.x]

        if val >= MEM_SIZE:
            raise OutOfBoundsError("Index register overflowed to 0x{:x}".format(val))

        self.i = val

    def _Fx29(self):  # LD F, Vx
        self.i = FONT_LOCATION + FONT_GLYPH_SIZE * self.v[self.instruction.x]

    def _Fx33(self):  # LD B, Vx
        val = self.v[self.instruction.x]
        # Hundreds, tens, then units.  The block write checks the whole range before writing anything.
        self.ram.write_block(self.i, bytes((val // 100, (val // 10) % 10, val % 10)))

    def _check_Fx55_Fx65(self):
        # I must still be in range if the load quirk moves it past the last register
        top = self.i + self.instruction.x + 1

        if top >= MEM_SIZE:
            raise OutOfBoundsError(
                "Register transfer of V0-V{:01x} at 0x{:03x} runs off the end of memory".format(
                    self.instruction.x, self.i
                )
            )

    def _post_Fx55_Fx65(self):
        if self._load_quirks:
            self.i += self.instruction.x + 1

    def _Fx55(self):  # LD [I], Vx
        self._check_Fx55_Fx65()
        # Ensure with +1s that the final register is copied
        self.ram.write_block(self.i, self.v[:self.instruction.x + 1])
        self._post_Fx55_Fx65()

    def _Fx65(self):  # LD Vx, [I]
        self._check_Fx55_Fx65()
        num_regs = self.instruction.x + 1
        self.v[:num_regs] = self.ram.read_block(self.i, num_regs)
        self._post_Fx55_Fx65()
