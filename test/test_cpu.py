#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from c8core.constants import SYSTEM_FONT
from c8core.cpu import CPU
from c8core.errors import InputContractViolationError, InvalidOpcodeError, OutOfBoundsError, ProtocolViolationError


class TestCPU(unittest.TestCase):
    def setUp(self):
        self.cpu = CPU(random_source=lambda: 0xAB)

    def _check_opcode(self, opcode, pc=0x200):
        # Place a single instruction at 'pc' and execute it
        self.cpu.pc = pc
        self.cpu.ram.write_block(pc, opcode.to_bytes(2, "big"))
        self.cpu.step()

    def _check_error(self, error, opcode, pc=0x200):
        self.assertRaises(error, self._check_opcode, opcode, pc)
        # Failed instructions leave the program counter on the faulting instruction
        self.assertEqual(pc, self.cpu.pc)

    def test_cpu_init(self):
        cpu = CPU(b"\x12\x34\x56")
        self.assertEqual(0x200, cpu.pc)
        self.assertEqual(0, cpu.sp)
        self.assertEqual(SYSTEM_FONT, cpu.ram.read_block(0, 80))
        self.assertEqual(b"\x12\x34\x56\x00", cpu.ram.read_block(0x200, 4))
        self.assertFalse(cpu.shift_quirks)
        self.assertFalse(cpu.load_quirks)
        self.assertFalse(cpu.screen_wrap_quirks)

    def test_cpu_init_rom_size(self):
        cpu = CPU(b"\xFF" * 0xE00)  # Exactly fills memory
        self.assertEqual(0xFF, cpu.ram.read(0xFFF))
        self.assertRaises(OutOfBoundsError, CPU, b"\xFF" * 0xE01)

    def test_cpu_fetch(self):
        self.cpu.ram.write_block(0x200, bytearray(b"\xFF\xFE"))
        self.assertEqual(0xFFFE, self.cpu.fetch())

    def test_cpu_pc_past_end(self):
        # The last instruction in memory still runs, and the following fetch fails
        self._check_opcode(0x6005, pc=0xFFE)  # LD V0, 5
        self.assertEqual(0x5, self.cpu.v[0x0])
        self.assertEqual(0x1000, self.cpu.pc)
        self.cpu.v[0x0] = 0x0
        self.assertRaises(OutOfBoundsError, self.cpu.step)
        self.assertEqual(0x1000, self.cpu.pc)
        self.assertEqual(0x0, self.cpu.v[0x0])

    def test_cpu_pc_past_end_skip(self):
        self.cpu.v[0x1] = 0x7
        self._check_opcode(0x3107, pc=0xFFC)  # SE V1, 7 (taken)
        self.assertEqual(0x1000, self.cpu.pc)
        self.assertRaises(OutOfBoundsError, self.cpu.step)
        self.assertEqual(0x1000, self.cpu.pc)

    def test_cpu_pc_past_end_load_quirk(self):
        self.cpu = CPU(load_quirks=True)
        self.cpu.i = 0x300
        self._check_opcode(0xF065, pc=0xFFE)  # LD V0, [I]
        self.assertEqual(0x301, self.cpu.i)
        self.assertRaises(OutOfBoundsError, self.cpu.step)
        self.assertRaises(OutOfBoundsError, self.cpu.step)
        self.assertEqual(0x301, self.cpu.i)  # Failed steps don't advance I again

    def test_cpu_decode_exec_fail(self):
        for i in 0x0000, 0x0123, 0x00E1, 0x5001, 0x8008, 0x800F, 0x9001, 0xE09F, 0xE0A2, 0xF100, 0xFFFF:
            self._check_error(InvalidOpcodeError, i)

    def test_cpu_00e0(self):  # CLS
        self.cpu.framebuffer.xor_pixel(3, 3)
        self._check_opcode(0x00E0)
        self.assertTrue(self.cpu.consume_dirty_flag())
        self.assertFalse(any(pixel for row in self.cpu.read_display() for pixel in row))
        self.assertEqual(2048, sum(len(row) for row in self.cpu.read_display()))
        self.assertEqual(0x202, self.cpu.pc)

    def test_cpu_2nnn_00ee(self):  # CALL addr, RET
        self._check_opcode(0x2300, pc=0x204)
        self.assertEqual(0x300, self.cpu.pc)
        self.assertEqual(1, self.cpu.sp)
        self._check_opcode(0x00EE, pc=0x300)
        self.assertEqual(0x206, self.cpu.pc)  # Instruction after the call
        self.assertEqual(0, self.cpu.sp)

    def test_cpu_00ee_underflow(self):  # RET
        self._check_error(ProtocolViolationError, 0x00EE)

    def test_cpu_2nnn_depth(self):  # CALL addr
        # Call itself until the stack runs out
        self.cpu.ram.write_block(0x200, b"\x22\x00")

        for _ in range(16):
            self.cpu.step()

        self.assertEqual(16, self.cpu.sp)
        self.assertRaises(ProtocolViolationError, self.cpu.step)
        self.assertEqual(16, self.cpu.sp)
        self.assertEqual(0x200, self.cpu.pc)

    def test_cpu_2nnn_reserved(self):  # CALL addr
        self._check_error(OutOfBoundsError, 0x21FE)
        self.assertEqual(0, self.cpu.sp)

    def test_cpu_1nnn(self):  # JP addr
        self._check_opcode(0x1FFE)
        self.assertEqual(0xFFE, self.cpu.pc)
        self._check_opcode(0x1200)
        self.assertEqual(0x200, self.cpu.pc)

    def test_cpu_1nnn_reserved(self):  # JP addr
        self._check_error(OutOfBoundsError, 0x11FF)
        self._check_error(OutOfBoundsError, 0x1000)

    def test_cpu_bnnn(self):  # JP V0, addr
        self.cpu.v[0x0] = 0x4
        self._check_opcode(0xB300)
        self.assertEqual(0x304, self.cpu.pc)
        self.cpu.v[0x0] = 0x10
        self._check_opcode(0xB1F0)
        self.assertEqual(0x200, self.cpu.pc)

    def test_cpu_bnnn_out_of_bounds(self):  # JP V0, addr
        self._check_error(OutOfBoundsError, 0xB1FE)
        self.cpu.v[0x0] = 0xFF
        self._check_error(OutOfBoundsError, 0xBFFF)

    def test_cpu_3xkk(self):  # SE Vx, byte
        self.cpu.v[0x2] = 0x11
        self._check_opcode(0x3212)
        self.assertEqual(0x202, self.cpu.pc)
        self.cpu.v[0x2] = 0x12
        self._check_opcode(0x3212)
        self.assertEqual(0x204, self.cpu.pc)

    def test_cpu_4xkk(self):  # SNE Vx, byte
        self.cpu.v[0x2] = 0x11
        self._check_opcode(0x4212)
        self.assertEqual(0x204, self.cpu.pc)
        self.cpu.v[0x2] = 0x12
        self._check_opcode(0x4212)
        self.assertEqual(0x202, self.cpu.pc)

    def test_cpu_5xy0(self):  # SE Vx, Vy
        self.cpu.v[0x2] = 0x11
        self.cpu.v[0x3] = 0x12
        self._check_opcode(0x5230)
        self.assertEqual(0x202, self.cpu.pc)
        self.cpu.v[0x3] = 0x11
        self._check_opcode(0x5230)
        self.assertEqual(0x204, self.cpu.pc)

    def test_cpu_9xy0(self):  # SNE Vx, Vy
        self.cpu.v[0x2] = 0x15
        self.cpu.v[0x3] = 0x16
        self._check_opcode(0x9230)
        self.assertEqual(0x204, self.cpu.pc)
        self.cpu.v[0x3] = 0x15
        self._check_opcode(0x9230)
        self.assertEqual(0x202, self.cpu.pc)

    def test_cpu_6xkk(self):  # LD Vx, byte
        self._check_opcode(0x62FE)
        self.assertEqual(0xFE, self.cpu.v[0x2])

    def test_cpu_7xkk(self):  # ADD Vx, byte
        self.cpu.v[0xF] = 0x5
        self._check_opcode(0x72FE)
        self.assertEqual(0xFE, self.cpu.v[0x2])
        self._check_opcode(0x7203)
        self.assertEqual(0x01, self.cpu.v[0x2])
        self.assertEqual(0x5, self.cpu.v[0xF])  # No carry flag

    def test_cpu_8xy0(self):  # LD Vx, Vy
        self.cpu.v[0x1] = 0x1
        self.cpu.v[0x2] = 0x2
        self._check_opcode(0x8120)
        self.assertEqual(0x2, self.cpu.v[0x1])

    def _prepare_alu(self):
        self.cpu.v[0x1] = 0b10111000
        self.cpu.v[0x2] = 0b10001110
        self.cpu.v[0xF] = 0x7

    def test_cpu_8xy1(self):  # OR Vx, Vy
        self._prepare_alu()
        self._check_opcode(0x8121)
        self.assertEqual(0b10111110, self.cpu.v[0x1])
        self.assertEqual(0x7, self.cpu.v[0xF])

    def test_cpu_8xy2(self):  # AND Vx, Vy
        self._prepare_alu()
        self._check_opcode(0x8122)
        self.assertEqual(0b10001000, self.cpu.v[0x1])
        self.assertEqual(0x7, self.cpu.v[0xF])

    def test_cpu_8xy3(self):  # XOR Vx, Vy
        self._prepare_alu()
        self._check_opcode(0x8123)
        self.assertEqual(0b00110110, self.cpu.v[0x1])
        self.assertEqual(0x7, self.cpu.v[0xF])

    def test_cpu_8xy4_carry(self):  # ADD Vx, Vy (carry)
        self._prepare_alu()
        self._check_opcode(0x8124)
        self.assertEqual(0b01000110, self.cpu.v[0x1])
        self.assertEqual(0x1, self.cpu.v[0xF])

    def test_cpu_8xy4_no_carry(self):  # ADD Vx, Vy (no carry)
        self.cpu.v[0x1] = 0x1
        self.cpu.v[0xF] = 0x2  # Use Vf as an input to check flag ordering too
        self._check_opcode(0x81F4)
        self.assertEqual(0x3, self.cpu.v[0x1])
        self.assertEqual(0x0, self.cpu.v[0xF])

    def test_cpu_8xy4_exhaustive_flag(self):  # ADD Vx, Vy
        for a in range(0, 0x100, 0x11):
            for b in range(0, 0x100, 0x0F):
                self.cpu.v[0x1] = a
                self.cpu.v[0x2] = b
                self._check_opcode(0x8124)
                self.assertEqual((a + b) & 0xFF, self.cpu.v[0x1])
                self.assertEqual(int(a + b > 0xFF), self.cpu.v[0xF])

    def test_cpu_8xy5_no_borrow(self):  # SUB Vx, Vy (no borrow)
        self.cpu.v[0x1] = 0x3
        self.cpu.v[0x2] = 0x1
        self._check_opcode(0x8125)
        self.assertEqual(0x2, self.cpu.v[0x1])
        self.assertEqual(0x1, self.cpu.v[0xF])
        self.cpu.v[0x1] = 0xFF
        self.cpu.v[0xF] = 0xFF
        self._check_opcode(0x81F5)
        self.assertEqual(0x0, self.cpu.v[0x1])
        self.assertEqual(0x1, self.cpu.v[0xF])  # Equal values don't borrow

    def test_cpu_8xy5_borrow(self):  # SUB Vx, Vy (borrow)
        self.cpu.v[0x1] = 0x1
        self.cpu.v[0x2] = 0x2
        self._check_opcode(0x8125)
        self.assertEqual(0xFF, self.cpu.v[0x1])
        self.assertEqual(0x0, self.cpu.v[0xF])

    def test_cpu_8xy7(self):  # SUBN Vx, Vy
        self.cpu.v[0x1] = 0x4
        self.cpu.v[0x2] = 0x2
        self._check_opcode(0x8127)
        self.assertEqual(0xFE, self.cpu.v[0x1])
        self.assertEqual(0x2, self.cpu.v[0x2])
        self.assertEqual(0x0, self.cpu.v[0xF])
        self.cpu.v[0x1] = 0x2
        self.cpu.v[0x2] = 0x4
        self._check_opcode(0x8127)
        self.assertEqual(0x2, self.cpu.v[0x1])
        self.assertEqual(0x1, self.cpu.v[0xF])

    def test_cpu_8xy6(self):  # SHR Vx
        self.cpu.v[0x1] = 0x5
        self.cpu.v[0x2] = 0x8
        self._check_opcode(0x8126)
        self.assertEqual(0x2, self.cpu.v[0x1])
        self.assertEqual(0x8, self.cpu.v[0x2])
        self.assertEqual(0x1, self.cpu.v[0xF])

    def test_cpu_8xy6_quirk(self):  # SHR Vx, Vy
        self.cpu = CPU(shift_quirks=True)
        self.cpu.v[0x1] = 0x4
        self.cpu.v[0x2] = 0x3
        self._check_opcode(0x8126)
        self.assertEqual(0x1, self.cpu.v[0x1])
        self.assertEqual(0x3, self.cpu.v[0x2])
        self.assertEqual(0x1, self.cpu.v[0xF])

    def test_cpu_8xye(self):  # SHL Vx
        self.cpu.v[0x1] = 0x81
        self.cpu.v[0x2] = 0x1
        self._check_opcode(0x812E)
        self.assertEqual(0x02, self.cpu.v[0x1])
        self.assertEqual(0x1, self.cpu.v[0xF])

    def test_cpu_8xye_quirk(self):  # SHL Vx, Vy
        self.cpu = CPU(shift_quirks=True)
        self.cpu.v[0x1] = 0xFF
        self.cpu.v[0x2] = 0x40
        self._check_opcode(0x812E)
        self.assertEqual(0x80, self.cpu.v[0x1])
        self.assertEqual(0x40, self.cpu.v[0x2])
        self.assertEqual(0x0, self.cpu.v[0xF])

    def test_cpu_annn(self):  # LD I, addr
        self.assertEqual(0, self.cpu.i)
        self._check_opcode(0xAFF1)
        self.assertEqual(0xFF1, self.cpu.i)

    def test_cpu_cxkk(self):  # RND Vx, byte
        self._check_opcode(0xC20F)
        self.assertEqual(0x0B, self.cpu.v[0x2])
        self._check_opcode(0xC2F0)
        self.assertEqual(0xA0, self.cpu.v[0x2])

    def test_cpu_dxyn(self):  # DRW Vx, Vy, nibble
        self.cpu.i = 0  # Glyph '0'
        self._check_opcode(0xD125)
        self.assertEqual(0x0, self.cpu.v[0xF])
        self.assertTrue(self.cpu.consume_dirty_flag())
        display = self.cpu.read_display()
        self.assertEqual((True, True, True, True, False), display[0][:5])
        self.assertEqual((True, False, False, True, False), display[1][:5])

        # Drawing the same sprite again erases it and reports a collision
        self._check_opcode(0xD125)
        self.assertEqual(0x1, self.cpu.v[0xF])
        self.assertTrue(self.cpu.consume_dirty_flag())
        self.assertFalse(any(pixel for row in self.cpu.read_display() for pixel in row))

    def test_cpu_dxyn_no_pixels_still_dirty(self):  # DRW Vx, Vy, nibble
        self._check_opcode(0xD120)
        self.assertTrue(self.cpu.consume_dirty_flag())
        self.assertEqual(0x0, self.cpu.v[0xF])

    def test_cpu_dxyn_clipping(self):  # DRW Vx, Vy, nibble
        self.cpu.ram.write_block(0x300, b"\xFF\xFF")
        self.cpu.i = 0x300
        self.cpu.v[0x1] = 62
        self.cpu.v[0x2] = 31
        self._check_opcode(0xD122)
        display = self.cpu.read_display()
        self.assertEqual((True, True), display[31][62:])
        self.assertFalse(any(display[31][:62]))
        self.assertFalse(any(display[0]))

    def test_cpu_dxyn_origin_wraps(self):  # DRW Vx, Vy, nibble
        self.cpu.ram.write(0x300, 0x80)
        self.cpu.i = 0x300
        self.cpu.v[0x1] = 64 + 2
        self.cpu.v[0x2] = 32 + 3
        self._check_opcode(0xD121)
        self.assertTrue(self.cpu.read_display()[3][2])

    def test_cpu_dxyn_screen_wrap_quirk(self):  # DRW Vx, Vy, nibble
        self.cpu = CPU(screen_wrap_quirks=True)
        self.cpu.ram.write(0x300, 0xFF)
        self.cpu.i = 0x300
        self.cpu.v[0x1] = 62
        self._check_opcode(0xD121)
        row = self.cpu.read_display()[0]
        self.assertEqual((True, True), row[62:])
        self.assertEqual((True,) * 6 + (False,), row[:7])

    def test_cpu_dxyn_out_of_bounds(self):  # DRW Vx, Vy, nibble
        self.cpu.i = 0xFFE
        self._check_opcode(0xD122)
        self._check_error(OutOfBoundsError, 0xD123)

    def test_cpu_ex9e(self):  # SKP Vx
        keys = [0] * 16
        keys[0x5] = 1
        self.cpu.set_keys(keys)
        self.cpu.v[0x3] = 0x5
        self._check_opcode(0xE39E)
        self.assertEqual(0x204, self.cpu.pc)
        self.cpu.v[0x3] = 0x6
        self._check_opcode(0xE39E)
        self.assertEqual(0x202, self.cpu.pc)

    def test_cpu_exa1(self):  # SKNP Vx
        keys = [False] * 16
        keys[0x5] = True
        self.cpu.set_keys(keys)
        self.cpu.v[0x3] = 0x5
        self._check_opcode(0xE3A1)
        self.assertEqual(0x202, self.cpu.pc)
        self.cpu.v[0x3] = 0x6
        self._check_opcode(0xE3A1)
        self.assertEqual(0x204, self.cpu.pc)

    def test_cpu_ex9e_missing_key(self):  # SKP Vx
        self.cpu.v[0x3] = 0x10
        self._check_error(OutOfBoundsError, 0xE39E)

    def test_cpu_set_keys_wrong_length(self):
        self.assertRaises(InputContractViolationError, self.cpu.set_keys, [0] * 8)

    def test_cpu_fx07_fx15(self):  # LD Vx, DT / LD DT, Vx
        self.cpu.v[0x4] = 0x2
        self._check_opcode(0xF415)
        self.cpu.tick_timers()
        self._check_opcode(0xF507)
        self.assertEqual(0x1, self.cpu.v[0x5])
        self.cpu.tick_timers()
        self.cpu.tick_timers()
        self._check_opcode(0xF507)
        self.assertEqual(0x0, self.cpu.v[0x5])

    def test_cpu_fx18(self):  # LD ST, Vx
        self.assertFalse(self.cpu.should_sound_tone())
        self.cpu.v[0x4] = 0x1
        self._check_opcode(0xF418)
        self.assertTrue(self.cpu.should_sound_tone())
        self.cpu.tick_timers()
        self.assertFalse(self.cpu.should_sound_tone())

    def test_cpu_fx0a(self):  # LD Vx, K
        self.cpu.ram.write_block(0x200, b"\xF3\x0A")
        self.cpu.step()
        self.assertEqual(0x200, self.cpu.pc)
        self.assertTrue(self.cpu.is_waiting_for_key())

        # Without a key, the instruction just runs again
        self.cpu.step()
        self.assertEqual(0x200, self.cpu.pc)
        self.assertTrue(self.cpu.is_waiting_for_key())

        self.cpu.deliver_captured_key(0x7)
        self.cpu.step()
        self.assertEqual(0x7, self.cpu.v[0x3])
        self.assertFalse(self.cpu.is_waiting_for_key())
        self.assertEqual(0x202, self.cpu.pc)

    def test_cpu_deliver_key_while_idle(self):
        self.assertRaises(ProtocolViolationError, self.cpu.deliver_captured_key, 0x1)

    def test_cpu_fx1e(self):  # ADD I, Vx
        self.cpu.i = 0xFFE
        self.cpu.v[0x1] = 0x1
        self._check_opcode(0xF11E)
        self.assertEqual(0xFFF, self.cpu.i)
        self._check_error(OutOfBoundsError, 0xF11E)
        self.assertEqual(0xFFF, self.cpu.i)

    def test_cpu_fx29(self):  # LD F, Vx
        self.cpu.v[0xA] = 0xA
        self._check_opcode(0xFA29)
        self.assertEqual(50, self.cpu.i)
        self.assertEqual(SYSTEM_FONT[50:55], self.cpu.ram.read_block(self.cpu.i, 5))

    def test_cpu_fx33(self):  # LD B, Vx
        self.cpu.i = 0x300
        self.cpu.v[0x1] = 157
        self._check_opcode(0xF133)
        self.assertEqual(b"\x01\x05\x07", self.cpu.ram.read_block(0x300, 3))
        self.assertEqual(0x300, self.cpu.i)

    def test_cpu_fx33_out_of_bounds(self):  # LD B, Vx
        self.cpu.i = 0xFFE
        self.cpu.v[0x1] = 0xFF
        self._check_error(OutOfBoundsError, 0xF133)
        self.assertEqual(b"\x00\x00", self.cpu.ram.read_block(0xFFE, 2))

    def test_cpu_fx55(self):  # LD [I], Vx
        for reg in range(16):
            self.cpu.v[reg] = reg + 1

        self.cpu.i = 0x300
        self._check_opcode(0xF255)
        self.assertEqual(b"\x01\x02\x03\x00", self.cpu.ram.read_block(0x300, 4))
        self.assertEqual(0x300, self.cpu.i)

    def test_cpu_fx65(self):  # LD Vx, [I]
        self.cpu.ram.write_block(0x300, b"\x0A\x0B\x0C\x0D")
        self.cpu.i = 0x300
        self._check_opcode(0xF265)
        self.assertEqual(b"\x0A\x0B\x0C\x00", bytes(self.cpu.v[:4]))
        self.assertEqual(0x300, self.cpu.i)

    def test_cpu_fx55_fx65_load_quirk(self):  # LD [I], Vx / LD Vx, [I]
        self.cpu = CPU(load_quirks=True)
        self.cpu.v[0x0] = 0x9
        self.cpu.i = 0x300
        self._check_opcode(0xF055)
        self.assertEqual(0x301, self.cpu.i)
        self._check_opcode(0xF365)
        self.assertEqual(0x305, self.cpu.i)

    def test_cpu_fx55_fx65_out_of_bounds(self):  # LD [I], Vx / LD Vx, [I]
        self.cpu.i = 0xFFD
        self._check_opcode(0xF155)
        self._check_error(OutOfBoundsError, 0xF255)
        self._check_error(OutOfBoundsError, 0xF265)

    # Whole programs

    def test_cpu_program_add_immediate(self):
        cpu = CPU(b"\x6A\x02\x7A\x05")
        cpu.v[0xF] = 0x3
        cpu.step()
        cpu.step()
        self.assertEqual(7, cpu.v[0xA])
        self.assertEqual(0x3, cpu.v[0xF])
        self.assertEqual(0x204, cpu.pc)

    def test_cpu_program_add_carry(self):
        cpu = CPU(b"\x8A\xB4")
        cpu.v[0xA] = 0xFF
        cpu.v[0xB] = 0x01
        cpu.step()
        self.assertEqual(0x00, cpu.v[0xA])
        self.assertEqual(0x1, cpu.v[0xF])

    def test_cpu_program_subroutine(self):
        # 200: CALL 206, 202: LD V1, 1, 204: JP 204, 206: LD V0, 5, 208: RET
        cpu = CPU(b"\x22\x06\x61\x01\x12\x04\x60\x05\x00\xEE")

        for _ in range(5):
            cpu.step()

        self.assertEqual(0x5, cpu.v[0x0])
        self.assertEqual(0x1, cpu.v[0x1])
        self.assertEqual(0x204, cpu.pc)
        self.assertEqual(0, cpu.sp)


if __name__ == "__main__":
    unittest.main()
