#!/usr/bin/env python3

"""
Instruction Decoder

Splits a raw 16-bit instruction word into its fields.  Field positions are the
same for every instruction, so this does no validation at all, and the CPU
decides whether the combination actually means anything.

    n   = Nibble (bits 0-3)
    kk  = Byte (bits 0-7)
    nnn = Address (bits 0-11)
    x/y = Register (0-15), bits 8-11 and 4-7

Within the 0x0, 0x5, 0x8, 0x9, 0xE and 0xF families, the operation is chosen by
the low bits too.  'key' is the word with the operand bits masked out, which is
what the CPU looks up in its instruction table.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from collections import namedtuple

# Operand bitmasks for the sub-dispatched families
FAMILY_MASKS = {
    0x0: 0xFFFF,  # Exact match
    0x5: 0xF00F,
    0x8: 0xF00F,
    0x9: 0xF00F,
    0xE: 0xF0FF,
    0xF: 0xF0FF
}

# Disassembly formats, keyed on masked instruction
MNEMONICS = {
    0x00E0: "CLS",
    0x00EE: "RET",
    0x1000: "JP 0x{addr:03x}",
    0x2000: "CALL 0x{addr:03x}",
    0x3000: "SE V{x:01x}, 0x{byte:02x}",
    0x4000: "SNE V{x:01x}, 0x{byte:02x}",
    0x5000: "SE V{x:01x}, V{y:01x}",
    0x6000: "LD V{x:01x}, 0x{byte:02x}",
    0x7000: "ADD V{x:01x}, 0x{byte:02x}",
    0x8000: "LD V{x:01x}, V{y:01x}",
    0x8001: "OR V{x:01x}, V{y:01x}",
    0x8002: "AND V{x:01x}, V{y:01x}",
    0x8003: "XOR V{x:01x}, V{y:01x}",
    0x8004: "ADD V{x:01x}, V{y:01x}",
    0x8005: "SUB V{x:01x}, V{y:01x}",
    0x8006: "SHR V{x:01x}, V{y:01x}",
    0x8007: "SUBN V{x:01x}, V{y:01x}",
    0x800E: "SHL V{x:01x}, V{y:01x}",
    0x9000: "SNE V{x:01x}, V{y:01x}",
    0xA000: "LD I, 0x{addr:03x}",
    0xB000: "JP V0, 0x{addr:03x}",
    0xC000: "RND V{x:01x}, 0x{byte:02x}",
    0xD000: "DRW V{x:01x}, V{y:01x}, 0x{nibble:01x}",
    0xE09E: "SKP V{x:01x}",
    0xE0A1: "SKNP V{x:01x}",
    0xF007: "LD V{x:01x}, DT",
    0xF00A: "LD V{x:01x}, K",
    0xF015: "LD DT, V{x:01x}",
    0xF018: "LD ST, V{x:01x}",
    0xF01E: "ADD I, V{x:01x}",
    0xF029: "LD F, V{x:01x}",
    0xF033: "LD B, V{x:01x}",
    0xF055: "LD [I], V{x:01x}",
    0xF065: "LD V{x:01x}, [I]"
}


class Instruction(namedtuple("Instruction", ["opcode", "family", "x", "y", "addr", "byte", "nibble"])):
    __slots__ = ()

    @property
    def key(self):
        mask = FAMILY_MASKS.get(self.family)

        if mask is None:
            # Only disassemble() uses this.  The CPU dispatches these families on the top nibble alone
            return self.family << 12

        return self.opcode & mask

    def disassemble(self):
        fmt = MNEMONICS.get(self.key)

        if fmt is None:
            return "???"

        return fmt.format(**self._asdict())


def decode(opcode):
    return Instruction(
        opcode=opcode,
        family=(opcode & 0xF000) >> 12,
        x=(opcode & 0xF00) >> 8,
        y=(opcode & 0xF0) >> 4,
        addr=opcode & 0xFFF,
        byte=opcode & 0xFF,
        nibble=opcode & 0xF
    )
