"""Instruction decoder for the CHIP-8 instruction set.

Every 16-bit value decodes: the top nibble selects the instruction family and
the low nibble or byte selects the variant within families 0, 8, E and F.
Sub-selectors the machine does not implement decode to ``UNKNOWN``, which the
registry executes as a no-op.

Field layout:
    opcode = 0xKXYN
    NNN = opcode & 0x0FFF   (address / 12-bit literal)
    NN  = opcode & 0x00FF   (byte literal)
    N   = opcode & 0x000F   (nibble literal)
    X   = (opcode >> 8) & 0xF
    Y   = (opcode >> 4) & 0xF
"""

import enum
from dataclasses import dataclass
from typing import Dict


class InstructionFamily(enum.Enum):
    """Tag for every instruction the execution engine distinguishes."""
    CLS = "00E0"
    RET = "00EE"
    SYS = "0NNN"
    JP = "1NNN"
    CALL = "2NNN"
    SE_BYTE = "3XNN"
    SNE_BYTE = "4XNN"
    SE_REG = "5XY0"
    LD_BYTE = "6XNN"
    ADD_BYTE = "7XNN"
    LD_REG = "8XY0"
    OR = "8XY1"
    AND = "8XY2"
    XOR = "8XY3"
    ADD_REG = "8XY4"
    SUB = "8XY5"
    SHR = "8XY6"
    SUBN = "8XY7"
    SHL = "8XYE"
    SNE_REG = "9XY0"
    LD_I = "ANNN"
    JP_V0 = "BNNN"
    RND = "CXNN"
    DRW = "DXYN"
    SKP = "EX9E"
    SKNP = "EXA1"
    LD_VX_DT = "FX07"
    LD_VX_K = "FX0A"
    LD_DT_VX = "FX15"
    LD_ST_VX = "FX18"
    ADD_I = "FX1E"
    LD_F = "FX29"
    LD_B = "FX33"
    STORE_REGS = "FX55"
    LOAD_REGS = "FX65"
    UNKNOWN = "????"


# Top nibbles whose family does not depend on a sub-selector
_FIXED_FAMILIES: Dict[int, InstructionFamily] = {
    0x1: InstructionFamily.JP,
    0x2: InstructionFamily.CALL,
    0x3: InstructionFamily.SE_BYTE,
    0x4: InstructionFamily.SNE_BYTE,
    0x5: InstructionFamily.SE_REG,
    0x6: InstructionFamily.LD_BYTE,
    0x7: InstructionFamily.ADD_BYTE,
    0x9: InstructionFamily.SNE_REG,
    0xA: InstructionFamily.LD_I,
    0xB: InstructionFamily.JP_V0,
    0xC: InstructionFamily.RND,
    0xD: InstructionFamily.DRW,
}

_ALU_FAMILIES: Dict[int, InstructionFamily] = {
    0x0: InstructionFamily.LD_REG,
    0x1: InstructionFamily.OR,
    0x2: InstructionFamily.AND,
    0x3: InstructionFamily.XOR,
    0x4: InstructionFamily.ADD_REG,
    0x5: InstructionFamily.SUB,
    0x6: InstructionFamily.SHR,
    0x7: InstructionFamily.SUBN,
    0xE: InstructionFamily.SHL,
}

_KEY_FAMILIES: Dict[int, InstructionFamily] = {
    0x9E: InstructionFamily.SKP,
    0xA1: InstructionFamily.SKNP,
}

_MISC_FAMILIES: Dict[int, InstructionFamily] = {
    0x07: InstructionFamily.LD_VX_DT,
    0x0A: InstructionFamily.LD_VX_K,
    0x15: InstructionFamily.LD_DT_VX,
    0x18: InstructionFamily.LD_ST_VX,
    0x1E: InstructionFamily.ADD_I,
    0x29: InstructionFamily.LD_F,
    0x33: InstructionFamily.LD_B,
    0x55: InstructionFamily.STORE_REGS,
    0x65: InstructionFamily.LOAD_REGS,
}


@dataclass(frozen=True)
class Instruction:
    """Decoded fields of one opcode.

    Attributes:
        opcode: Raw 16-bit opcode
        family: Instruction family tag used for dispatch
        nnn: Low 12 bits
        nn: Low 8 bits
        n: Low 4 bits
        x: Bits 8-11
        y: Bits 4-7
    """
    opcode: int
    family: InstructionFamily
    nnn: int
    nn: int
    n: int
    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.opcode:04X} {self.family.name}"

    def describe(self) -> str:
        """Mnemonic with operands, e.g. ``ADD_REG V1, V2`` or ``JP 0x2A0``."""
        pattern = self.family.value
        operands = []
        if "X" in pattern:
            operands.append(f"V{self.x:X}")
        if "Y" in pattern:
            operands.append(f"V{self.y:X}")
        if "NNN" in pattern:
            operands.append(f"0x{self.nnn:03X}")
        elif "NN" in pattern:
            operands.append(f"0x{self.nn:02X}")
        elif "N" in pattern:
            operands.append(str(self.n))
        if not operands:
            return self.family.name
        return f"{self.family.name} {', '.join(operands)}"


def classify(opcode: int) -> InstructionFamily:
    """Return the instruction family for a 16-bit opcode."""
    top = (opcode >> 12) & 0xF

    if top in _FIXED_FAMILIES:
        return _FIXED_FAMILIES[top]
    if top == 0x0:
        if opcode == 0x00E0:
            return InstructionFamily.CLS
        if opcode == 0x00EE:
            return InstructionFamily.RET
        return InstructionFamily.SYS
    if top == 0x8:
        return _ALU_FAMILIES.get(opcode & 0xF, InstructionFamily.UNKNOWN)
    if top == 0xE:
        return _KEY_FAMILIES.get(opcode & 0xFF, InstructionFamily.UNKNOWN)
    return _MISC_FAMILIES.get(opcode & 0xFF, InstructionFamily.UNKNOWN)


def decode(opcode: int) -> Instruction:
    """Decode a raw opcode into its fields.

    Args:
        opcode: 16-bit opcode (higher bits are ignored)

    Returns:
        Instruction with all fields populated
    """
    opcode &= 0xFFFF
    return Instruction(
        opcode=opcode,
        family=classify(opcode),
        nnn=opcode & 0x0FFF,
        nn=opcode & 0x00FF,
        n=opcode & 0x000F,
        x=(opcode >> 8) & 0x0F,
        y=(opcode >> 4) & 0x0F,
    )
