"""Instruction set tables: registers, real instructions, pseudo-instructions and directives."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class InstrFormat(Enum):
    """Operand layout and encoding shape of a real instruction."""

    R_NONE = "r_none"
    R_RS = "r_rs"
    R_RD = "r_rd"
    R_RD_RS = "r_rd_rs"
    R_RS_RT = "r_rs_rt"
    R_RD_RS_RT = "r_rd_rs_rt"
    R_RD_RT_SA = "r_rd_rt_sa"
    R_RD_RT_RS = "r_rd_rt_rs"
    I_RT_RS_IMM = "i_rt_rs_imm"
    I_RT_IMM = "i_rt_imm"
    I_RS_RT_LBL = "i_rs_rt_lbl"
    I_RS_LBL = "i_rs_lbl"
    I_RT_MEM = "i_rt_mem"
    J_LBL = "j_lbl"
    REGIMM_RS_LBL = "regimm_rs_lbl"
    REGIMM_RS_IMM = "regimm_rs_imm"


_F = InstrFormat


class InstrKind(Enum):
    """A real instruction: its mnemonic, format and code.

    The code is the funct field for R-type, the major opcode for I- and
    J-type, and the rt sub-operation for REGIMM instructions.
    """

    # R-type (major opcode 0, code = funct)
    SLL = ("sll", _F.R_RD_RT_SA, 0x00)
    SRL = ("srl", _F.R_RD_RT_SA, 0x02)
    SRA = ("sra", _F.R_RD_RT_SA, 0x03)
    SLLV = ("sllv", _F.R_RD_RT_RS, 0x04)
    SRLV = ("srlv", _F.R_RD_RT_RS, 0x06)
    SRAV = ("srav", _F.R_RD_RT_RS, 0x07)
    JR = ("jr", _F.R_RS, 0x08)
    JALR = ("jalr", _F.R_RD_RS, 0x09)
    MOVZ = ("movz", _F.R_RD_RS_RT, 0x0A)
    MOVN = ("movn", _F.R_RD_RS_RT, 0x0B)
    SYSCALL = ("syscall", _F.R_NONE, 0x0C)
    BREAK = ("break", _F.R_NONE, 0x0D)
    MFHI = ("mfhi", _F.R_RD, 0x10)
    MTHI = ("mthi", _F.R_RS, 0x11)
    MFLO = ("mflo", _F.R_RD, 0x12)
    MTLO = ("mtlo", _F.R_RS, 0x13)
    MULT = ("mult", _F.R_RS_RT, 0x18)
    MULTU = ("multu", _F.R_RS_RT, 0x19)
    DIV = ("div", _F.R_RS_RT, 0x1A)
    DIVU = ("divu", _F.R_RS_RT, 0x1B)
    ADD = ("add", _F.R_RD_RS_RT, 0x20)
    ADDU = ("addu", _F.R_RD_RS_RT, 0x21)
    SUB = ("sub", _F.R_RD_RS_RT, 0x22)
    SUBU = ("subu", _F.R_RD_RS_RT, 0x23)
    AND = ("and", _F.R_RD_RS_RT, 0x24)
    OR = ("or", _F.R_RD_RS_RT, 0x25)
    XOR = ("xor", _F.R_RD_RS_RT, 0x26)
    NOR = ("nor", _F.R_RD_RS_RT, 0x27)
    SLT = ("slt", _F.R_RD_RS_RT, 0x2A)
    SLTU = ("sltu", _F.R_RD_RS_RT, 0x2B)
    TGE = ("tge", _F.R_RS_RT, 0x30)
    TGEU = ("tgeu", _F.R_RS_RT, 0x31)
    TLT = ("tlt", _F.R_RS_RT, 0x32)
    TLTU = ("tltu", _F.R_RS_RT, 0x33)
    TEQ = ("teq", _F.R_RS_RT, 0x34)
    TNE = ("tne", _F.R_RS_RT, 0x36)

    # J-type (code = opcode)
    J = ("j", _F.J_LBL, 0x02)
    JAL = ("jal", _F.J_LBL, 0x03)

    # I-type (code = opcode)
    BEQ = ("beq", _F.I_RS_RT_LBL, 0x04)
    BNE = ("bne", _F.I_RS_RT_LBL, 0x05)
    BLEZ = ("blez", _F.I_RS_LBL, 0x06)
    BGTZ = ("bgtz", _F.I_RS_LBL, 0x07)
    ADDI = ("addi", _F.I_RT_RS_IMM, 0x08)
    ADDIU = ("addiu", _F.I_RT_RS_IMM, 0x09)
    SLTI = ("slti", _F.I_RT_RS_IMM, 0x0A)
    SLTIU = ("sltiu", _F.I_RT_RS_IMM, 0x0B)
    ANDI = ("andi", _F.I_RT_RS_IMM, 0x0C)
    ORI = ("ori", _F.I_RT_RS_IMM, 0x0D)
    XORI = ("xori", _F.I_RT_RS_IMM, 0x0E)
    LUI = ("lui", _F.I_RT_IMM, 0x0F)
    BEQL = ("beql", _F.I_RS_RT_LBL, 0x14)
    BNEL = ("bnel", _F.I_RS_RT_LBL, 0x15)
    BLEZL = ("blezl", _F.I_RS_LBL, 0x16)
    BGTZL = ("bgtzl", _F.I_RS_LBL, 0x17)
    LB = ("lb", _F.I_RT_MEM, 0x20)
    LH = ("lh", _F.I_RT_MEM, 0x21)
    LWL = ("lwl", _F.I_RT_MEM, 0x22)
    LW = ("lw", _F.I_RT_MEM, 0x23)
    LBU = ("lbu", _F.I_RT_MEM, 0x24)
    LHU = ("lhu", _F.I_RT_MEM, 0x25)
    LWR = ("lwr", _F.I_RT_MEM, 0x26)
    LWU = ("lwu", _F.I_RT_MEM, 0x27)
    SB = ("sb", _F.I_RT_MEM, 0x28)
    SH = ("sh", _F.I_RT_MEM, 0x29)
    SWL = ("swl", _F.I_RT_MEM, 0x2A)
    SW = ("sw", _F.I_RT_MEM, 0x2B)
    SWR = ("swr", _F.I_RT_MEM, 0x2E)

    # REGIMM (major opcode 1, code = rt sub-op)
    BLTZ = ("bltz", _F.REGIMM_RS_LBL, 0x00)
    BGEZ = ("bgez", _F.REGIMM_RS_LBL, 0x01)
    BLTZL = ("bltzl", _F.REGIMM_RS_LBL, 0x02)
    BGEZL = ("bgezl", _F.REGIMM_RS_LBL, 0x03)
    TGEI = ("tgei", _F.REGIMM_RS_IMM, 0x08)
    TLTI = ("tlti", _F.REGIMM_RS_IMM, 0x0A)
    TLTIU = ("tltiu", _F.REGIMM_RS_IMM, 0x0B)
    TEQI = ("teqi", _F.REGIMM_RS_IMM, 0x0C)
    TNEI = ("tnei", _F.REGIMM_RS_IMM, 0x0E)
    BLTZAL = ("bltzal", _F.REGIMM_RS_LBL, 0x10)
    BGEZAL = ("bgezal", _F.REGIMM_RS_LBL, 0x11)
    BLTZALL = ("bltzall", _F.REGIMM_RS_LBL, 0x12)

    def __init__(self, mnemonic: str, fmt: InstrFormat, code: int) -> None:
        self.mnemonic = mnemonic
        self.format = fmt
        self.code = code


class PseudoKind(Enum):
    """A pseudo-instruction that expands into one or two real instructions."""

    NOP = "nop"
    MOVE = "move"
    LI = "li"
    LA = "la"
    B = "b"
    BAL = "bal"
    BEQZ = "beqz"
    BNEZ = "bnez"
    NEG = "neg"
    NEGU = "negu"
    NOT = "not"
    BLT = "blt"
    BLE = "ble"
    BGT = "bgt"
    BGE = "bge"

    @property
    def mnemonic(self) -> str:
        return self.value


class DirectiveKind(Enum):
    """An assembler directive."""

    TEXT = ".text"
    DATA = ".data"
    WORD = ".word"
    HALF = ".half"
    BYTE = ".byte"
    ASCII = ".ascii"
    ASCIIZ = ".asciiz"
    SPACE = ".space"
    ALIGN = ".align"
    GLOBL = ".globl"

    @property
    def mnemonic(self) -> str:
        return self.value


REGISTER_NAMES = (
    "zero", "at", "v0", "v1", "a0", "a1", "a2", "a3",
    "t0", "t1", "t2", "t3", "t4", "t5", "t6", "t7",
    "s0", "s1", "s2", "s3", "s4", "s5", "s6", "s7",
    "t8", "t9", "k0", "k1", "gp", "sp", "fp", "ra",
)

_REGISTERS = {
    **{str(number): number for number in range(32)},
    **{name: number for number, name in enumerate(REGISTER_NAMES)},
}
_INSTRUCTIONS = {kind.mnemonic: kind for kind in InstrKind}
_PSEUDOS = {kind.value: kind for kind in PseudoKind}
_DIRECTIVES = {kind.value: kind for kind in DirectiveKind}


def register_number(name: str) -> Optional[int]:
    """Return the number of a register given as ``$name``, ``name`` or a number; None if unknown."""
    return _REGISTERS.get(name[1:] if name.startswith("$") else name)


def lookup_instruction(mnemonic: str) -> Optional[InstrKind]:
    """Return the real instruction with this mnemonic, or None."""
    return _INSTRUCTIONS.get(mnemonic)


def lookup_pseudo(mnemonic: str) -> Optional[PseudoKind]:
    """Return the pseudo-instruction with this mnemonic, or None."""
    return _PSEUDOS.get(mnemonic)


def lookup_directive(name: str) -> Optional[DirectiveKind]:
    """Return the directive named ``.name`` (the dot may be omitted), or None."""
    return _DIRECTIVES.get(name if name.startswith(".") else "." + name)