"""Parsed program representation consumed by the assembler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple, Union

from .isa import DirectiveKind, InstrKind, PseudoKind


@dataclass(frozen=True)
class Location:
    """A position in the source text."""

    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class OperandKind(Enum):
    REG = auto()
    IMM = auto()
    LABEL = auto()
    MEM = auto()


@dataclass(frozen=True)
class Operand:
    """One instruction or directive operand.

    ``reg`` is the register for REG and the base register for MEM;
    ``imm`` is the value for IMM and the offset for MEM.
    """

    kind: OperandKind
    reg: int = 0
    imm: int = 0
    label: str = ""
    loc: Location = field(default=Location())

    def __post_init__(self) -> None:
        if self.kind in (OperandKind.REG, OperandKind.MEM) and not 0 <= self.reg <= 31:
            raise ValueError(f"register number out of range: {self.reg}")
        if self.kind is OperandKind.LABEL and not self.label:
            raise ValueError("label operand needs a name")

    @classmethod
    def register(cls, reg: int, loc: Location = Location()) -> "Operand":
        return cls(OperandKind.REG, reg=reg, loc=loc)

    @classmethod
    def immediate(cls, value: int, loc: Location = Location()) -> "Operand":
        return cls(OperandKind.IMM, imm=value, loc=loc)

    @classmethod
    def label_ref(cls, name: str, loc: Location = Location()) -> "Operand":
        return cls(OperandKind.LABEL, label=name, loc=loc)

    @classmethod
    def memory(cls, base: int, offset: int = 0, loc: Location = Location()) -> "Operand":
        return cls(OperandKind.MEM, reg=base, imm=offset, loc=loc)


class StmtKind(Enum):
    LABEL_DEF = auto()
    INSTR = auto()
    PSEUDO = auto()
    SECTION = auto()
    DATA_WORD = auto()
    DATA_HALF = auto()
    DATA_BYTE = auto()
    DATA_ASCII = auto()
    DATA_ASCIIZ = auto()
    DATA_SPACE = auto()
    ALIGN = auto()
    GLOBL = auto()


_ALIGNMENT = {
    StmtKind.INSTR: 4,
    StmtKind.PSEUDO: 4,
    StmtKind.DATA_WORD: 4,
    StmtKind.DATA_HALF: 2,
}


@dataclass(frozen=True)
class Stmt:
    """One source statement.

    ``sub`` names the instruction, pseudo-instruction or section directive;
    ``text`` holds the label name or the still-escaped string literal body.
    """

    kind: StmtKind
    sub: Optional[Union[InstrKind, PseudoKind, DirectiveKind]] = None
    operands: Tuple[Operand, ...] = ()
    text: str = ""
    loc: Location = field(default=Location())

    def __post_init__(self) -> None:
        object.__setattr__(self, "operands", tuple(self.operands))

    @property
    def alignment(self) -> int:
        """Byte alignment the statement's output requires."""
        return _ALIGNMENT.get(self.kind, 1)


@dataclass(frozen=True)
class Diagnostic:
    """An error reported at a source location."""

    loc: Location
    message: str

    def __str__(self) -> str:
        return f"{self.loc}: {self.message}"