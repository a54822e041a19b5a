"""Two-pass assembler: lay out sections and labels, then encode the image."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .encoding import MASK32, EncodingError, align_up, decode_string, decoded_byte_count
from .instructions import _diagnostic, encode_instruction
from .isa import DirectiveKind
from .program import Diagnostic, Location, Operand, OperandKind, Stmt, StmtKind
from .pseudo import expand_pseudo, pseudo_size_words

DEFAULT_BASE = 0x00400000


@dataclass(frozen=True)
class LabelEntry:
    """A defined label and the absolute address it names."""

    name: str
    addr: int
    loc: Location = Location()


class _Section(Enum):
    TEXT = "text"
    DATA = "data"


def _section_of(stmt: Stmt) -> _Section:
    return _Section.TEXT if stmt.sub is DirectiveKind.TEXT else _Section.DATA


class Assembler:
    """Assembles parsed statements into a word image: text followed by data.

    Errors do not stop assembly; they are collected in ``errors`` and the
    affected words are left as zero.
    """

    def __init__(self, base_address: int = DEFAULT_BASE) -> None:
        if not 0 <= base_address <= MASK32:
            raise ValueError(f"base address out of 32-bit range: {base_address:#x}")
        self._base = base_address
        self._labels: List[LabelEntry] = []
        self._image: List[int] = []
        self._errors: List[Diagnostic] = []
        self._text_size = 0
        self._data_size = 0
        self._data_base = base_address
        self._text_pc = base_address
        self._data_off = 0

    # -- results -----------------------------------------------------------

    @property
    def bytecode(self) -> Tuple[int, ...]:
        return tuple(self._image)

    @property
    def labels(self) -> Tuple[LabelEntry, ...]:
        return tuple(self._labels)

    @property
    def errors(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._errors)

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    @property
    def base_address(self) -> int:
        return self._base

    @property
    def text_end_address(self) -> int:
        return (self._base + self._text_size) & MASK32

    # -- driver ------------------------------------------------------------

    def assemble(self, stmts: Iterable[Stmt]) -> Tuple[int, ...]:
        """Assemble ``stmts`` and return the resulting word image."""
        program = tuple(stmts)
        self._labels = []
        self._image = []
        self._errors = []
        self._layout(program)
        self._encode(program)
        return self.bytecode

    # -- helpers -----------------------------------------------------------

    def _record(self, loc: Location, message: str) -> None:
        self._errors.append(Diagnostic(loc, message))

    def _resolve(self, name: str) -> Optional[int]:
        return next((entry.addr for entry in self._labels if entry.name == name), None)

    # -- pass 1: layout ----------------------------------------------------

    def _layout(self, stmts: Sequence[Stmt]) -> None:
        pending: List[Stmt] = []
        placed: List[Tuple[Stmt, int, _Section]] = []
        cursor = {_Section.TEXT: 0, _Section.DATA: 0}
        section = _Section.TEXT

        def commit(offset: int) -> None:
            placed.extend((label, offset, section) for label in pending)
            pending.clear()

        for stmt in stmts:
            if stmt.kind is StmtKind.LABEL_DEF:
                pending.append(stmt)
                continue

            ops = stmt.operands
            offset = align_up(cursor[section], stmt.alignment)

            if stmt.kind is StmtKind.ALIGN and len(ops) == 1 and ops[0].kind is OperandKind.IMM:
                exponent = ops[0].imm
                if 0 <= exponent <= 16:
                    offset = align_up(offset, 1 << exponent)
                else:
                    self._record(stmt.loc, ".align argument out of range")

            commit(offset)

            kind = stmt.kind
            if kind is StmtKind.INSTR:
                if section is not _Section.TEXT:
                    self._record(stmt.loc, "instruction outside .text")
                offset += 4
            elif kind is StmtKind.PSEUDO:
                if section is not _Section.TEXT:
                    self._record(stmt.loc, "pseudo instruction outside .text")
                offset += 4 * pseudo_size_words(stmt.sub, ops)
            elif kind is StmtKind.DATA_WORD:
                offset += 4 * len(ops)
            elif kind is StmtKind.DATA_HALF:
                offset += 2 * len(ops)
            elif kind is StmtKind.DATA_BYTE:
                offset += len(ops)
            elif kind is StmtKind.DATA_ASCII:
                offset += decoded_byte_count(stmt.text)
            elif kind is StmtKind.DATA_ASCIIZ:
                offset += decoded_byte_count(stmt.text) + 1
            elif kind is StmtKind.DATA_SPACE:
                if ops and ops[0].kind is OperandKind.IMM:
                    if ops[0].imm < 0:
                        self._record(stmt.loc, ".space argument must be non-negative")
                    else:
                        offset += ops[0].imm

            cursor[section] = offset & MASK32
            if kind is StmtKind.SECTION:
                section = _section_of(stmt)

        commit(cursor[section])

        self._text_size = align_up(cursor[_Section.TEXT], 4)
        self._data_size = cursor[_Section.DATA]
        self._data_base = (self._base + self._text_size) & MASK32

        for label, offset, where in placed:
            start = self._base if where is _Section.TEXT else self._data_base
            self._labels.append(LabelEntry(label.text, (start + offset) & MASK32, label.loc))

        seen: Counter = Counter()
        for entry in self._labels:
            for _ in range(seen[entry.name]):
                self._record(entry.loc, "duplicate label")
            seen[entry.name] += 1

    # -- pass 2: emission --------------------------------------------------

    def _emit_text_word(self, word: int, loc: Location) -> None:
        index = ((self._text_pc - self._base) & MASK32) // 4
        if index >= len(self._image):
            self._record(loc, "internal: text overflow")
            return
        self._image[index] = word & MASK32
        self._text_pc = (self._text_pc + 4) & MASK32

    def _data_index(self) -> int:
        return self._text_size // 4 + self._data_off // 4

    def _emit_data_byte(self, byte: int) -> bool:
        index = self._data_index()
        if index >= len(self._image):
            return False
        shift = (3 - (self._data_off & 3)) * 8
        self._image[index] = (self._image[index] & ~(0xFF << shift) & MASK32) | ((byte & 0xFF) << shift)
        self._data_off += 1
        return True

    def _emit_data_word(self, word: int) -> bool:
        if self._data_off & 3:
            return False
        index = self._data_index()
        if index >= len(self._image):
            return False
        self._image[index] = word & MASK32
        self._data_off += 4
        return True

    def _pad_data(self, alignment: int) -> bool:
        while self._data_off % alignment:
            if not self._emit_data_byte(0):
                return False
        return True

    def _align_text(self, alignment: int) -> None:
        offset = (self._text_pc - self._base) & MASK32
        self._text_pc = (self._base + align_up(offset, alignment)) & MASK32

    def _encode_instr(self, stmt: Stmt) -> None:
        try:
            word = encode_instruction(stmt.sub, stmt.operands, self._text_pc, self._resolve, stmt.loc)
        except EncodingError as err:
            self._errors.append(_diagnostic(err, stmt.loc))
            return
        self._emit_text_word(word, stmt.loc)

    def _encode_pseudo(self, stmt: Stmt) -> None:
        words, diagnostics = expand_pseudo(
            stmt.sub, stmt.operands, self._text_pc, self._resolve, stmt.loc
        )
        self._errors.extend(diagnostics)
        for word in words:
            self._emit_text_word(word, stmt.loc)

    def _encode_data_word(self, ops: Sequence[Operand], loc: Location) -> None:
        for op in ops:
            value = 0
            if op.kind is OperandKind.IMM:
                value = op.imm & MASK32
            elif op.kind is OperandKind.LABEL:
                resolved = self._resolve(op.label)
                if resolved is None:
                    self._record(op.loc, "undefined label")
                else:
                    value = resolved
            else:
                self._record(op.loc, ".word value must be integer or label")
            if not self._emit_data_word(value):
                self._record(loc, "internal: data overflow")
                return

    def _encode_data_small(
        self, ops: Sequence[Operand], loc: Location, low: int, high: int, size: int, name: str
    ) -> None:
        for op in ops:
            if op.kind is not OperandKind.IMM:
                self._record(op.loc, "expected immediate operand")
                continue
            value = op.imm
            if not low <= value <= high:
                self._record(op.loc, f"{name} value out of range ({size * 8} bits)")
                value = 0
            for byte in (value & ((1 << (8 * size)) - 1)).to_bytes(size, "big"):
                if not self._emit_data_byte(byte):
                    self._record(loc, "internal: data overflow")
                    return

    def _encode_data_string(self, text: str, zero_terminated: bool, loc: Location) -> None:
        try:
            for byte in decode_string(text):
                if not self._emit_data_byte(byte):
                    self._record(loc, "internal: data overflow")
                    return
        except EncodingError as err:
            self._record(loc, err.message)
            return
        if zero_terminated and not self._emit_data_byte(0):
            self._record(loc, "internal: data overflow")

    def _encode(self, stmts: Sequence[Stmt]) -> None:
        data_words = (self._data_size + 3) // 4
        self._image = [0] * (self._text_size // 4 + data_words)
        section = _Section.TEXT
        self._text_pc = self._base
        self._data_off = 0

        for stmt in stmts:
            ops = stmt.operands
            alignment = stmt.alignment
            if alignment > 1:
                if section is _Section.TEXT:
                    self._align_text(alignment)
                elif not self._pad_data(alignment):
                    self._record(stmt.loc, "internal: data overflow")
                    return

            kind = stmt.kind
            if kind is StmtKind.INSTR:
                self._encode_instr(stmt)
            elif kind is StmtKind.PSEUDO:
                self._encode_pseudo(stmt)
            elif kind is StmtKind.SECTION:
                section = _section_of(stmt)
            elif kind is StmtKind.DATA_WORD:
                self._encode_data_word(ops, stmt.loc)
            elif kind is StmtKind.DATA_HALF:
                self._encode_data_small(ops, stmt.loc, -32768, 65535, 2, ".half")
            elif kind is StmtKind.DATA_BYTE:
                self._encode_data_small(ops, stmt.loc, -128, 255, 1, ".byte")
            elif kind is StmtKind.DATA_ASCII:
                self._encode_data_string(stmt.text, False, stmt.loc)
            elif kind is StmtKind.DATA_ASCIIZ:
                self._encode_data_string(stmt.text, True, stmt.loc)
            elif kind is StmtKind.DATA_SPACE:
                if ops and ops[0].kind is OperandKind.IMM:
                    for _ in range(ops[0].imm):
                        if not self._emit_data_byte(0):
                            self._record(stmt.loc, "internal: data overflow")
                            return
            elif kind is StmtKind.ALIGN:
                if ops and ops[0].kind is OperandKind.IMM and 0 <= ops[0].imm <= 16:
                    boundary = 1 << ops[0].imm
                    if section is _Section.TEXT:
                        self._align_text(boundary)
                    else:
                        self._pad_data(boundary)


def assemble(stmts: Iterable[Stmt], base_address: int = DEFAULT_BASE) -> Assembler:
    """Assemble ``stmts`` at ``base_address`` and return the assembler holding the results."""
    assembler = Assembler(base_address)
    assembler.assemble(stmts)
    return assembler