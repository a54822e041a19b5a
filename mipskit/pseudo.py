"""Sizing and expansion of pseudo-instructions into real instructions."""

from __future__ import annotations

from typing import Callable, Iterator, List, Sequence, Tuple

from .encoding import MASK32, EncodingError, encode_i, encode_r, encode_regimm
from .instructions import Resolver, _branch, _diagnostic, _imm, _label_target, _reg
from .isa import PseudoKind
from .program import Diagnostic, Location, Operand, OperandKind

# Encodings of the real instructions the pseudos expand into.
FUNCT_SLL = 0x00
FUNCT_ADDU = 0x21
FUNCT_SUB = 0x22
FUNCT_SUBU = 0x23
FUNCT_NOR = 0x27
FUNCT_SLT = 0x2A
OP_BEQ = 0x04
OP_BNE = 0x05
OP_ADDIU = 0x09
OP_ORI = 0x0D
OP_LUI = 0x0F
REGIMM_BGEZAL = 0x11

REG_ZERO = 0
REG_AT = 1

_TWO_WORDS = frozenset(
    {PseudoKind.LA, PseudoKind.BLT, PseudoKind.BLE, PseudoKind.BGT, PseudoKind.BGE}
)


class _Unpadded(EncodingError):
    """An error after which no placeholder words are emitted."""


def pseudo_size_words(kind: PseudoKind, operands: Sequence[Operand]) -> int:
    """Number of machine words ``kind`` occupies, as fixed during layout."""
    if kind is PseudoKind.LI:
        ops = tuple(operands)
        if len(ops) >= 2 and ops[1].kind is OperandKind.IMM and -32768 <= ops[1].imm <= 65535:
            return 1
        return 2
    return 2 if kind in _TWO_WORDS else 1


def _need(ops: Tuple[Operand, ...], count: int, message: str, loc: Location) -> None:
    if len(ops) < count:
        raise _Unpadded(message, loc)


Expander = Callable[[PseudoKind, Tuple[Operand, ...], int, Resolver, Location], Iterator[int]]


def _nop(kind, ops, pc, resolve, loc):
    yield encode_r(FUNCT_SLL, 0, 0, 0, 0)


def _move(kind, ops, pc, resolve, loc):
    _need(ops, 2, "move: missing operand", loc)
    rd = _reg(ops[0])
    rs = _reg(ops[1])
    yield encode_r(FUNCT_ADDU, rs, REG_ZERO, rd, 0)


def _negate(kind, ops, pc, resolve, loc):
    _need(ops, 2, "neg: missing operand", loc)
    rd = _reg(ops[0])
    rs = _reg(ops[1])
    funct = FUNCT_SUB if kind is PseudoKind.NEG else FUNCT_SUBU
    yield encode_r(funct, REG_ZERO, rs, rd, 0)


def _not(kind, ops, pc, resolve, loc):
    _need(ops, 2, "not: missing operand", loc)
    rd = _reg(ops[0])
    rs = _reg(ops[1])
    yield encode_r(FUNCT_NOR, rs, REG_ZERO, rd, 0)


def _li(kind, ops, pc, resolve, loc):
    _need(ops, 2, "li: missing operand", loc)
    rt = _reg(ops[0])
    value = _imm(ops[1])
    if -32768 <= value <= 32767:
        yield encode_i(OP_ADDIU, REG_ZERO, rt, value & 0xFFFF)
    elif 0 <= value <= 65535:
        yield encode_i(OP_ORI, REG_ZERO, rt, value)
    else:
        if not -(1 << 31) <= value <= (1 << 32) - 1:
            raise _Unpadded("li value out of 32-bit range", ops[1].loc)
        word = value & MASK32
        yield encode_i(OP_LUI, REG_ZERO, rt, word >> 16)
        yield encode_i(OP_ORI, rt, rt, word & 0xFFFF)


def _la(kind, ops, pc, resolve, loc):
    _need(ops, 2, "la: missing operand", loc)
    rt = _reg(ops[0])
    if ops[1].kind is not OperandKind.LABEL:
        raise EncodingError("la: expected label", ops[1].loc)
    addr = _label_target(ops[1], resolve) & MASK32
    yield encode_i(OP_LUI, REG_ZERO, rt, addr >> 16)
    yield encode_i(OP_ORI, rt, rt, addr & 0xFFFF)


def _unconditional(kind, ops, pc, resolve, loc):
    if not ops or ops[0].kind is not OperandKind.LABEL:
        raise EncodingError(f"{kind.mnemonic}: expected label", loc)
    offset = _branch(pc, ops[0], resolve)
    if kind is PseudoKind.B:
        yield encode_i(OP_BEQ, REG_ZERO, REG_ZERO, offset)
    else:
        yield encode_regimm(REG_ZERO, REGIMM_BGEZAL, offset)


def _zero_compare(kind, ops, pc, resolve, loc):
    _need(ops, 2, "beqz/bnez: missing operand", loc)
    rs = _reg(ops[0])
    offset = _branch(pc, ops[1], resolve)
    opcode = OP_BEQ if kind is PseudoKind.BEQZ else OP_BNE
    yield encode_i(opcode, rs, REG_ZERO, offset)


# kind -> (swap the slt operands, branch when $at is non-zero)
_COMPARISONS = {
    PseudoKind.BLT: (False, True),
    PseudoKind.BLE: (True, False),
    PseudoKind.BGT: (True, True),
    PseudoKind.BGE: (False, False),
}


def _compare_branch(kind, ops, pc, resolve, loc):
    _need(ops, 3, "missing operand", loc)
    rs = _reg(ops[0])
    rt = _reg(ops[1])
    if ops[2].kind is not OperandKind.LABEL:
        raise EncodingError("expected label", ops[2].loc)
    swap, when_nonzero = _COMPARISONS[kind]
    left, right = (rt, rs) if swap else (rs, rt)
    yield encode_r(FUNCT_SLT, left, right, REG_AT, 0)
    # The branch is the second word, so its offset is taken from pc + 4.
    offset = _branch((pc + 4) & MASK32, ops[2], resolve)
    opcode = OP_BNE if when_nonzero else OP_BEQ
    yield encode_i(opcode, REG_AT, REG_ZERO, offset)


_EXPANDERS = {
    PseudoKind.NOP: _nop,
    PseudoKind.MOVE: _move,
    PseudoKind.NEG: _negate,
    PseudoKind.NEGU: _negate,
    PseudoKind.NOT: _not,
    PseudoKind.LI: _li,
    PseudoKind.LA: _la,
    PseudoKind.B: _unconditional,
    PseudoKind.BAL: _unconditional,
    PseudoKind.BEQZ: _zero_compare,
    PseudoKind.BNEZ: _zero_compare,
    PseudoKind.BLT: _compare_branch,
    PseudoKind.BLE: _compare_branch,
    PseudoKind.BGT: _compare_branch,
    PseudoKind.BGE: _compare_branch,
}


def expand_pseudo(
    kind: PseudoKind,
    operands: Sequence[Operand],
    pc: int,
    resolve: Resolver,
    loc: Location = Location(),
) -> Tuple[List[int], List[Diagnostic]]:
    """Expand ``kind`` placed at ``pc`` into machine words.

    Returns the words and the diagnostics raised. When an operand is wrong
    the words are padded with zeros so the expansion keeps its planned
    size; a missing operand or an out-of-range ``li`` value emits nothing
    further.
    """
    ops = tuple(operands)
    words: List[int] = []
    expander = _EXPANDERS.get(kind)
    if expander is None:
        return words, [Diagnostic(loc, "internal: unknown pseudo")]
    try:
        words.extend(expander(kind, ops, pc & MASK32, resolve, loc))
    except _Unpadded as err:
        return words, [_diagnostic(err, loc)]
    except EncodingError as err:
        placeholder_count = 2 if kind in _TWO_WORDS else 1
        words.extend([0] * (placeholder_count - len(words)))
        return words, [_diagnostic(err, loc)]
    return words, []