"""Encoding of real instructions from their parsed operands."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence

from .encoding import (
    MASK32,
    EncodingError,
    branch_offset,
    check_shift_amount,
    check_signed_16,
    check_signed_or_unsigned_16,
    encode_i,
    encode_r,
    encode_regimm,
    jump_target,
)
from .isa import InstrFormat, InstrKind
from .program import Diagnostic, Location, Operand, OperandKind

Resolver = Callable[[str], Optional[int]]

_F = InstrFormat

_ARITY = {
    _F.R_NONE: 0,
    _F.R_RS: 1,
    _F.R_RD: 1,
    _F.R_RD_RS: 2,
    _F.R_RS_RT: 2,
    _F.R_RD_RS_RT: 3,
    _F.R_RD_RT_SA: 3,
    _F.R_RD_RT_RS: 3,
    _F.I_RT_RS_IMM: 3,
    _F.I_RT_IMM: 2,
    _F.I_RS_RT_LBL: 3,
    _F.I_RS_LBL: 2,
    _F.I_RT_MEM: 2,
    _F.J_LBL: 1,
    _F.REGIMM_RS_LBL: 2,
    _F.REGIMM_RS_IMM: 2,
}


@contextmanager
def _located(loc: Location) -> Iterator[None]:
    """Attach ``loc`` to any EncodingError that does not carry a location yet."""
    try:
        yield
    except EncodingError as err:
        if len(err.args) > 1:
            raise
        raise EncodingError(err.message, loc) from None


def _error_location(err: EncodingError, default: Location) -> Location:
    if len(err.args) > 1 and isinstance(err.args[1], Location):
        return err.args[1]
    return default


def _diagnostic(err: EncodingError, default: Location) -> Diagnostic:
    return Diagnostic(_error_location(err, default), err.message)


def _reg(op: Operand) -> int:
    if op.kind is not OperandKind.REG:
        raise EncodingError("expected register operand", op.loc)
    return op.reg


def _imm(op: Operand) -> int:
    if op.kind is not OperandKind.IMM:
        raise EncodingError("expected immediate operand", op.loc)
    return op.imm


def _label_target(op: Operand, resolve: Resolver) -> int:
    if op.kind is not OperandKind.LABEL:
        raise EncodingError("expected label", op.loc)
    target = resolve(op.label)
    if target is None:
        raise EncodingError("undefined label", op.loc)
    return target


def _branch(pc: int, op: Operand, resolve: Resolver) -> int:
    target = _label_target(op, resolve)
    with _located(op.loc):
        return branch_offset(pc, target)


def encode_instruction(
    kind: InstrKind,
    operands: Sequence[Operand],
    pc: int,
    resolve: Resolver,
    loc: Location = Location(),
) -> int:
    """Return the machine word for ``kind`` placed at address ``pc``.

    ``resolve`` maps a label name to its address, or None when undefined.
    Raises EncodingError whose arguments are the message and the Location
    the problem is reported at.
    """
    ops = tuple(operands)
    fmt, code = kind.format, kind.code
    pc &= MASK32
    if len(ops) < _ARITY[fmt]:
        raise EncodingError("not enough operands", loc)

    if fmt is _F.R_NONE:
        return encode_r(code, 0, 0, 0, 0)
    if fmt is _F.R_RS:
        return encode_r(code, _reg(ops[0]), 0, 0, 0)
    if fmt is _F.R_RD:
        return encode_r(code, 0, 0, _reg(ops[0]), 0)
    if fmt is _F.R_RD_RS:
        rd = _reg(ops[0])
        rs = _reg(ops[1])
        return encode_r(code, rs, 0, rd, 0)
    if fmt is _F.R_RS_RT:
        rs = _reg(ops[0])
        rt = _reg(ops[1])
        return encode_r(code, rs, rt, 0, 0)
    if fmt is _F.R_RD_RS_RT:
        rd = _reg(ops[0])
        rs = _reg(ops[1])
        rt = _reg(ops[2])
        return encode_r(code, rs, rt, rd, 0)
    if fmt is _F.R_RD_RT_SA:
        rd = _reg(ops[0])
        rt = _reg(ops[1])
        sa = _imm(ops[2])
        with _located(ops[2].loc):
            check_shift_amount(sa)
        return encode_r(code, 0, rt, rd, sa)
    if fmt is _F.R_RD_RT_RS:
        rd = _reg(ops[0])
        rt = _reg(ops[1])
        rs = _reg(ops[2])
        return encode_r(code, rs, rt, rd, 0)
    if fmt is _F.I_RT_RS_IMM:
        rt = _reg(ops[0])
        rs = _reg(ops[1])
        imm = _imm(ops[2])
        with _located(ops[2].loc):
            check_signed_or_unsigned_16(imm)
        return encode_i(code, rs, rt, imm & 0xFFFF)
    if fmt is _F.I_RT_IMM:
        rt = _reg(ops[0])
        imm = _imm(ops[1])
        with _located(ops[1].loc):
            check_signed_or_unsigned_16(imm)
        return encode_i(code, 0, rt, imm & 0xFFFF)
    if fmt is _F.I_RS_RT_LBL:
        rs = _reg(ops[0])
        rt = _reg(ops[1])
        return encode_i(code, rs, rt, _branch(pc, ops[2], resolve))
    if fmt is _F.I_RS_LBL:
        rs = _reg(ops[0])
        return encode_i(code, rs, 0, _branch(pc, ops[1], resolve))
    if fmt is _F.I_RT_MEM:
        rt = _reg(ops[0])
        mem = ops[1]
        if mem.kind is not OperandKind.MEM:
            raise EncodingError("expected 'imm(reg)' memory operand", mem.loc)
        with _located(mem.loc):
            check_signed_16(mem.imm)
        return encode_i(code, mem.reg, rt, mem.imm & 0xFFFF)
    if fmt is _F.J_LBL:
        target = _label_target(ops[0], resolve)
        with _located(ops[0].loc):
            addr26 = jump_target(pc, target)
        return ((code & 0x3F) << 26) | addr26
    if fmt is _F.REGIMM_RS_LBL:
        rs = _reg(ops[0])
        return encode_regimm(rs, code, _branch(pc, ops[1], resolve))
    if fmt is _F.REGIMM_RS_IMM:
        rs = _reg(ops[0])
        imm = _imm(ops[1])
        with _located(ops[1].loc):
            check_signed_16(imm)
        return encode_regimm(rs, code, imm & 0xFFFF)
    raise EncodingError(f"unsupported instruction format {fmt.name}", loc)