"""Execution of SPECIAL (major opcode 0) instructions."""

from __future__ import annotations

from typing import Callable, Dict

from .encoding import MASK32
from .state import A0, A1, A2, A3, CPU, V0, VMTrap, _s32

_Handler = Callable[[CPU, int, int, int, int], None]

_FUNCT_BREAK = 0x0D


def _fields(instruction: int):
    return (
        (instruction >> 21) & 0x1F,
        (instruction >> 16) & 0x1F,
        (instruction >> 11) & 0x1F,
        (instruction >> 6) & 0x1F,
    )


def _set(cpu: CPU, index: int, value: int) -> None:
    cpu.regs[index] = value & MASK32


def _sll(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.regs[rt] << sa)


def _srl(cpu, rs, rt, rd, sa):
    _set(cpu, rd, (cpu.regs[rt] & MASK32) >> sa)


def _sra(cpu, rs, rt, rd, sa):
    _set(cpu, rd, _s32(cpu.regs[rt]) >> sa)


def _sllv(cpu, rs, rt, rd, sa):
    _sll(cpu, rs, rt, rd, cpu.regs[rs] & 0x1F)


def _srlv(cpu, rs, rt, rd, sa):
    _srl(cpu, rs, rt, rd, cpu.regs[rs] & 0x1F)


def _srav(cpu, rs, rt, rd, sa):
    _sra(cpu, rs, rt, rd, cpu.regs[rs] & 0x1F)


def _jr(cpu, rs, rt, rd, sa):
    cpu.pc = cpu.regs[rs] & MASK32


def _jalr(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.pc + 4)
    cpu.pc = cpu.regs[rs] & MASK32


def _movz(cpu, rs, rt, rd, sa):
    if cpu.regs[rt] == 0:
        _set(cpu, rd, cpu.regs[rs])


def _movn(cpu, rs, rt, rd, sa):
    if cpu.regs[rt] != 0:
        _set(cpu, rd, cpu.regs[rs])


def _syscall(cpu, rs, rt, rd, sa):
    if cpu.syscall is None:
        raise VMTrap("syscall without a handler")
    cpu.syscall(*(cpu.regs[index] & MASK32 for index in (V0, A0, A1, A2, A3)))


def _mfhi(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.hi)


def _mthi(cpu, rs, rt, rd, sa):
    cpu.hi = cpu.regs[rs] & MASK32


def _mflo(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.lo)


def _mtlo(cpu, rs, rt, rd, sa):
    cpu.lo = cpu.regs[rs] & MASK32


def _store_product(cpu: CPU, product: int) -> None:
    cpu.lo = product & MASK32
    cpu.hi = (product >> 32) & MASK32


def _mult(cpu, rs, rt, rd, sa):
    _store_product(cpu, _s32(cpu.regs[rs]) * _s32(cpu.regs[rt]))


def _multu(cpu, rs, rt, rd, sa):
    _store_product(cpu, (cpu.regs[rs] & MASK32) * (cpu.regs[rt] & MASK32))


def _div(cpu, rs, rt, rd, sa):
    if cpu.regs[rt] == 0:
        return
    dividend, divisor = _s32(cpu.regs[rs]), _s32(cpu.regs[rt])
    quotient = abs(dividend) // abs(divisor)
    if (dividend < 0) != (divisor < 0):
        quotient = -quotient
    cpu.lo = quotient & MASK32
    cpu.hi = (dividend - quotient * divisor) & MASK32


def _divu(cpu, rs, rt, rd, sa):
    divisor = cpu.regs[rt] & MASK32
    if divisor == 0:
        return
    quotient, remainder = divmod(cpu.regs[rs] & MASK32, divisor)
    cpu.lo = quotient
    cpu.hi = remainder


def _add(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.regs[rs] + cpu.regs[rt])


def _sub(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.regs[rs] - cpu.regs[rt])


def _and(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.regs[rs] & cpu.regs[rt])


def _or(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.regs[rs] | cpu.regs[rt])


def _xor(cpu, rs, rt, rd, sa):
    _set(cpu, rd, cpu.regs[rs] ^ cpu.regs[rt])


def _nor(cpu, rs, rt, rd, sa):
    _set(cpu, rd, ~(cpu.regs[rs] | cpu.regs[rt]))


def _slt(cpu, rs, rt, rd, sa):
    _set(cpu, rd, int(_s32(cpu.regs[rs]) < _s32(cpu.regs[rt])))


def _sltu(cpu, rs, rt, rd, sa):
    _set(cpu, rd, int((cpu.regs[rs] & MASK32) < (cpu.regs[rt] & MASK32)))


def _trap(condition: Callable[[int, int], bool], signed: bool, message: str) -> _Handler:
    def handler(cpu, rs, rt, rd, sa):
        a, b = cpu.regs[rs] & MASK32, cpu.regs[rt] & MASK32
        if signed:
            a, b = _s32(a), _s32(b)
        if condition(a, b):
            raise VMTrap(message)

    return handler


_TABLE: Dict[int, _Handler] = {
    0x00: _sll,
    0x02: _srl,
    0x03: _sra,
    0x04: _sllv,
    0x06: _srlv,
    0x07: _srav,
    0x08: _jr,
    0x09: _jalr,
    0x0A: _movz,
    0x0B: _movn,
    0x0C: _syscall,
    0x10: _mfhi,
    0x11: _mthi,
    0x12: _mflo,
    0x13: _mtlo,
    0x18: _mult,
    0x19: _multu,
    0x1A: _div,
    0x1B: _divu,
    0x20: _add,
    0x21: _add,
    0x22: _sub,
    0x23: _sub,
    0x24: _and,
    0x25: _or,
    0x26: _xor,
    0x27: _nor,
    0x2A: _slt,
    0x2B: _sltu,
    0x30: _trap(lambda a, b: a >= b, True, "TGE Trap"),
    0x31: _trap(lambda a, b: a >= b, False, "Trap: TGEU"),
    0x32: _trap(lambda a, b: a < b, True, "TLT Trap"),
    0x33: _trap(lambda a, b: a < b, False, "TLTU Trap"),
    0x34: _trap(lambda a, b: a == b, False, "Trap: TEQ"),
    0x36: _trap(lambda a, b: a != b, False, "Trap: TNE"),
}


def execute_special(cpu: CPU, instruction: int) -> None:
    """Execute an opcode-0 instruction, selected by its funct field.

    Overflow is not trapped for add/sub and ``break`` changes nothing.
    An unassigned funct raises VMTrap.
    """
    funct = instruction & 0x3F
    if funct == _FUNCT_BREAK:
        return
    handler = _TABLE.get(funct)
    if handler is None:
        raise VMTrap("Unreachable")
    handler(cpu, *_fields(instruction))