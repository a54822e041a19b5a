"""Execution of I-type, J-type and REGIMM (major opcode 1) instructions."""

from __future__ import annotations

from typing import Callable, Dict

from .encoding import MASK32
from .rtype import _fields, _jalr, _sllv
from .state import CPU, RA, VMTrap, _s32

_Handler = Callable[[CPU, int], None]
_Condition = Callable[[CPU, int, int], bool]


def _s16(value: int) -> int:
    """Interpret the low 16 bits of ``value`` as a signed integer."""
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def _split(instruction: int):
    return (instruction >> 21) & 0x1F, (instruction >> 16) & 0x1F, instruction & 0xFFFF


def _set(cpu: CPU, index: int, value: int) -> None:
    cpu.regs[index] = value & MASK32


# -- control flow --------------------------------------------------------


def _branch(
    condition: _Condition,
    *,
    likely: bool = False,
    link: bool = False,
    signed_offset: bool = True,
) -> _Handler:
    """Build a branch handler.

    A taken branch lands at PC + 4 + offset * 4. A "likely" branch that is
    not taken skips the following word. A linking branch stores PC + 8 in
    $ra when taken.
    """

    def handler(cpu: CPU, instruction: int) -> None:
        rs, rt, imm = _split(instruction)
        if condition(cpu, rs, rt):
            if link:
                _set(cpu, RA, cpu.pc + 8)
            offset = _s16(imm) if signed_offset else imm
            cpu.pc = (cpu.pc + 4 + (offset << 2)) & MASK32
        elif likely:
            cpu.pc = (cpu.pc + 8) & MASK32

    return handler


def _equal(cpu: CPU, rs: int, rt: int) -> bool:
    return cpu.regs[rs] & MASK32 == cpu.regs[rt] & MASK32


def _not_equal(cpu: CPU, rs: int, rt: int) -> bool:
    return not _equal(cpu, rs, rt)


def _le_zero(cpu: CPU, rs: int, rt: int) -> bool:
    return _s32(cpu.regs[rs]) <= 0


def _gt_zero(cpu: CPU, rs: int, rt: int) -> bool:
    return _s32(cpu.regs[rs]) > 0


def _lt_zero(cpu: CPU, rs: int, rt: int) -> bool:
    return _s32(cpu.regs[rs]) < 0


def _ge_zero(cpu: CPU, rs: int, rt: int) -> bool:
    return _s32(cpu.regs[rs]) >= 0


def _jump(link: bool) -> _Handler:
    def handler(cpu: CPU, instruction: int) -> None:
        if link:
            _set(cpu, RA, cpu.pc + 4)
        cpu.pc = (cpu.pc & 0xF0000000) | ((instruction & 0x03FFFFFF) << 2)

    return handler


# -- arithmetic and logic ------------------------------------------------


def _addi(cpu: CPU, instruction: int) -> None:
    rs, rt, imm = _split(instruction)
    _set(cpu, rt, cpu.regs[rs] + _s16(imm))


def _slti(cpu: CPU, instruction: int) -> None:
    rs, rt, imm = _split(instruction)
    _set(cpu, rt, int(_s32(cpu.regs[rs]) < _s16(imm)))


def _sltiu(cpu: CPU, instruction: int) -> None:
    rs, rt, imm = _split(instruction)
    _set(cpu, rt, int(cpu.regs[rs] & MASK32 < _s16(imm) & MASK32))


def _andi(cpu: CPU, instruction: int) -> None:
    rs, rt, imm = _split(instruction)
    _set(cpu, rt, cpu.regs[rs] & imm)


def _ori(cpu: CPU, instruction: int) -> None:
    rs, rt, imm = _split(instruction)
    _set(cpu, rt, cpu.regs[rs] | imm)


def _xori(cpu: CPU, instruction: int) -> None:
    rs, rt, imm = _split(instruction)
    _set(cpu, rt, cpu.regs[rs] ^ imm)


def _lui(cpu: CPU, instruction: int) -> None:
    _, rt, imm = _split(instruction)
    _set(cpu, rt, imm << 16)


# -- memory --------------------------------------------------------------


def _effective(cpu: CPU, instruction: int):
    rs, rt, imm = _split(instruction)
    return rt, (cpu.regs[rs] + _s16(imm)) & MASK32


def _check_aligned(addr: int, size: int, name: str) -> None:
    if addr % size:
        raise VMTrap(f"Unaligned memory access ({name})")


def _load_byte(signed: bool) -> _Handler:
    def handler(cpu: CPU, instruction: int) -> None:
        rt, addr = _effective(cpu, instruction)
        index = cpu.memory_index(addr)
        if index is None:
            return
        value = (cpu.memory[index] >> ((3 - (addr & 3)) * 8)) & 0xFF
        if signed and value & 0x80:
            value -= 0x100
        _set(cpu, rt, value)

    return handler


def _load_half(signed: bool, name: str) -> _Handler:
    def handler(cpu: CPU, instruction: int) -> None:
        rt, addr = _effective(cpu, instruction)
        _check_aligned(addr, 2, name)
        index = cpu.memory_index(addr)
        if index is None:
            return
        value = (cpu.memory[index] >> ((2 - (addr & 2)) * 8)) & 0xFFFF
        if signed and value & 0x8000:
            value -= 0x10000
        _set(cpu, rt, value)

    return handler


def _lw(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    _check_aligned(addr, 4, "lw")
    index = cpu.memory_index(addr)
    if index is not None:
        _set(cpu, rt, cpu.memory[index])


def _lwl(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    index = cpu.memory_index(addr)
    if index is None:
        return
    shift = (addr & 3) * 8
    keep = (1 << shift) - 1
    _set(cpu, rt, (cpu.regs[rt] & keep) | ((cpu.memory[index] << shift) & MASK32))


def _lwr(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    index = cpu.memory_index(addr)
    if index is None:
        return
    shift = (3 - (addr & 3)) * 8
    keep = ~(MASK32 >> shift) & MASK32
    _set(cpu, rt, (cpu.regs[rt] & keep) | (cpu.memory[index] >> shift))


def _sb(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    index = cpu.memory_index(addr)
    if index is None:
        return
    shift = (3 - (addr & 3)) * 8
    cell = cpu.memory[index] & ~(0xFF << shift) & MASK32
    cpu.memory[index] = cell | ((cpu.regs[rt] & 0xFF) << shift)


def _sh(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    _check_aligned(addr, 2, "sh")
    index = cpu.memory_index(addr)
    if index is None:
        return
    shift = (2 - (addr & 2)) * 8
    cell = cpu.memory[index] & ~(0xFFFF << shift) & MASK32
    cpu.memory[index] = cell | ((cpu.regs[rt] & 0xFFFF) << shift)


def _swl(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    index = cpu.memory_index(addr)
    if index is None:
        return
    shift = (3 - (addr & 3)) * 8
    keep = MASK32 >> shift
    cpu.memory[index] = (cpu.memory[index] & keep) | ((cpu.regs[rt] & MASK32) >> shift)


def _sw(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    _check_aligned(addr, 4, "sw")
    index = cpu.memory_index(addr)
    if index is not None:
        cpu.memory[index] = cpu.regs[rt] & MASK32


def _swr(cpu: CPU, instruction: int) -> None:
    rt, addr = _effective(cpu, instruction)
    index = cpu.memory_index(addr)
    if index is None:
        return
    shift = (3 - (addr & 3)) * 8
    replaced = (MASK32 << shift) & MASK32
    cell = cpu.memory[index] & ~replaced & MASK32
    cpu.memory[index] = cell | ((cpu.regs[rt] << shift) & MASK32)


# -- traps ---------------------------------------------------------------


def _trap_immediate(condition: Callable[[int, int], bool], signed: bool, message: str) -> _Handler:
    def handler(cpu: CPU, instruction: int) -> None:
        rs, _, imm = _split(instruction)
        value, operand = cpu.regs[rs] & MASK32, _s16(imm)
        if signed:
            value = _s32(value)
        else:
            operand &= MASK32
        if condition(value, operand):
            raise VMTrap(message)

    return handler


def _special_in_regimm(handler) -> _Handler:
    def run(cpu: CPU, instruction: int) -> None:
        handler(cpu, *_fields(instruction))

    return run


_OPCODES: Dict[int, _Handler] = {
    0x02: _jump(link=False),
    0x03: _jump(link=True),
    0x04: _branch(_equal),
    0x05: _branch(_not_equal),
    0x06: _branch(_le_zero),
    0x07: _branch(_gt_zero),
    0x08: _addi,
    0x09: _addi,
    0x0A: _slti,
    0x0B: _sltiu,
    0x0C: _andi,
    0x0D: _ori,
    0x0E: _xori,
    0x0F: _lui,
    0x14: _branch(_equal, likely=True),
    0x15: _branch(_not_equal, likely=True),
    0x16: _branch(_le_zero, likely=True),
    0x17: _branch(_gt_zero, likely=True),
    0x20: _load_byte(signed=True),
    0x21: _load_half(signed=True, name="lh"),
    0x22: _lwl,
    0x23: _lw,
    0x24: _load_byte(signed=False),
    0x25: _load_half(signed=False, name="lhu"),
    0x26: _lwr,
    0x27: _lw,
    0x28: _sb,
    0x29: _sh,
    0x2A: _swl,
    0x2B: _sw,
    0x2E: _swr,
}

# Sub-operation 31 has no handler at all and is skipped rather than trapped.
_REGIMM_SKIPPED = 0x1F

_REGIMM: Dict[int, _Handler] = {
    0x00: _branch(_lt_zero),
    0x01: _branch(_ge_zero),
    0x02: _branch(_lt_zero, likely=True),
    0x03: _branch(_ge_zero, likely=True),
    0x04: _special_in_regimm(_sllv),
    0x08: _trap_immediate(lambda a, b: a >= b, True, "Trap: TGEI"),
    0x09: _special_in_regimm(_jalr),
    0x0A: _trap_immediate(lambda a, b: a < b, True, "Trap: TLTI"),
    0x0B: _trap_immediate(lambda a, b: a < b, False, "Trap: TLTIU"),
    0x0C: _trap_immediate(lambda a, b: a == b, True, "Trap: TEQI"),
    0x0E: _trap_immediate(lambda a, b: a != b, True, "Trap: TNEI"),
    # bltzal and bgezal take their offset without sign extension.
    0x10: _branch(_lt_zero, link=True, signed_offset=False),
    0x11: _branch(_ge_zero, link=True, signed_offset=False),
    0x12: _branch(_lt_zero, likely=True, link=True),
}


def execute_immediate(cpu: CPU, instruction: int) -> None:
    """Execute an I- or J-type instruction, selected by its major opcode.

    An opcode without a handler raises VMTrap.
    """
    handler = _OPCODES.get((instruction >> 26) & 0x3F)
    if handler is None:
        raise VMTrap("Unreachable")
    handler(cpu, instruction)


def execute_regimm(cpu: CPU, instruction: int) -> None:
    """Execute an opcode-1 instruction, selected by its rt sub-operation.

    An unassigned sub-operation raises VMTrap, except 31, which does nothing.
    """
    subop = (instruction >> 16) & 0x1F
    if subop == _REGIMM_SKIPPED:
        return
    handler = _REGIMM.get(subop)
    if handler is None:
        raise VMTrap("Unreachable")
    handler(cpu, instruction)