"""Register file, memory and trap type of the virtual machine."""

from __future__ import annotations

from typing import Callable, List, Optional

from .encoding import MASK32

DEFAULT_START = 0x00400000
DEFAULT_MEMORY_WORDS = 1024
NUM_REGS = 32

ZERO = 0
AT = 1
V0 = 2
V1 = 3
A0 = 4
A1 = 5
A2 = 6
A3 = 7
SP = 29
FP = 30
RA = 31

SyscallHandler = Callable[[int, int, int, int, int], None]


class VMTrap(RuntimeError):
    """Raised when the machine hits a trap condition or an invalid access."""

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


def _s32(value: int) -> int:
    """Interpret the low 32 bits of ``value`` as a signed integer."""
    value &= MASK32
    return value - (1 << 32) if value & 0x80000000 else value


class CPU:
    """Processor state: 32 registers, PC, HI/LO and word-addressed memory.

    Registers and special registers always hold unsigned 32-bit values.
    Memory starts at ``start`` and holds ``memory_words`` big-endian words.
    ``syscall`` receives ``$v0, $a0, $a1, $a2, $a3`` when a syscall runs.
    """

    def __init__(
        self,
        syscall: Optional[SyscallHandler] = None,
        memory_words: int = DEFAULT_MEMORY_WORDS,
        start: int = DEFAULT_START,
    ) -> None:
        if memory_words <= 0:
            raise ValueError(f"memory size must be positive: {memory_words}")
        if not 0 <= start <= MASK32:
            raise ValueError(f"start address out of 32-bit range: {start:#x}")
        self.syscall = syscall
        self.start = start
        self.regs: List[int] = [0] * NUM_REGS
        self.pc = start
        self.hi = 0
        self.lo = 0
        self.memory: List[int] = [0] * memory_words

    def memory_index(self, addr: int) -> Optional[int]:
        """Return the memory word index holding ``addr``.

        Addresses below the start of memory give None; addresses past its
        end raise VMTrap.
        """
        addr &= MASK32
        if addr < self.start:
            return None
        index = (addr - self.start) // 4
        if index >= len(self.memory):
            raise VMTrap("Memory Address Violation (Out of bounds)")
        return index