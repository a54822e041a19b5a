"""A stepping virtual machine that runs assembled word images."""

from __future__ import annotations

from typing import Iterable, Optional

from .encoding import MASK32
from .itype import execute_immediate, execute_regimm
from .rtype import execute_special
from .state import (
    CPU,
    DEFAULT_MEMORY_WORDS,
    DEFAULT_START,
    NUM_REGS,
    ZERO,
    SyscallHandler,
    VMTrap,
)


class Machine(CPU):
    """A CPU that loads a program image and executes it one word at a time.

    There are no delay slots: an instruction that leaves the PC unchanged
    moves on to the next word.
    """

    def __init__(
        self,
        syscall: Optional[SyscallHandler] = None,
        memory_words: int = DEFAULT_MEMORY_WORDS,
        start: int = DEFAULT_START,
    ) -> None:
        super().__init__(syscall, memory_words, start)

    def load_program(self, program: Iterable[int]) -> None:
        """Copy ``program`` words to the start of memory and reset PC and registers.

        Memory beyond the program and HI/LO keep their contents.
        """
        words = [word & MASK32 for word in program]
        if len(words) > len(self.memory):
            raise VMTrap("Program too large for memory")
        self.memory[: len(words)] = words
        self.pc = self.start
        self.regs = [0] * NUM_REGS

    def step(self) -> int:
        """Execute the instruction at the PC and return its word."""
        index = self.memory_index(self.pc)
        if index is None:
            raise VMTrap("PC execution out of bounds")
        instruction = self.memory[index]
        current = self.pc

        opcode = (instruction >> 26) & 0x3F
        if opcode == 0x00:
            execute_special(self, instruction)
        elif opcode == 0x01:
            execute_regimm(self, instruction)
        else:
            execute_immediate(self, instruction)

        if self.pc == current:
            self.pc = (self.pc + 4) & MASK32
        self.regs[ZERO] = 0
        return instruction