"""A two-pass MIPS32 assembler working on parsed statements, and a small MIPS32 virtual machine."""

__version__ = "0.1.0"