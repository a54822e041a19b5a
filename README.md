# mipskit

A small toolkit for 32-bit MIPS code, with no dependencies outside the
standard library:

- **`mipskit.isa`** – instruction set tables: register names (`$t0`, `$sp`,
  `$31`, …), the real instructions (`InstrKind`) with their encoding format
  (`InstrFormat`) and code, pseudo-instructions (`PseudoKind`) and assembler
  directives (`DirectiveKind`).
- **`mipskit.program`** – the statement form the assembler consumes:
  `Stmt`, `StmtKind`, `Operand`, `OperandKind`, `Location` and `Diagnostic`.
- **`mipskit.encoding`** – bit-level helpers for R-, I-, J- and REGIMM-type
  words, immediate range checks, branch and jump field computation and
  string-literal escape decoding. Problems raise `EncodingError`.
- **`mipskit.instructions`** – `encode_instruction` turns one real
  instruction into its machine word.
- **`mipskit.pseudo`** – `pseudo_size_words` and `expand_pseudo` size and
  expand pseudo-instructions (`nop`, `move`, `li`, `la`, `b`, `bal`, `beqz`,
  `bnez`, `neg`, `negu`, `not`, `blt`, `ble`, `bgt`, `bge`) into one or two
  real instructions.
- **`mipskit.assembler`** – a two-pass assembler. The first pass lays out the
  `.text` and `.data` sections and assigns label addresses; the second encodes
  every statement into one image of 32-bit words, text first, data right
  after it. Errors do not stop assembly: they are collected as diagnostics
  and the affected words are left as zero.
- **`mipskit.state`**, **`mipskit.rtype`**, **`mipskit.itype`** and
  **`mipskit.vm`** – a word-addressed MIPS32 virtual machine. `Machine` loads
  an image and executes it one instruction at a time, handing `syscall` to a
  callback you provide.

## What it does not do

There is no parser for assembly source text and no command-line tool. Programs
are given to the assembler as `Stmt` objects built in Python, and the machine
is driven from Python by calling `Machine.step`.

## Encoding instructions by hand

```python
from mipskit.encoding import encode_i, encode_r

# addiu $t0, $zero, 5
assert encode_i(0x09, 0, 8, 5) == 0x24080005

# syscall
assert encode_r(0x0C, 0, 0, 0, 0) == 0x0000000C
```

Range checks raise `EncodingError`:

```python
from mipskit.encoding import EncodingError, check_signed_16

try:
    check_signed_16(40000)
except EncodingError as exc:
    print(exc)   # immediate out of range (16-bit signed)
```

## Looking up the instruction set

```python
from mipskit.isa import lookup_directive, lookup_instruction, register_number

register_number("$sp")       # 29
register_number("31")        # 31
register_number("$nope")     # None
lookup_instruction("addiu")  # InstrKind.ADDIU; .format and .code describe it
lookup_directive("asciiz")   # DirectiveKind.ASCIIZ
```

## Assembling

```python
from mipskit.assembler import assemble
from mipskit.isa import DirectiveKind, InstrKind, PseudoKind
from mipskit.program import Operand, Stmt, StmtKind

program = [
    Stmt(StmtKind.LABEL_DEF, text="main"),
    Stmt(StmtKind.PSEUDO, PseudoKind.LI, (Operand.register(2), Operand.immediate(10))),
    Stmt(StmtKind.INSTR, InstrKind.SYSCALL),
    Stmt(StmtKind.SECTION, DirectiveKind.DATA),
    Stmt(StmtKind.LABEL_DEF, text="msg"),
    Stmt(StmtKind.DATA_ASCIIZ, text="hi\\n"),
]

asm = assemble(program)            # base address 0x00400000 by default
assert not asm.has_errors
assert asm.bytecode == (0x2402000A, 0x0000000C, 0x68690A00)
assert [(label.name, label.addr) for label in asm.labels] == [
    ("main", 0x00400000),
    ("msg", 0x00400008),
]
assert asm.text_end_address == 0x00400008
```

Data is packed big-endian into the words. String bodies in `text` keep their
escapes (`\n`, `\r`, `\t`, `\0`, `\\`, `\'`, `\"`, `\xHH`); they are decoded
during assembly.

When something is wrong, `asm.errors` holds `Diagnostic` objects; `str()` of
one reads `line:column: message`, for example `undefined label` or
`duplicate label`.

## Running a program

```python
from mipskit.encoding import encode_i, encode_r
from mipskit.vm import Machine

seen = []

def on_syscall(v0, a0, a1, a2, a3):
    seen.append((v0, a0))

program = [
    encode_i(0x09, 0, 2, 1),    # addiu $v0, $zero, 1
    encode_i(0x09, 0, 4, 42),   # addiu $a0, $zero, 42
    encode_r(0x0C, 0, 0, 0, 0), # syscall
]

machine = Machine(on_syscall)
machine.load_program(program)
for _ in program:
    machine.step()

assert seen == [(1, 42)]
```

`Machine(syscall=None, memory_words=1024, start=0x00400000)` holds
`memory_words` words starting at `start`; `load_program` copies the image there
and resets the PC and registers. Registers (`machine.regs`), `pc`, `hi` and
`lo` hold unsigned 32-bit values. There are no delay slots: an instruction that
leaves the PC unchanged moves on to the next word. `add`/`sub` do not trap on
overflow and `break` does nothing.

Faults raise `VMTrap`: an address past the end of memory, a PC outside memory,
unaligned `lw`/`sw`/`lh`/`lhu`/`sh`, a taken trap instruction (`teq`, `tge`,
`tnei`, …), a `syscall` with no handler, an unassigned opcode, and a program too
large to load. Loads and stores below the start of memory are ignored.