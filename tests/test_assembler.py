import pytest

from mipskit.assembler import DEFAULT_BASE, Assembler, LabelEntry, assemble
from mipskit.encoding import encode_r
from mipskit.instructions import encode_instruction
from mipskit.isa import DirectiveKind, InstrKind, PseudoKind
from mipskit.program import Location, Operand, Stmt, StmtKind
from mipskit.pseudo import expand_pseudo

TEXT = Stmt(StmtKind.SECTION, DirectiveKind.TEXT)
DATA = Stmt(StmtKind.SECTION, DirectiveKind.DATA)
FUNCT_ADDU = 0x21
FUNCT_SYSCALL = 0x0C


def reg(n):
    return Operand.register(n)


def imm(v):
    return Operand.immediate(v)


def ref(name, loc=Location()):
    return Operand.label_ref(name, loc)


def label(name, loc=Location()):
    return Stmt(StmtKind.LABEL_DEF, text=name, loc=loc)


def instr(kind, *ops, loc=Location()):
    return Stmt(StmtKind.INSTR, kind, ops, loc=loc)


def pseudo(kind, *ops, loc=Location()):
    return Stmt(StmtKind.PSEUDO, kind, ops, loc=loc)


def data(kind, *ops, text=""):
    return Stmt(kind, None, ops, text)


def as_bytes(words):
    return b"".join(w.to_bytes(4, "big") for w in words)


def addresses(asm):
    return {entry.name: entry.addr for entry in asm.labels}


def resolver(asm):
    table = addresses(asm)
    return table.get


def test_empty_program():
    asm = Assembler()
    assert asm.assemble([]) == ()
    assert asm.errors == ()
    assert asm.base_address == DEFAULT_BASE == 0x00400000
    assert asm.text_end_address == DEFAULT_BASE


def test_single_instruction_matches_encoder():
    stmt = instr(InstrKind.ADDU, reg(8), reg(9), reg(10))
    asm = Assembler()
    words = asm.assemble([stmt])
    assert words == (encode_r(FUNCT_ADDU, 9, 10, 8, 0),)
    assert not asm.has_errors


def test_text_labels_and_data_base():
    stmts = [
        label("main"),
        instr(InstrKind.SYSCALL),
        label("second"),
        instr(InstrKind.SYSCALL),
        DATA,
        label("value"),
        data(StmtKind.DATA_WORD, imm(7)),
    ]
    asm = assemble(stmts)
    table = addresses(asm)
    assert table["main"] == DEFAULT_BASE
    assert table["second"] == DEFAULT_BASE + 4
    assert asm.text_end_address == DEFAULT_BASE + 8
    assert table["value"] == asm.text_end_address
    assert asm.bytecode[-1] == 7


def test_backward_branch():
    ops_add = (reg(8), reg(8), imm(1))
    ops_bne = (reg(8), reg(0), ref("loop"))
    stmts = [label("loop"), instr(InstrKind.ADDIU, *ops_add), instr(InstrKind.BNE, *ops_bne)]
    asm = assemble(stmts)
    expected = encode_instruction(InstrKind.BNE, ops_bne, DEFAULT_BASE + 4, resolver(asm))
    assert asm.bytecode[1] == expected
    assert asm.bytecode[1] & 0xFFFF == 0xFFFE


def test_forward_jump():
    stmts = [instr(InstrKind.J, ref("end")), instr(InstrKind.SYSCALL), label("end")]
    asm = assemble(stmts)
    assert addresses(asm)["end"] == DEFAULT_BASE + 8
    assert asm.bytecode[0] == encode_instruction(
        InstrKind.J, (ref("end"),), DEFAULT_BASE, resolver(asm)
    )


def test_undefined_label_reports_and_leaves_zero():
    loc = Location(3, 5)
    asm = assemble([instr(InstrKind.J, ref("nowhere", loc))])
    assert asm.bytecode == (0,)
    assert [(e.loc, e.message) for e in asm.errors] == [(loc, "undefined label")]


def test_duplicate_label():
    first, second = Location(1, 1), Location(2, 1)
    asm = assemble([label("x", first), instr(InstrKind.SYSCALL), label("x", second)])
    assert [(e.loc, e.message) for e in asm.errors] == [(second, "duplicate label")]


def test_instruction_outside_text():
    loc = Location(4, 2)
    asm = assemble([DATA, instr(InstrKind.SYSCALL, loc=loc)])
    assert any(e.message == "instruction outside .text" and e.loc == loc for e in asm.errors)


def test_large_li_takes_two_words():
    ops = (reg(8), imm(0x12345678))
    asm = assemble([pseudo(PseudoKind.LI, *ops), label("after")])
    words, diags = expand_pseudo(PseudoKind.LI, ops, DEFAULT_BASE, lambda name: None)
    assert asm.bytecode == tuple(words)
    assert diags == []
    assert addresses(asm)["after"] == DEFAULT_BASE + 8


def test_la_loads_data_address():
    ops = (reg(4), ref("msg"))
    stmts = [pseudo(PseudoKind.LA, *ops), DATA, label("msg"), data(StmtKind.DATA_ASCIIZ, text="hi")]
    asm = assemble(stmts)
    words, _ = expand_pseudo(PseudoKind.LA, ops, DEFAULT_BASE, resolver(asm))
    assert asm.bytecode[:2] == tuple(words)
    assert as_bytes(asm.bytecode[2:])[:3] == b"hi\x00"


def test_bytes_are_packed_big_endian():
    asm = assemble([DATA, data(StmtKind.DATA_BYTE, imm(1), imm(2), imm(3))])
    assert as_bytes(asm.bytecode) == bytes([1, 2, 3, 0])


def test_half_is_aligned_after_byte():
    asm = assemble([DATA, data(StmtKind.DATA_BYTE, imm(1)), data(StmtKind.DATA_HALF, imm(0x1234))])
    assert as_bytes(asm.bytecode) == bytes([1, 0, 0x12, 0x34])


def test_word_holds_label_address():
    stmts = [label("main"), instr(InstrKind.SYSCALL), DATA, data(StmtKind.DATA_WORD, ref("main"))]
    asm = assemble(stmts)
    assert asm.bytecode[-1] == addresses(asm)["main"]


def test_half_out_of_range():
    asm = assemble([DATA, data(StmtKind.DATA_HALF, imm(70000))])
    assert [e.message for e in asm.errors] == [".half value out of range (16 bits)"]
    assert as_bytes(asm.bytecode)[:2] == b"\x00\x00"


def test_byte_out_of_range():
    asm = assemble([DATA, data(StmtKind.DATA_BYTE, imm(300))])
    assert [e.message for e in asm.errors] == [".byte value out of range (8 bits)"]


def test_negative_space():
    asm = assemble([DATA, data(StmtKind.DATA_SPACE, imm(-1))])
    assert ".space argument must be non-negative" in [e.message for e in asm.errors]


def test_align_out_of_range():
    asm = assemble([DATA, data(StmtKind.ALIGN, imm(17))])
    assert [e.message for e in asm.errors] == [".align argument out of range"]


def test_align_in_data():
    stmts = [DATA, data(StmtKind.DATA_BYTE, imm(9)), data(StmtKind.ALIGN, imm(3)), label("next"),
             data(StmtKind.DATA_BYTE, imm(5))]
    asm = assemble(stmts)
    assert addresses(asm)["next"] == asm.text_end_address + 8
    raw = as_bytes(asm.bytecode)
    assert raw[0] == 9 and raw[8] == 5
    assert not asm.has_errors


def test_bad_escape_reported():
    asm = assemble([DATA, data(StmtKind.DATA_ASCII, text="a\\q")])
    assert [e.message for e in asm.errors] == ["unknown escape sequence"]
    assert as_bytes(asm.bytecode)[:1] == b"a"


def test_custom_base_address():
    asm = assemble([label("start"), instr(InstrKind.SYSCALL)], base_address=0x1000)
    assert asm.base_address == 0x1000
    assert asm.labels == (LabelEntry("start", 0x1000, Location()),)


def test_reassembling_clears_previous_results():
    asm = Assembler()
    asm.assemble([instr(InstrKind.J, ref("missing"))])
    assert asm.has_errors
    words = asm.assemble([instr(InstrKind.SYSCALL)])
    assert asm.errors == ()
    assert words == (encode_r(FUNCT_SYSCALL, 0, 0, 0, 0),)


def test_base_address_out_of_range():
    with pytest.raises(ValueError):
        Assembler(1 << 32)


def test_image_length_covers_text_and_data():
    stmts = [instr(InstrKind.SYSCALL), DATA, data(StmtKind.DATA_SPACE, imm(5))]
    asm = assemble(stmts)
    assert len(asm.bytecode) == 1 + 2
    assert asm.bytecode[1:] == (0, 0)