import pytest

from mipskit.encoding import (
    EncodingError,
    align_up,
    branch_offset,
    check_shift_amount,
    check_signed_16,
    check_signed_or_unsigned_16,
    check_unsigned_16,
    decode_string,
    decoded_byte_count,
    encode_i,
    encode_j,
    encode_r,
    encode_regimm,
    jump_target,
)


def _sign16(v):
    return v - 0x10000 if v & 0x8000 else v


def test_encode_r_fields():
    word = encode_r(0x21, 8, 9, 10, 3)
    assert word >> 26 == 0
    assert (word >> 21) & 0x1F == 8
    assert (word >> 16) & 0x1F == 9
    assert (word >> 11) & 0x1F == 10
    assert (word >> 6) & 0x1F == 3
    assert word & 0x3F == 0x21


def test_encode_r_nop_and_syscall():
    assert encode_r(0x00, 0, 0, 0, 0) == 0
    assert encode_r(0x0C, 0, 0, 0, 0) == 0x0C


def test_encode_i_fields_and_masking():
    word = encode_i(0x09, 29, 29, -8 & 0xFFFF)
    assert word >> 26 == 0x09
    assert (word >> 21) & 0x1F == 29
    assert (word >> 16) & 0x1F == 29
    assert _sign16(word & 0xFFFF) == -8
    assert encode_i(0x0F, 0, 1, 0x12345) & 0xFFFF == 0x2345


def test_encode_j():
    assert encode_j(0x02, 0x00400000) == 0x08100000
    word = encode_j(0x03, 0x00400010)
    assert word >> 26 == 0x03
    assert (word & 0x03FFFFFF) << 2 == 0x00400010


def test_encode_regimm_fields():
    word = encode_regimm(4, 0x11, 0xFFFF)
    assert word >> 26 == 1
    assert (word >> 21) & 0x1F == 4
    assert (word >> 16) & 0x1F == 0x11
    assert word & 0xFFFF == 0xFFFF


@pytest.mark.parametrize("value", [-32768, 0, 32767])
def test_signed_16_accepts(value):
    assert check_signed_16(value) == value


@pytest.mark.parametrize("value", [-32769, 32768])
def test_signed_16_rejects(value):
    with pytest.raises(EncodingError, match="16-bit signed"):
        check_signed_16(value)


def test_unsigned_16_bounds():
    assert check_unsigned_16(65535) == 65535
    with pytest.raises(EncodingError, match="16-bit unsigned"):
        check_unsigned_16(-1)
    with pytest.raises(EncodingError):
        check_unsigned_16(65536)


def test_signed_or_unsigned_16_bounds():
    assert check_signed_or_unsigned_16(-32768) == -32768
    assert check_signed_or_unsigned_16(65535) == 65535
    with pytest.raises(EncodingError, match=r"\(16 bits\)"):
        check_signed_or_unsigned_16(65536)
    with pytest.raises(EncodingError):
        check_signed_or_unsigned_16(-32769)


def test_shift_amount_bounds():
    assert check_shift_amount(31) == 31
    with pytest.raises(EncodingError, match="shift amount"):
        check_shift_amount(32)
    with pytest.raises(EncodingError):
        check_shift_amount(-1)


@pytest.mark.parametrize(
    "from_pc, target",
    [(0x00400000, 0x00400004), (0x00400000, 0x00400000),
     (0x00400100, 0x00400000), (0x00400000, 0x00400000 + 4 + 4 * 32767),
     (0x00420000, 0x00420000 + 4 - 4 * 32768)],
)
def test_branch_offset_round_trip(from_pc, target):
    imm = branch_offset(from_pc, target)
    assert 0 <= imm <= 0xFFFF
    assert from_pc + 4 + (_sign16(imm) << 2) == target


def test_branch_offset_misaligned():
    with pytest.raises(EncodingError, match="not 4-byte aligned"):
        branch_offset(0x00400000, 0x00400006)


def test_branch_offset_out_of_range():
    with pytest.raises(EncodingError, match="out of range"):
        branch_offset(0x00400000, 0x00400000 + 4 + 4 * 32768)


def test_jump_target_round_trip():
    field = jump_target(0x00400000, 0x00400020)
    assert ((0x00400004 & 0xF0000000) | (field << 2)) == 0x00400020


def test_jump_target_errors():
    with pytest.raises(EncodingError, match="not 4-byte aligned"):
        jump_target(0x00400000, 0x00400002)
    with pytest.raises(EncodingError, match="256MB region"):
        jump_target(0x00400000, 0x10000000)


@pytest.mark.parametrize("value, alignment", [(0, 4), (1, 4), (5, 2), (7, 8), (9, 1), (12, 4)])
def test_align_up_invariants(value, alignment):
    result = align_up(value, alignment)
    assert result % alignment == 0
    assert value <= result < value + alignment


def test_align_up_noop_for_small_alignment():
    assert align_up(13, 1) == 13
    assert align_up(13, 0) == 13


def test_decode_string_escapes():
    assert bytes(decode_string(r"a\n\t\r\0\\\'\"")) == b"a\n\t\r\x00\\'\""
    assert bytes(decode_string(r"\x41\x7a")) == b"Az"
    assert bytes(decode_string("")) == b""


def test_decode_string_accepts_bytes():
    assert bytes(decode_string(b"hi\\n")) == b"hi\n"


@pytest.mark.parametrize(
    "text, message",
    [("ab\\", "incomplete escape"), ("\\x4", "incomplete"),
     ("\\xg1", "invalid hex digit"), ("\\q", "unknown escape")],
)
def test_decode_string_errors(text, message):
    with pytest.raises(EncodingError, match=message):
        bytes(decode_string(text))


def test_decode_string_yields_prefix_before_error():
    it = decode_string("ab\\q")
    assert next(it) == ord("a")
    assert next(it) == ord("b")
    with pytest.raises(EncodingError):
        next(it)


@pytest.mark.parametrize("text", ["", "hello", r"a\nb", r"\x41\x42c", r"\\\"", "\u00e9"])
def test_decoded_byte_count_matches_decode(text):
    assert decoded_byte_count(text) == len(bytes(decode_string(text)))


def test_decoded_byte_count_malformed():
    assert decoded_byte_count("ab\\x4") == 2
    assert decoded_byte_count("ab\\") == 3


def test_error_message_property():
    with pytest.raises(EncodingError) as info:
        check_shift_amount(40)
    assert info.value.message == "shift amount out of range (0..31)"