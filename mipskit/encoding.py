"""Bit-level instruction encoding, range checks and string-literal decoding."""

from __future__ import annotations

from typing import Iterator, Union

MASK32 = 0xFFFFFFFF


class EncodingError(ValueError):
    """A value that cannot be encoded into the requested field."""

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


def encode_r(funct: int, rs: int, rt: int, rd: int, sa: int) -> int:
    """Pack an R-type word: opcode 0, rs, rt, rd, shift amount, funct."""
    return (
        ((rs & 0x1F) << 21)
        | ((rt & 0x1F) << 16)
        | ((rd & 0x1F) << 11)
        | ((sa & 0x1F) << 6)
        | (funct & 0x3F)
    )


def encode_i(opcode: int, rs: int, rt: int, imm16: int) -> int:
    """Pack an I-type word: opcode, rs, rt, 16-bit immediate."""
    return ((opcode & 0x3F) << 26) | ((rs & 0x1F) << 21) | ((rt & 0x1F) << 16) | (imm16 & 0xFFFF)


def encode_j(opcode: int, target_addr: int) -> int:
    """Pack a J-type word from a byte address (its word index fills 26 bits)."""
    return ((opcode & 0x3F) << 26) | ((target_addr >> 2) & 0x03FFFFFF)


def encode_regimm(rs: int, subop: int, imm16: int) -> int:
    """Pack a REGIMM word: opcode 1, rs, sub-operation, 16-bit immediate."""
    return (1 << 26) | ((rs & 0x1F) << 21) | ((subop & 0x1F) << 16) | (imm16 & 0xFFFF)


def check_signed_16(value: int) -> int:
    if not -32768 <= value <= 32767:
        raise EncodingError("immediate out of range (16-bit signed)")
    return value


def check_unsigned_16(value: int) -> int:
    if not 0 <= value <= 65535:
        raise EncodingError("immediate out of range (16-bit unsigned)")
    return value


def check_signed_or_unsigned_16(value: int) -> int:
    if not -32768 <= value <= 65535:
        raise EncodingError("immediate out of range (16 bits)")
    return value


def check_shift_amount(value: int) -> int:
    if not 0 <= value <= 31:
        raise EncodingError("shift amount out of range (0..31)")
    return value


def branch_offset(from_pc: int, target: int) -> int:
    """Return the 16-bit field for a branch at ``from_pc`` to ``target``."""
    delta = target - ((from_pc + 4) & MASK32)
    if delta & 3:
        raise EncodingError("branch target not 4-byte aligned")
    words = delta >> 2
    if not -32768 <= words <= 32767:
        raise EncodingError("branch target out of range (16-bit signed offset)")
    return words & 0xFFFF


def jump_target(from_pc: int, target: int) -> int:
    """Return the 26-bit field for a jump at ``from_pc`` to ``target``.

    Jumps keep the upper four bits of the PC, so the target must lie in the
    same 256MB region as the instruction after the jump.
    """
    if target & 3:
        raise EncodingError("jump target not 4-byte aligned")
    if (target & 0xF0000000) != (((from_pc + 4) & MASK32) & 0xF0000000):
        raise EncodingError("jump target outside current 256MB region")
    return (target >> 2) & 0x03FFFFFF


def align_up(value: int, alignment: int) -> int:
    """Round ``value`` up to a multiple of the power-of-two ``alignment``."""
    if alignment <= 1:
        return value
    return ((value + alignment - 1) & ~(alignment - 1)) & MASK32


_SIMPLE_ESCAPES = {
    ord("n"): 0x0A,
    ord("r"): 0x0D,
    ord("t"): 0x09,
    ord("0"): 0x00,
    ord("\\"): 0x5C,
    ord("'"): 0x27,
    ord('"'): 0x22,
}
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_BACKSLASH = 0x5C
_X = ord("x")


def _as_bytes(text: Union[str, bytes]) -> bytes:
    return text.encode("utf-8") if isinstance(text, str) else bytes(text)


def decode_string(text: Union[str, bytes]) -> Iterator[int]:
    """Yield the bytes of a string-literal body, resolving escape sequences.

    Raises EncodingError at the first malformed escape; bytes before it
    have already been yielded.
    """
    data = _as_bytes(text)
    i = 0
    while i < len(data):
        c = data[i]
        i += 1
        if c != _BACKSLASH:
            yield c
            continue
        if i >= len(data):
            raise EncodingError("incomplete escape sequence")
        e = data[i]
        i += 1
        simple = _SIMPLE_ESCAPES.get(e)
        if simple is not None:
            yield simple
            continue
        if e == _X:
            if i + 2 > len(data):
                raise EncodingError("incomplete \\x escape")
            digits = data[i:i + 2]
            if not all(d in _HEX_DIGITS for d in digits):
                raise EncodingError("invalid hex digit in \\x escape")
            yield int(digits.decode("ascii"), 16)
            i += 2
            continue
        raise EncodingError("unknown escape sequence")


def decoded_byte_count(text: Union[str, bytes]) -> int:
    """Count the bytes a literal body occupies after decoding.

    Malformed escapes are not reported here; counting simply stops or
    treats them leniently, as the layout pass only needs a size.
    """
    data = _as_bytes(text)
    count = 0
    i = 0
    while i < len(data):
        if data[i] == _BACKSLASH and i + 1 < len(data):
            if data[i + 1] == _X:
                if i + 4 <= len(data):
                    i += 4
                    count += 1
                    continue
                return count
            i += 2
            count += 1
            continue
        i += 1
        count += 1
    return count