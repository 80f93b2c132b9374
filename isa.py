"""ISA: opcodes, source-character mapping and one-byte program encoding."""

from __future__ import annotations

from collections.abc import Iterable
from enum import IntEnum


class OpCode(IntEnum):
    """Keeps opcodes of the tape machine."""

    NOP = 0
    INC = 1  # cell += 1 (mod 256)
    DEC = 2  # cell -= 1 (mod 256)
    PTR_LEFT = 3  # pointer -= 1, wraps to last cell
    PTR_RIGHT = 4  # pointer += 1, clamps at last cell
    READ = 5  # cell = next input byte or 0
    WRITE = 6  # output.append(cell)
    LOOP_START = 7
    LOOP_END = 8

    HALT = 255  # appended after every loaded program


SYMBOLS: dict[str, OpCode] = {
    "+": OpCode.INC,
    "-": OpCode.DEC,
    "<": OpCode.PTR_LEFT,
    ">": OpCode.PTR_RIGHT,
    ",": OpCode.READ,
    ".": OpCode.WRITE,
    "[": OpCode.LOOP_START,
    "]": OpCode.LOOP_END,
}

_SYMBOL_OF: dict[OpCode, str] = {op: ch for ch, op in SYMBOLS.items()}
_BY_VALUE: dict[int, OpCode] = {int(op): op for op in OpCode}


def opcode_from_char(ch: str) -> OpCode:
    """Map one source character to its opcode; unknown input is NOP."""
    return SYMBOLS.get(ch, OpCode.NOP)


def decode_tokens(tokens: Iterable[str]) -> list[OpCode]:
    """Map a token sequence to opcodes (no HALT is appended)."""
    return [opcode_from_char(tok) for tok in tokens]


def encode_program(opcodes: Iterable[OpCode]) -> bytes:
    """Encode opcodes as one byte each."""
    return bytes(int(op) & 0xFF for op in opcodes)


def opcode_from_value(value: int) -> OpCode:
    """Map a numeric opcode value; unknown values are NOP."""
    return _BY_VALUE.get(int(value), OpCode.NOP)


def decode_program(blob: bytes) -> list[OpCode]:
    """Decode a one-byte-per-opcode blob.

    Bytes that are not a known opcode value decode to NOP, the same way
    unknown source characters do.
    """
    return [opcode_from_value(b) for b in blob]


def mnemonic(opcode: OpCode) -> str:
    """Get operation mnemonic."""
    sym = _SYMBOL_OF.get(opcode)
    if sym is None:
        return opcode.name
    return f"{opcode.name} ({sym})"
