"""Tests for opcode mapping and the one-byte binary form."""

from __future__ import annotations

import pytest
from isa import OpCode, decode_program, decode_tokens, encode_program, mnemonic, opcode_from_char, opcode_from_value


@pytest.mark.parametrize(
    ("ch", "op"),
    [
        ("+", OpCode.INC),
        ("-", OpCode.DEC),
        ("<", OpCode.PTR_LEFT),
        (">", OpCode.PTR_RIGHT),
        (",", OpCode.READ),
        (".", OpCode.WRITE),
        ("[", OpCode.LOOP_START),
        ("]", OpCode.LOOP_END),
    ],
)
def test_symbol_mapping(ch: str, op: OpCode) -> None:
    assert opcode_from_char(ch) == op


@pytest.mark.parametrize("ch", ["a", " ", "\n", "", "++", "\xff"])
def test_unknown_characters_are_nop(ch: str) -> None:
    assert opcode_from_char(ch) == OpCode.NOP


def test_decode_tokens_never_produces_halt() -> None:
    ops = decode_tokens([chr(i) for i in range(256)])
    assert OpCode.HALT not in ops
    assert len(ops) == 256


def test_opcode_values() -> None:
    assert [int(op) for op in OpCode] == [0, 1, 2, 3, 4, 5, 6, 7, 8, 255]


def test_binary_encoding() -> None:
    ops = decode_tokens("+[-].x")
    blob = encode_program(ops)
    assert blob == bytes([1, 7, 2, 8, 6, 0])
    assert decode_program(blob) == ops


def test_unknown_bytes_decode_to_nop() -> None:
    assert decode_program(bytes([9, 200, 255, 3])) == [OpCode.NOP, OpCode.NOP, OpCode.HALT, OpCode.PTR_LEFT]


def test_mnemonic() -> None:
    assert mnemonic(OpCode.INC) == "INC (+)"
    assert mnemonic(OpCode.LOOP_END) == "LOOP_END (])"
    assert mnemonic(OpCode.NOP) == "NOP"
    assert mnemonic(OpCode.HALT) == "HALT"


def test_opcode_from_value() -> None:
    assert opcode_from_value(8) == OpCode.LOOP_END
    assert opcode_from_value(OpCode.HALT) == OpCode.HALT
    assert opcode_from_value(300) == OpCode.NOP
    assert opcode_from_value(-1) == OpCode.NOP
