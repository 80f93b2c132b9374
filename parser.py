"""Module: turn tape-machine source text into opcodes and binary files.

This module contains:
- tokenize(s) -> list of single-character tokens
- read_source(path) -> source text
- compile_source_bytes / compile_file -> one-byte-per-opcode binaries
"""

from __future__ import annotations

# ruff: noqa: A005
import argparse
import logging
from pathlib import Path

from isa import decode_program, decode_tokens, encode_program, mnemonic


def tokenize(s: str) -> list[str]:
    """Split source into one token per character.

    Nothing is dropped: comments and whitespace become NOPs so program
    counter values line up with source positions.
    """
    return list(s)


def read_source(path: str | Path) -> str:
    """Read a source file as UTF-8 text."""
    p = Path(path)
    if not p.exists():
        err = f"Source file not found: {path}"
        raise FileNotFoundError(err)
    return p.read_text(encoding="utf-8")


def compile_source_bytes(src_bytes: bytes) -> bytes:
    """Compile UTF-8 source bytes into the binary opcode form (no HALT)."""
    src = src_bytes.decode("utf-8")
    return encode_program(decode_tokens(tokenize(src)))


def build_code_hex(code_bytes: bytes) -> str:
    """Produce a listing with one `<index> - <HEX> - <mnemonic>` line per opcode."""
    lines: list[str] = []
    for idx, op in enumerate(decode_program(code_bytes)):
        lines.append(f"{idx} - {code_bytes[idx]:02X} - {mnemonic(op)}")
    return "\n".join(lines)


def compile_file(
    input_path: str | Path,
    out_bin: str | Path | None = None,
    debug: bool = False,
) -> str:
    """Compile a source file and write the binary.

    Returns the binary path. If out_bin is not provided it is derived from
    input_path ("<stem>.bin"). With debug a "<out>.hex" listing is written too.
    """
    p = Path(input_path)
    if not p.exists():
        err = f"Source file not found: {input_path}"
        raise FileNotFoundError(err)

    code_bytes = compile_source_bytes(p.read_bytes())

    out_bin_path = p.with_suffix(".bin") if out_bin is None else Path(out_bin)
    out_bin_path.write_bytes(code_bytes)
    logging.debug("compile_file: %s -> %s (%d opcodes)", p, out_bin_path, len(code_bytes))

    if debug:
        hex_path = Path(str(out_bin_path) + ".hex")
        hex_path.write_text(build_code_hex(code_bytes), encoding="utf-8")

    return str(out_bin_path)


# --- CLI ---
if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Compile tape-machine source to a VM binary")
    ap.add_argument("input", help="source file (e.g. program.b)")
    ap.add_argument("-o", "--out", help="output binary file (default: <input>.bin)")
    ap.add_argument("--debug", action="store_true", help="write additional debug hex file (<out>.hex)")
    args = ap.parse_args()

    print(compile_file(args.input, out_bin=args.out, debug=args.debug))
