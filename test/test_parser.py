"""Tests for source handling, binaries and the public run helpers."""

from __future__ import annotations

import logging
from parser import build_code_hex, compile_file, compile_source_bytes, read_source, tokenize
from pathlib import Path

import processor
import pytest
from config import DEFAULTS, ConfigError
from processor import STATE_HALTED, STATE_LIMIT, run_bytes, run_source


def test_tokenize_keeps_every_character() -> None:
    assert tokenize("+ x\n.") == ["+", " ", "x", "\n", "."]
    assert tokenize("") == []


def test_read_source(tmp_path: Path) -> None:
    p = tmp_path / "prog.b"
    p.write_text("++.", encoding="utf-8")
    assert read_source(p) == "++."
    with pytest.raises(FileNotFoundError):
        read_source(tmp_path / "missing.b")


def test_compile_source_bytes() -> None:
    assert compile_source_bytes("+>.".encode()) == bytes([1, 4, 6])


def test_build_code_hex() -> None:
    assert build_code_hex(bytes([1, 0, 8])) == "0 - 01 - INC (+)\n1 - 00 - NOP\n2 - 08 - LOOP_END (])"


def test_compile_file(tmp_path: Path) -> None:
    src = tmp_path / "count.b"
    src.write_text("+++.", encoding="utf-8")
    out = compile_file(src, debug=True)
    assert out == str(tmp_path / "count.bin")
    assert Path(out).read_bytes() == bytes([1, 1, 1, 6])
    assert Path(out + ".hex").read_text(encoding="utf-8").splitlines()[-1] == "3 - 06 - WRITE (.)"

    custom = compile_file(src, out_bin=tmp_path / "custom.bin")
    assert Path(custom).read_bytes() == bytes([1, 1, 1, 6])
    assert not Path(custom + ".hex").exists()


def test_compile_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        compile_file(tmp_path / "missing.b")


def test_run_source() -> None:
    out, steps, state = run_source(",+.", "A")
    assert out == "B"
    assert steps == 4
    assert state == STATE_HALTED


def test_run_source_step_limit() -> None:
    out, steps, state = run_source("+[]", config={"step_limit": 20})
    assert (out, steps, state) == ("", 20, STATE_LIMIT)


def test_run_bytes_matches_source() -> None:
    src = "++[>+++<-]>."
    assert run_bytes(compile_source_bytes(src.encode())) == run_source(src)


def test_debug_run_writes_artifacts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    processor.init_logging(logfile=str(tmp_path / "processor.log"), debug=True)
    try:
        run_source("+.")
    finally:
        root = logging.getLogger()
        for h in list(root.handlers):
            h.close()
            root.removeHandler(h)
        root.setLevel(logging.WARNING)
    assert (tmp_path / "out.bin").read_bytes() == bytes([1, 6])
    assert (tmp_path / "out.hex").read_text(encoding="utf-8").startswith("0 - 01 - INC (+)")
    dump = (tmp_path / "memory_dump.txt").read_text(encoding="utf-8")
    assert "0000: 01  (1)  <- ptr" in dump
    assert "STEP:" in (tmp_path / "processor.log").read_text(encoding="utf-8")


def test_run_source_applies_default_step_limit() -> None:
    assert run_source("+[]") == ("", DEFAULTS["step_limit"], STATE_LIMIT)


def test_run_source_normalizes_config_values() -> None:
    out, steps, state = run_source("+[]", config={"step_limit": "20", "memory_cells": "4"})
    assert (out, steps, state) == ("", 20, STATE_LIMIT)
    assert run_source("<+.", config={"memory_cells": "4"})[0] == "\x01"


def test_run_source_rejects_bad_config() -> None:
    with pytest.raises(ConfigError):
        run_source("+", config={"memory_cells": 0})
