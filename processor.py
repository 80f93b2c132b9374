"""Processor (MemoryTape + VirtualMachine) and CLI wrapper.

Provides the tape machine execution engine, logging initialization and
optional debug output files (out.bin / out.hex / memory_dump.txt) emitted
when debug logging is enabled.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from typing import Any, NamedTuple

from config import DEFAULTS, ConfigError, load_config
from isa import OpCode, decode_program, decode_tokens, encode_program, mnemonic, opcode_from_value
from parser import build_code_hex, read_source, tokenize

LOGFILE = "processor.log"

STATE_HALTED = "halted"
STATE_LIMIT = "limit"


def init_logging(logfile: str = LOGFILE, debug: bool = False, console: bool = False) -> None:
    """Configure root logger to write to `logfile`.

    If debug=True set DEBUG level. If console=True also echo logs to stdout.
    """
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    lvl = logging.DEBUG if debug else logging.CRITICAL
    root.setLevel(lvl)

    if debug:
        file_fmt = "%(levelname)s %(name)s:%(filename)s:%(lineno)d %(message)s"
    else:
        file_fmt = "%(levelname)-5s %(message)s"

    fh = logging.FileHandler(logfile, mode="w", encoding="utf-8")
    fh.setLevel(lvl)
    fh.setFormatter(logging.Formatter(file_fmt))
    root.addHandler(fh)

    if debug and console:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(lvl)
        ch.setFormatter(logging.Formatter("%(levelname)5s %(message)s"))
        root.addHandler(ch)


def _debug_enabled() -> bool:
    return logging.getLogger().isEnabledFor(logging.DEBUG)


# --- debug output helpers ---
def _write_out_bin(code_bytes: bytes) -> None:
    try:
        Path("out.bin").write_bytes(code_bytes)
    except OSError as e:
        logging.debug("Failed to write out.bin: %s", e)


def _write_out_hex(code_bytes: bytes) -> None:
    try:
        Path("out.hex").write_text(build_code_hex(code_bytes), encoding="utf-8")
    except OSError as e:
        logging.debug("Failed to write out.hex: %s", e)


def _write_memory_dump(vm: VirtualMachine, path: str = "memory_dump.txt") -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write("=== MEMORY DUMP ===\n")
            f.write(f"cells: {len(vm.tape)}  pointer: {vm.memory_pointer}  pc: {vm.pc}  steps: {vm.steps}\n\n")
            for i, v in enumerate(vm.memory):
                marker = "  <- ptr" if i == vm.memory_pointer else ""
                f.write(f"{i:04d}: {v:02X}  ({v}){marker}\n")
            f.write("\n=== OUTPUT ===\n")
            f.write(" ".join(str(b) for b in vm.output) + "\n")
            f.write("\n=== END DUMP ===\n")
    except OSError as e:
        logging.debug("Failed to write %s: %s", path, e)


class MemoryTape:
    """Fixed-size byte tape with a single read/write pointer.

    Moving left from cell 0 wraps to the last cell, while moving right from
    the last cell stays there.
    """

    capacity: int
    _cells: bytearray
    _ptr: int

    def __init__(self, capacity: int = DEFAULTS["memory_cells"]) -> None:
        """Create a zeroed tape of `capacity` cells."""
        capacity = int(capacity)
        if capacity <= 0:
            msg = f"tape capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._cells = bytearray(capacity)
        self._ptr = 0

    def __len__(self) -> int:
        return self.capacity

    @property
    def pointer(self) -> int:
        return self._ptr

    @property
    def cells(self) -> tuple[int, ...]:
        return tuple(self._cells)

    def read(self) -> int:
        return self._cells[self._ptr]

    def write(self, value: int) -> None:
        self._cells[self._ptr] = int(value) & 0xFF

    def move_left(self) -> None:
        self._ptr = self._ptr - 1 if self._ptr > 0 else self.capacity - 1

    def move_right(self) -> None:
        # clamped, not wrapped
        self._ptr = min(self._ptr + 1, self.capacity - 1)

    def reset(self) -> None:
        self._cells[:] = bytes(self.capacity)
        self._ptr = 0


class MachineState(NamedTuple):
    """Read-only snapshot of the machine registers, tape and output."""

    pc: int
    memory_pointer: int
    memory: tuple[int, ...]
    output: tuple[int, ...]
    loop_stack: tuple[int, ...]
    steps: int
    halted: bool


class VirtualMachine:
    """Tape machine implementing the FETCH-DECODE-EXEC loop.

    The program is a sequence of OpCodes terminated by HALT. Loops use an
    explicit stack of return addresses: LOOP_START pushes the address right
    after itself, LOOP_END jumps back to the top entry while the current
    cell is non-zero and pops it otherwise. No program or input content
    ever raises; anomalies are logged and counted.
    """

    tape: MemoryTape
    lenient_log: bool

    _program: list[OpCode]
    _pc: int
    _loop_stack: list[int]
    _input: deque[int]
    _output: list[int]

    steps: int
    halted: bool
    unmatched_loop_ends: int

    def __init__(self, memory_cells: int = DEFAULTS["memory_cells"], lenient_log: bool = False) -> None:
        """Create a machine with an empty program and a zeroed tape."""
        self.tape = MemoryTape(memory_cells)
        self.lenient_log = bool(lenient_log)
        self._program = [OpCode.HALT]
        self._input = deque()
        self._loop_stack = []
        self._output = []
        self.reset()

    # --- query ---
    @property
    def pc(self) -> int:
        return self._pc

    @property
    def memory_pointer(self) -> int:
        return self.tape.pointer

    @property
    def memory(self) -> tuple[int, ...]:
        return self.tape.cells

    @property
    def output(self) -> tuple[int, ...]:
        return tuple(self._output)

    @property
    def stdout(self) -> str:
        return "".join(chr(b) for b in self._output)

    @property
    def program(self) -> tuple[OpCode, ...]:
        return tuple(self._program)

    @property
    def loop_stack(self) -> tuple[int, ...]:
        return tuple(self._loop_stack)

    @property
    def pending_input(self) -> tuple[int, ...]:
        return tuple(self._input)

    def snapshot(self) -> MachineState:
        """Return an immutable copy of the observable state."""
        return MachineState(
            pc=self._pc,
            memory_pointer=self.tape.pointer,
            memory=self.tape.cells,
            output=tuple(self._output),
            loop_stack=tuple(self._loop_stack),
            steps=self.steps,
            halted=self.halted,
        )

    # --- loading ---
    def load_program(self, tokens: Iterable[str]) -> None:
        """Load a program from single-character tokens and reset.

        Unknown characters become NOP; HALT is appended.
        """
        self.load_opcodes(decode_tokens(tokens))

    def load_opcodes(self, opcodes: Iterable[int]) -> None:
        """Load already decoded opcodes (e.g. from a .bin) and reset.

        Values that are not a known opcode become NOP.
        """
        self._program = [opcode_from_value(op) for op in opcodes]
        self._program.append(OpCode.HALT)
        logging.debug("Program loaded: %d opcodes (+HALT)", len(self._program) - 1)
        self.reset()

    def load_input(self, text: str) -> None:
        """Load input text; the first character is the first byte read."""
        self._input = deque(ord(ch) & 0xFF for ch in text)
        logging.debug("Input loaded: %d bytes", len(self._input))
        self.reset()

    def reset(self) -> None:
        """Return registers, tape, loop stack and output to their initial values.

        Pending input is left alone; only load_input replaces it.
        """
        self._pc = 0
        self.tape.reset()
        self._loop_stack = []
        self._output = []
        self.steps = 0
        self.halted = False
        self.unmatched_loop_ends = 0

    # --- execution ---
    def fetch(self) -> OpCode | None:
        """Read the opcode at PC and advance PC; None past the end of program."""
        if self._pc >= len(self._program):
            return None
        op = self._program[self._pc]
        self._pc += 1
        return op

    def _log_step(self, op: OpCode) -> None:
        # skip verbose per-step logs in lenient mode to reduce log size
        if self.lenient_log or not _debug_enabled():
            return
        logging.debug(
            "STEP: %6d PC: %5d PTR: %3d CELL: %3d DEPTH: %3d\tINSTR: %s",
            self.steps,
            self._pc,
            self.tape.pointer,
            self.tape.read(),
            len(self._loop_stack),
            mnemonic(op),
        )

    def _skip_loop(self) -> None:
        """Move PC just past the LOOP_END matching the LOOP_START just fetched."""
        depth = 1
        idx = self._pc
        end = len(self._program)
        while idx < end:
            op = self._program[idx]
            if op == OpCode.LOOP_START:
                depth += 1
            elif op == OpCode.LOOP_END:
                depth -= 1
                if depth == 0:
                    self._pc = idx + 1
                    return
            idx += 1
        # unmatched '[': resume at the trailing HALT
        logging.debug("LOOP_START at %d has no matching LOOP_END -> jump to HALT", self._pc - 1)
        self._pc = end - 1

    def execute(self, opcode: OpCode) -> None:  # noqa: C901
        """Execute a single instruction."""
        tape = self.tape

        if opcode == OpCode.NOP:
            return
        if opcode == OpCode.INC:
            tape.write((tape.read() + 1) % 256)
            return
        if opcode == OpCode.DEC:
            tape.write((tape.read() - 1) % 256)
            return
        if opcode == OpCode.PTR_LEFT:
            tape.move_left()
            return
        if opcode == OpCode.PTR_RIGHT:
            tape.move_right()
            return
        if opcode == OpCode.READ:
            if self._input:
                tape.write(self._input.popleft())
            else:
                logging.debug("READ: no input -> 0")
                tape.write(0)
            return
        if opcode == OpCode.WRITE:
            self._output.append(tape.read())
            return
        if opcode == OpCode.LOOP_START:
            if tape.read() == 0:
                self._skip_loop()
            else:
                self._loop_stack.append(self._pc)
            return
        if opcode == OpCode.LOOP_END:
            if not self._loop_stack:
                self.unmatched_loop_ends += 1
                logging.debug("LOOP_END at %d with empty loop stack -> ignored", self._pc - 1)
                return
            if tape.read() != 0:
                self._pc = self._loop_stack[-1]
            else:
                self._loop_stack.pop()
            return
        if opcode == OpCode.HALT:
            self.halted = True
            self._pc = len(self._program)
            logging.debug("HALT encountered")
            return
        logging.debug("Unhandled opcode: %s", opcode)

    def step(self) -> OpCode | None:
        """Fetch and execute one instruction; returns it, or None at end of program."""
        op = self.fetch()
        if op is None:
            return None
        self.execute(op)
        self.steps += 1
        self._log_step(op)
        return op

    def run(self, max_steps: int | None = None) -> str:
        """Reset, then execute until HALT or end of program.

        With `max_steps` the run stops after that many instructions and
        returns "limit"; the state is kept so stepping may continue.
        """
        self.reset()
        while max_steps is None or self.steps < max_steps:
            if self.step() is None or self.halted:
                return STATE_HALTED
        if self.halted or self._pc >= len(self._program):
            return STATE_HALTED
        logging.debug("Step limit %d reached at PC %d", max_steps, self._pc)
        return STATE_LIMIT


# ---------- Public API ----------
def _run_machine(opcodes: list[OpCode], input_text: str, config: dict[str, Any] | None) -> tuple[str, int, str]:
    cfg = load_config(config)
    vm = VirtualMachine(memory_cells=cfg["memory_cells"], lenient_log=cfg["lenient_log"])
    vm.load_opcodes(opcodes)
    vm.load_input(input_text)
    state = vm.run(max_steps=cfg["step_limit"])

    if _debug_enabled():
        _write_memory_dump(vm)
        code_bytes = encode_program(vm.program[:-1])
        _write_out_bin(code_bytes)
        _write_out_hex(code_bytes)

    return vm.stdout, vm.steps, state


def run_source(source: str, input_text: str = "", config: dict[str, Any] | None = None) -> tuple[str, int, str]:
    """Run source text with input and config and return (stdout, steps, state)."""
    return _run_machine(decode_tokens(tokenize(source)), input_text, config)


def run_bytes(code_bytes: bytes, input_text: str = "", config: dict[str, Any] | None = None) -> tuple[str, int, str]:
    """Run a binary program and return (stdout, steps, state)."""
    return _run_machine(decode_program(code_bytes), input_text, config)


# ---------- CLI ----------
if __name__ == "__main__":
    import argparse

    ap = argparse.ArgumentParser(
        description="Tape machine runner. Accepts source text or binary (.bin) made by parser.py."
    )
    ap.add_argument("program", help="program source or program.bin (binary code).")
    grp = ap.add_mutually_exclusive_group()
    grp.add_argument("--input", help="input text consumed by ',' instructions", default="")
    grp.add_argument("--input-file", help="file whose contents are the input text", default=None)
    ap.add_argument("--config", help="path to yaml config", default=None)

    help_debug = "enable debug logging to logfile (detailed per-step state)."
    help_logfile = "path to processor log"
    help_console = "also echo logs to console (only when --debug)"
    ap.add_argument("--debug", action="store_true", help=help_debug)
    ap.add_argument("--logfile", default=LOGFILE, help=help_logfile)
    ap.add_argument("--console", action="store_true", help=help_console)
    args = ap.parse_args()

    init_logging(logfile=args.logfile, debug=args.debug, console=args.console)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        print("Bad config:", e)
        sys.exit(2)

    input_text = args.input
    if args.input_file:
        in_path = Path(args.input_file)
        if not in_path.exists():
            print("Input file not found:", args.input_file)
            sys.exit(2)
        input_text = in_path.read_text(encoding="utf-8")

    prog_path = Path(args.program)
    if not prog_path.exists():
        print("Program file not found:", args.program)
        sys.exit(2)

    if prog_path.suffix == ".bin":
        out, steps, state = run_bytes(prog_path.read_bytes(), input_text, cfg)
    else:
        out, steps, state = run_source(read_source(prog_path), input_text, cfg)

    sys.stdout.write(out)
    sys.stdout.write("\n")
    sys.stdout.write("STEPS: " + str(steps))
    sys.stdout.write("\n")
    if state != STATE_HALTED:
        sys.stdout.write("STATE: " + state + "\n")
