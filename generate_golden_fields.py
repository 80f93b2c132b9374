#!/usr/bin/env python3
"""
Fill the `out` section of a golden YAML record from an actual run.
Usage: python generate_golden_fields.py path/to/golden.yaml
"""

import os
import sys

import yaml

from config import ConfigError, load_config
from parser import tokenize
from processor import VirtualMachine


def run_record(doc):
    cfg = load_config(doc.get("in_config") or {})
    vm = VirtualMachine(memory_cells=cfg["memory_cells"], lenient_log=cfg["lenient_log"])
    vm.load_program(tokenize(doc["in_source"]))
    vm.load_input(doc.get("in_stdin", ""))
    state = vm.run(max_steps=cfg["step_limit"])
    return vm, state


def observed_fields(vm, state):
    return {
        "out_stdout": vm.stdout,
        "out_bytes": list(vm.output),
        "pointer": vm.memory_pointer,
        "pc": vm.pc,
        "steps": vm.steps,
        "state": state,
        "unmatched_loop_ends": vm.unmatched_loop_ends,
        # only non-zero cells, keyed by index
        "memory": {i: v for i, v in enumerate(vm.memory) if v},
    }


def main(path):
    if not os.path.exists(path):
        print("File not found:", path)
        sys.exit(2)

    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}

    if "in_source" not in doc:
        print("No 'in_source' found in YAML - nothing to run")
        sys.exit(2)

    try:
        vm, state = run_record(doc)
    except ConfigError as e:
        print("Bad in_config:", e)
        sys.exit(2)

    # keep fields the record already pins, add the rest
    target = doc.setdefault("out", {})
    for key, value in observed_fields(vm, state).items():
        target[key] = value

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(doc, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    print(f"Updated {path} with {len(target)} expected fields.")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: generate_golden_fields.py path/to/golden.yaml")
        sys.exit(1)
    main(sys.argv[1])
