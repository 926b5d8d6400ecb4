"""
Command line front end.

USAGE
------
# Run 50 cycles quietly, then dump registers
apex-sim program.asm simulate 50

# Same, printing every stage of every cycle and the first 20 memory words
apex-sim program.asm display 50 --memory 20
"""
from __future__ import annotations
import argparse
import sys

from .errors import InvalidInstructionError, ProgramLoadError
from .isa import CODE_BASE, MEMORY_WORDS
from .loader import load_program
from .pipeline import PipelineCPU
from . import report


def positive_int(text: str) -> int:
    try:
        n = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="apex-sim", description="APEX 7-stage in-order pipeline simulator.")
    p.add_argument("program", help="APEX assembly file, one instruction per line")
    p.add_argument("mode", choices=("simulate", "display"),
                   help="'display' prints every stage of every cycle")
    p.add_argument("cycles", type=positive_int, help="number of clock cycles to run")
    p.add_argument("--memory", type=int, default=0, metavar="N",
                   help="dump the first N data memory words after the run")
    p.add_argument("--registers", type=int, default=16, metavar="N",
                   help="number of registers to dump (default 16)")
    p.add_argument("--memory-words", type=positive_int, default=MEMORY_WORDS,
                   help=f"data memory size in words (default {MEMORY_WORDS})")
    return p


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    display = args.mode == "display"

    try:
        program = load_program(args.program)
    except ProgramLoadError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    cpu = PipelineCPU(program, code_base=CODE_BASE, memory_words=args.memory_words)
    if display:
        print(f"APEX_CPU : Loaded {len(program)} instructions")
        for row in report.format_program(program):
            print(row)

    try:
        cpu.run(args.cycles, display=display)
    except InvalidInstructionError as e:
        print(f"error: invalid instruction/operand at clock {cpu.clock}: {e}", file=sys.stderr)
        return 1

    print(report.format_summary(cpu))
    for row in report.format_registers(cpu, args.registers):
        print(row)
    if args.memory > 0:
        for row in report.format_memory(cpu, args.memory):
            print(row)
    return 0


if __name__ == "__main__":
    sys.exit(main())
