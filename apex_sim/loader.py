"""
Instruction loader: APEX assembly text to a list of Instructions.

One instruction per line, fields separated by commas:

    MOVC,R1,#5
    ADD,R3,R1,R2
    ADDL,R4,R3,#-2
    LOAD,R5,R0,#8
    STORE,R3,R0,#0      ; store R3 at MEM[R0 + 0]
    BZ,#-12
    EX-OR,R6,R1,R2
    HALT

Blank lines and text after ';' or '//' are ignored.
"""
from __future__ import annotations
from typing import List, Tuple

from .errors import InvalidInstructionError, ProgramLoadError
from .isa import Instruction, Opcode

# Operand layout per opcode: 'd' rd, 's' rs1, 't' rs2, 'i' immediate
_OPERANDS = {
    Opcode.MOVC: "di",
    Opcode.ADD: "dst",
    Opcode.SUB: "dst",
    Opcode.MUL: "dst",
    Opcode.AND: "dst",
    Opcode.OR: "dst",
    Opcode.XOR: "dst",
    Opcode.ADDL: "dsi",
    Opcode.SUBL: "dsi",
    Opcode.LOAD: "dsi",
    Opcode.STORE: "sti",
    Opcode.BZ: "i",
    Opcode.NOP: "",
    Opcode.HALT: "",
}
_FIELD = {"d": "rd", "s": "rs1", "t": "rs2", "i": "imm"}
_ALIASES = {"EX-OR": Opcode.XOR, "EXOR": Opcode.XOR}

assert set(_OPERANDS) == set(Opcode)


def _strip_comment(line: str) -> str:
    for marker in (";", "//"):
        pos = line.find(marker)
        if pos >= 0:
            line = line[:pos]
    return line.strip()


def _parse_opcode(token: str) -> Opcode:
    name = token.strip().upper()
    if name in _ALIASES:
        return _ALIASES[name]
    try:
        return Opcode(name)
    except ValueError:
        raise ProgramLoadError(f"unknown opcode {token.strip()!r}") from None


def _parse_register(token: str) -> int:
    t = token.strip().upper()
    if not t.startswith("R") or not t[1:].isdigit():
        raise ProgramLoadError(f"expected a register like R3, got {token.strip()!r}")
    return int(t[1:])


def _parse_immediate(token: str) -> int:
    t = token.strip()
    if not t.startswith("#"):
        raise ProgramLoadError(f"expected an immediate like #5, got {t!r}")
    try:
        return int(t[1:])
    except ValueError:
        raise ProgramLoadError(f"bad immediate {t!r}") from None


def parse_instruction(line: str) -> Instruction:
    tokens = line.split(",")
    op = _parse_opcode(tokens[0])
    layout = _OPERANDS[op]
    operands = tokens[1:]
    if len(operands) != len(layout):
        raise ProgramLoadError(f"{op.value} takes {len(layout)} operand(s), got {len(operands)}")
    fields = {}
    for kind, token in zip(layout, operands):
        fields[_FIELD[kind]] = _parse_immediate(token) if kind == "i" else _parse_register(token)
    try:
        return Instruction(op, **fields)
    except InvalidInstructionError as e:
        raise ProgramLoadError(str(e)) from e


def parse_program(text: str) -> List[Instruction]:
    program = []
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw)
        if not line:
            continue
        try:
            program.append(parse_instruction(line))
        except ProgramLoadError as e:
            raise ProgramLoadError(str(e), line_no) from e
    if not program:
        raise ProgramLoadError("program contains no instructions")
    return program


def load_program(path: str) -> List[Instruction]:
    try:
        with open(path, "r") as f:
            text = f.read()
    except OSError as e:
        raise ProgramLoadError(f"cannot read {path}: {e.strerror}") from e
    return parse_program(text)
