"""
APEX instruction set: opcodes, the immutable instruction record and the
machine-wide constants shared by the loader, the pipeline and the reports.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidInstructionError

# =========================
# Machine constants
# =========================
REG_COUNT = 32
WORD = 4              # pc stride in bytes
CODE_BASE = 4000      # address of the first instruction
MEMORY_WORDS = 4000   # flat data memory, word addressed
BZ_FLAG_DELAY = 5     # ticks a BZ waits behind a flag producer in EX1


class Opcode(Enum):
    MOVC = "MOVC"
    ADD = "ADD"
    ADDL = "ADDL"
    SUB = "SUB"
    SUBL = "SUBL"
    MUL = "MUL"
    AND = "AND"
    OR = "OR"
    XOR = "XOR"
    LOAD = "LOAD"
    STORE = "STORE"
    BZ = "BZ"
    NOP = "NOP"
    HALT = "HALT"


# Opcode classes
REG_REG_OPS = frozenset({Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.AND, Opcode.OR, Opcode.XOR})
REG_IMM_OPS = frozenset({Opcode.ADDL, Opcode.SUBL})
WRITES_REGISTER = REG_REG_OPS | REG_IMM_OPS | {Opcode.MOVC, Opcode.LOAD}
READS_REGISTERS = REG_REG_OPS | REG_IMM_OPS | {Opcode.LOAD, Opcode.STORE}
FLAG_PRODUCERS = frozenset({Opcode.ADD, Opcode.SUB, Opcode.MUL})
CONTROL_OPS = frozenset({Opcode.BZ, Opcode.NOP, Opcode.HALT})

# Every opcode is either a register reader, MOVC, or a control op.
_unclassified = set(Opcode) - READS_REGISTERS - CONTROL_OPS - {Opcode.MOVC}
if _unclassified:
    raise RuntimeError(f"opcodes without an operand class: {sorted(op.value for op in _unclassified)}")


def to_signed_32(value: int) -> int:
    """Interpret the low 32 bits of *value* as a signed integer."""
    v = value & 0xFFFFFFFF
    if v & 0x80000000:
        return v - 0x100000000
    return v


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    rd: int = 0
    rs1: int = 0
    rs2: int = 0
    imm: int = 0

    def __post_init__(self):
        if not isinstance(self.opcode, Opcode):
            raise InvalidInstructionError(f"unknown opcode {self.opcode!r}")
        for name in ("rd", "rs1", "rs2"):
            idx = getattr(self, name)
            if not 0 <= idx < REG_COUNT:
                raise InvalidInstructionError(
                    f"{self.opcode.value}: register {name}=R{idx} out of range 0..{REG_COUNT - 1}")


def source_registers(opcode: Opcode, rs1: int, rs2: int):
    """Registers Decode must find valid before reading operands."""
    if opcode in REG_REG_OPS or opcode is Opcode.STORE:
        return (rs1, rs2)
    if opcode in REG_IMM_OPS or opcode is Opcode.LOAD:
        return (rs1,)
    return ()
