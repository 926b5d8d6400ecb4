"""
Architectural state and the stage latches of the APEX pipeline.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from .errors import InvalidInstructionError
from .isa import CODE_BASE, MEMORY_WORDS, REG_COUNT, Instruction, Opcode, source_registers, to_signed_32


class Stage(Enum):
    FETCH = "Fetch"
    DECODE = "Decode/RF"
    EX1 = "Execute1"
    EX2 = "Execute2"
    MEM1 = "Memory1"
    MEM2 = "Memory2"
    WB = "Writeback"

    @property
    def label(self) -> str:
        return self.value


# Order in which the engine runs the stages each tick.
TICK_ORDER = (Stage.WB, Stage.MEM2, Stage.MEM1, Stage.EX2, Stage.EX1, Stage.DECODE, Stage.FETCH)


# =========================
# Machine state
# =========================
@dataclass
class CPUState:
    pc: int = CODE_BASE
    regs: List[int] = field(default_factory=lambda: [0] * REG_COUNT)
    zero_flag: bool = True
    memory: List[int] = field(default_factory=lambda: [0] * MEMORY_WORDS)

    def _check_addr(self, addr: int):
        if not 0 <= addr < len(self.memory):
            raise InvalidInstructionError(
                f"data memory address {addr} out of range 0..{len(self.memory) - 1}")

    def read_mem(self, addr: int) -> int:
        self._check_addr(addr)
        return self.memory[addr]

    def write_mem(self, addr: int, val: int):
        self._check_addr(addr)
        self.memory[addr] = to_signed_32(val)


# =========================
# Stage latch
# =========================
@dataclass
class StageLatch:
    opcode: Opcode = Opcode.NOP
    rd: int = 0
    rs1: int = 0
    rs2: int = 0
    imm: int = 0
    pc: int = 0
    # Operand values and results
    rs1_value: int = 0
    rs2_value: int = 0
    result: int = 0
    mem_address: int = 0
    branch_target: Optional[int] = None  # set in EX2 for a taken BZ
    # Markers
    valid: bool = False          # holds a real instruction (not a bubble)
    busy: bool = False
    stalled: bool = False
    write_pending: bool = False  # destination announced to the scoreboard

    @classmethod
    def from_instruction(cls, instr: Instruction, pc: int) -> "StageLatch":
        return cls(opcode=instr.opcode, rd=instr.rd, rs1=instr.rs1, rs2=instr.rs2,
                   imm=instr.imm, pc=pc, valid=True)

    @property
    def is_bubble(self) -> bool:
        return not self.valid

    def sources(self):
        return source_registers(self.opcode, self.rs1, self.rs2)

    def copy(self) -> "StageLatch":
        return replace(self)
