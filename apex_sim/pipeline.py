"""
APEX 7-stage in-order pipeline: Fetch, Decode/RF, Execute1, Execute2,
Memory1, Memory2, Writeback.

- Data hazards are resolved by stalling Decode on the register scoreboard
  (no forwarding).
- BZ reads the zero flag in EX2 and redirects pc in MEM1, flushing the
  three younger latches (Decode, EX1, EX2) when taken.

Pipeline diagram
----------------
 pc ──► F ──► DRF ──► EX1 ──► EX2 ──► MEM1 ──► MEM2 ──► WB ──► register file
                ▲      │(announce rd)    │(redirect + flush)    │(commit rd, flag)
                └──────┴── scoreboard ───┴──────────────────────┘
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import sys

from .errors import InvalidInstructionError
from .hazards import HazardController
from .isa import (BZ_FLAG_DELAY, CODE_BASE, FLAG_PRODUCERS, MEMORY_WORDS, READS_REGISTERS, REG_COUNT,
                  REG_IMM_OPS, WORD, WRITES_REGISTER, Instruction, Opcode, to_signed_32)
from .state import TICK_ORDER, CPUState, Stage, StageLatch
from . import report


@dataclass
class RunStats:
    cycles: int
    completed: int
    stalls: int
    flushes: int


# =========================
# Pipeline CPU
# =========================
class PipelineCPU:
    def __init__(self, program: Sequence[Instruction], code_base: int = CODE_BASE,
                 memory_words: int = MEMORY_WORDS, flag_delay: int = BZ_FLAG_DELAY):
        if not program:
            raise InvalidInstructionError("empty program")
        for instr in program:
            if not isinstance(instr, Instruction):
                raise InvalidInstructionError(f"not an instruction: {instr!r}")
        self.program = tuple(program)
        self.code_base = code_base
        self.state = CPUState(pc=code_base, memory=[0] * memory_words)
        self.hazards = HazardController(REG_COUNT, flag_delay)
        self.latches: Dict[Stage, StageLatch] = {stage: StageLatch() for stage in Stage}
        self.views: Dict[Stage, StageLatch] = {}
        self.clock = 1
        self.completed = 0
        self.stalls = 0
        self.flushes = 0

    # ---- Helpers ----
    def fetch_instr(self, pc: int) -> Optional[Instruction]:
        if pc < self.code_base:
            raise InvalidInstructionError(f"pc {pc} below code memory base {self.code_base}")
        idx = (pc - self.code_base) // WORD
        if idx < len(self.program):
            return self.program[idx]
        return None  # past the end of code memory

    def _forward(self, dst: Stage, latch: Optional[StageLatch]):
        """Copy *latch* into the successor latch, or a bubble when None."""
        self.latches[dst] = latch.copy() if latch is not None else StageLatch()

    def _inherit_stall(self, stage: Stage, prev: Stage) -> StageLatch:
        latch = self.latches[stage]
        if self.latches[prev].stalled:
            latch.stalled = True
        return latch

    def _flush(self, stages):
        for stage in stages:
            latch = self.latches[stage]
            if latch.write_pending:
                self.hazards.scoreboard.release(latch.rd)
            self.latches[stage] = StageLatch()

    # ---- Stages ----
    def stage_wb(self):
        st = self.latches[Stage.WB]
        self.views[Stage.WB] = st.copy()
        if st.busy or st.stalled:
            return
        op = st.opcode
        if op in WRITES_REGISTER:
            self.state.regs[st.rd] = st.result
            if st.write_pending:
                self.hazards.scoreboard.commit(st.rd)
                st.write_pending = False
            if op in FLAG_PRODUCERS:
                self.state.zero_flag = (st.result == 0)
        if st.valid:
            self.completed += 1

    def stage_mem2(self):
        st = self._inherit_stall(Stage.MEM2, Stage.MEM1)
        self.views[Stage.MEM2] = st.copy()
        if st.busy or st.stalled:
            self._forward(Stage.WB, None)
            return
        if st.opcode is Opcode.STORE:
            self.state.write_mem(st.mem_address, st.rs1_value)
        elif st.opcode is Opcode.LOAD:
            st.result = self.state.read_mem(st.mem_address)
        self._forward(Stage.WB, st)

    def stage_mem1(self):
        st = self._inherit_stall(Stage.MEM1, Stage.EX2)
        self.views[Stage.MEM1] = st.copy()
        if st.busy or st.stalled:
            self._forward(Stage.MEM2, None)
            return
        if st.opcode is Opcode.BZ and st.branch_target is not None:
            self.state.pc = st.branch_target
            self._flush((Stage.DECODE, Stage.EX1, Stage.EX2))
            # Any HALT that stopped Fetch was younger than the branch.
            self.latches[Stage.FETCH].busy = False
            self.flushes += 1
        self._forward(Stage.MEM2, st)

    def stage_ex2(self):
        st = self._inherit_stall(Stage.EX2, Stage.EX1)
        self.views[Stage.EX2] = st.copy()
        if st.busy or st.stalled:
            self._forward(Stage.MEM1, None)
            return

        op = st.opcode
        a, b = st.rs1_value, st.rs2_value
        if op in (Opcode.ADD, Opcode.ADDL):
            st.result = to_signed_32(a + b)
        elif op in (Opcode.SUB, Opcode.SUBL):
            st.result = to_signed_32(a - b)
        elif op is Opcode.MUL:
            st.result = to_signed_32(a * b)
        elif op is Opcode.AND:
            st.result = to_signed_32(a & b)
        elif op is Opcode.OR:
            st.result = to_signed_32(a | b)
        elif op is Opcode.XOR:
            st.result = 0 if a == b else 1
        elif op is Opcode.MOVC:
            st.result = to_signed_32(st.imm)
        elif op is Opcode.LOAD:
            st.mem_address = a + st.imm
        elif op is Opcode.STORE:
            # rs1 holds the data, rs2 the base
            st.mem_address = b + st.imm
        elif op is Opcode.BZ:
            if self.state.zero_flag:
                target = st.pc + st.imm
                st.branch_target = target - target % WORD
            else:
                st.branch_target = None
        elif op in (Opcode.NOP, Opcode.HALT):
            pass
        else:
            raise InvalidInstructionError(f"Unknown op in EX2: {op}")

        self._forward(Stage.MEM1, st)

    def stage_ex1(self):
        st = self._inherit_stall(Stage.EX1, Stage.DECODE)
        self.views[Stage.EX1] = st.copy()
        if st.busy or st.stalled:
            self._forward(Stage.EX2, None)
            return
        if st.valid:
            if st.opcode in WRITES_REGISTER:
                self.hazards.scoreboard.announce(st.rd)
                st.write_pending = True
            if st.opcode in FLAG_PRODUCERS:
                self.hazards.note_flag_producer(self.clock)
        self._forward(Stage.EX2, st)

    def stage_decode(self):
        st = self.latches[Stage.DECODE]
        op = st.opcode

        if op in READS_REGISTERS:
            if not self.hazards.scoreboard.ready(st.sources()):
                st.stalled = True
            else:
                st.stalled = False
                regs = self.state.regs
                st.rs1_value = regs[st.rs1]
                if op in REG_IMM_OPS or op is Opcode.LOAD:
                    st.rs2_value = st.imm
                else:
                    st.rs2_value = regs[st.rs2]
        elif op is Opcode.BZ:
            st.stalled = self.hazards.branch_must_wait(self.clock)
        elif op is Opcode.HALT:
            self.latches[Stage.FETCH].busy = True

        self.views[Stage.DECODE] = st.copy()
        if st.stalled:
            self.stalls += 1
        if not st.busy and not st.stalled:
            self._forward(Stage.EX1, st)
        else:
            self._forward(Stage.EX1, None)

    def stage_fetch(self):
        st = self.latches[Stage.FETCH]
        decode_stalled = self.latches[Stage.DECODE].stalled
        instr = None if (st.busy or st.stalled) else self.fetch_instr(self.state.pc)

        if instr is None:
            # Halted or ran off the end of code memory: nothing to issue.
            self.views[Stage.FETCH] = StageLatch(busy=st.busy)
            if not decode_stalled:
                self._forward(Stage.DECODE, None)
            return

        st = StageLatch.from_instruction(instr, self.state.pc)
        self.latches[Stage.FETCH] = st
        self.views[Stage.FETCH] = st.copy()
        if not decode_stalled:
            self.state.pc += WORD
            self._forward(Stage.DECODE, st)

    # ---- Run loop ----
    def step(self):
        self.views = {}
        for stage in TICK_ORDER:
            self._STAGE_FUNCS[stage](self)
        self.clock += 1

    advance_cycle = step

    def run(self, cycles: int, display: bool = False, out=None) -> RunStats:
        if not isinstance(cycles, int) or cycles <= 0:
            raise ValueError(f"cycle budget must be a positive integer, got {cycles!r}")
        out = out or sys.stdout
        for _ in range(cycles):
            clock = self.clock
            self.step()
            if display:
                print(report.format_cycle_header(clock), file=out)
                for line in report.format_stages(self.stage_views()):
                    print(line, file=out)
        return self.stats()

    # ---- Snapshots ----
    def stats(self) -> RunStats:
        return RunStats(cycles=self.clock - 1, completed=self.completed,
                        stalls=self.stalls, flushes=self.flushes)

    def registers(self) -> tuple:
        return tuple(self.state.regs)

    def register_validity(self) -> tuple:
        return tuple(self.hazards.scoreboard.validity())

    def memory(self, count: Optional[int] = None) -> tuple:
        mem = self.state.memory
        return tuple(mem if count is None else mem[:count])

    def stage_views(self) -> List[tuple]:
        """(stage, latch copy) for the last tick, in pipeline order."""
        return [(stage, self.views[stage]) for stage in Stage if stage in self.views]

    _STAGE_FUNCS = {
        Stage.WB: stage_wb,
        Stage.MEM2: stage_mem2,
        Stage.MEM1: stage_mem1,
        Stage.EX2: stage_ex2,
        Stage.EX1: stage_ex1,
        Stage.DECODE: stage_decode,
        Stage.FETCH: stage_fetch,
    }
