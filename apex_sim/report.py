"""
Text formatting for traces and state dumps. Nothing here touches machine
state; callers decide what to print.
"""
from __future__ import annotations
from typing import Iterable, List, Union

from .isa import Instruction, Opcode
from .state import Stage, StageLatch

# XOR keeps its assembler spelling in traces
_MNEMONIC = {Opcode.XOR: "EX-OR"}


def mnemonic(opcode: Opcode) -> str:
    return _MNEMONIC.get(opcode, opcode.value)


def format_instruction(ins: Union[Instruction, StageLatch]) -> str:
    op = ins.opcode
    name = mnemonic(op)
    if op is Opcode.MOVC:
        return f"{name},R{ins.rd},#{ins.imm}"
    if op in (Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.AND, Opcode.OR, Opcode.XOR):
        return f"{name},R{ins.rd},R{ins.rs1},R{ins.rs2}"
    if op in (Opcode.ADDL, Opcode.SUBL, Opcode.LOAD):
        return f"{name},R{ins.rd},R{ins.rs1},#{ins.imm}"
    if op is Opcode.STORE:
        return f"{name},R{ins.rs1},R{ins.rs2},#{ins.imm}"
    if op is Opcode.BZ:
        return f"{name},#{ins.imm}"
    return name


def format_stage(stage: Stage, latch: StageLatch) -> str:
    line = f"{stage.label:<15}: pc({latch.pc}) {format_instruction(latch)}"
    if latch.stalled:
        line += " (stalled)"
    return line


def format_stages(views: Iterable) -> List[str]:
    return [format_stage(stage, latch) for stage, latch in views]


def format_cycle_header(clock: int) -> str:
    rule = "-" * 32
    return f"{rule}\nClock Cycle #: {clock}\n{rule}"


def format_program(program: Iterable[Instruction]) -> List[str]:
    rows = [f"{'opcode':<9} {'rd':<9} {'rs1':<9} {'rs2':<9} {'imm':<9}"]
    for ins in program:
        rows.append(f"{mnemonic(ins.opcode):<9} {ins.rd:<9} {ins.rs1:<9} {ins.rs2:<9} {ins.imm:<9}")
    return rows


def format_registers(cpu, count: int = 16) -> List[str]:
    regs = cpu.registers()
    valid = cpu.register_validity()
    rows = ["\t**************  REGISTERS  ************"]
    for i in range(min(count, len(regs))):
        status = "VALID" if valid[i] else "INVALID"
        rows.append(f"\t |REG[{i}]| \t |Value={regs[i]}| \t |Status='{status}'|")
    return rows


def format_memory(cpu, count: int = 100) -> List[str]:
    rows = ["\t**************  MEMORY  ************"]
    for i, val in enumerate(cpu.memory(count)):
        rows.append(f"\t |MEM[{i}]| \t |Value={val}|")
    return rows


def format_summary(cpu) -> str:
    s = cpu.stats()
    return f"Cycles: {s.cycles} | Completed: {s.completed} | Stalls: {s.stalls} | Flushes: {s.flushes}"
