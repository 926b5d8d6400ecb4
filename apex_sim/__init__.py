"""
APEX pipeline simulator (7 stages: F, DRF, EX1, EX2, MEM1, MEM2, WB)

- In-order, one instruction per stage per cycle
- Data hazards stall Decode on a register scoreboard; no forwarding
- BZ resolves in Memory1 and flushes Decode, Execute1 and Execute2 when taken
"""
from .errors import ApexError, InvalidInstructionError, ProgramLoadError
from .isa import Instruction, Opcode
from .loader import load_program, parse_program
from .pipeline import PipelineCPU, RunStats
from .state import Stage, StageLatch

__all__ = [
    "ApexError", "InvalidInstructionError", "ProgramLoadError",
    "Instruction", "Opcode", "load_program", "parse_program",
    "PipelineCPU", "RunStats", "Stage", "StageLatch",
]
