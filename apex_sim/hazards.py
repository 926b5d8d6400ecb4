"""
Hazard tracking for the APEX pipeline.

The pipeline has no forwarding network, so every hazard is resolved by
stalling Decode:

- data hazards through a scoreboard of outstanding register writes
  (announced in Execute1, cleared in Writeback);
- the BZ/zero-flag hazard through a record of the tick the most recent
  flag producer (ADD, SUB, MUL) entered Execute1.
"""
from __future__ import annotations
from typing import Iterable, List, Optional

from .isa import BZ_FLAG_DELAY, REG_COUNT


class Scoreboard:
    def __init__(self, nregs: int = REG_COUNT):
        self.pending: List[int] = [0] * nregs

    def announce(self, reg: int):
        self.pending[reg] += 1

    def commit(self, reg: int):
        if self.pending[reg] == 0:
            raise RuntimeError(f"R{reg} committed without an outstanding write")
        self.pending[reg] -= 1

    # A flushed instruction gives its announced write back the same way.
    release = commit

    def is_valid(self, reg: int) -> bool:
        return self.pending[reg] == 0

    def ready(self, regs: Iterable[int]) -> bool:
        return all(self.pending[r] == 0 for r in regs)

    def validity(self) -> List[bool]:
        return [n == 0 for n in self.pending]


class HazardController:
    def __init__(self, nregs: int = REG_COUNT, flag_delay: int = BZ_FLAG_DELAY):
        self.scoreboard = Scoreboard(nregs)
        self.flag_delay = flag_delay
        # Tick at which the latest flag producer entered EX1.
        self.flag_producer_tick: Optional[int] = None

    def note_flag_producer(self, tick: int):
        self.flag_producer_tick = tick

    def branch_must_wait(self, tick: int) -> bool:
        """
        True while a BZ in Decode must hold because the zero flag it will read
        is still owed by a producer ahead of it.

        Counting the tick the producer entered EX1 as the first, the branch is
        released on tick number `flag_delay`, which is the producer's
        Writeback tick.
        """
        if self.flag_producer_tick is None:
            return False
        waited = tick - self.flag_producer_tick + 1
        return waited < self.flag_delay
