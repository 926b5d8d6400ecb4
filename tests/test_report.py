from apex_sim import PipelineCPU, Stage, StageLatch, parse_program
from apex_sim import report


def test_format_instruction():
    prog = parse_program("""
        MOVC,R1,#5
        ADD,R3,R1,R2
        ADDL,R4,R3,#7
        STORE,R3,R0,#0
        LOAD,R2,R1,#4
        EX-OR,R5,R1,R2
        BZ,#8
        HALT
    """)
    assert [report.format_instruction(i) for i in prog] == [
        "MOVC,R1,#5", "ADD,R3,R1,R2", "ADDL,R4,R3,#7", "STORE,R3,R0,#0",
        "LOAD,R2,R1,#4", "EX-OR,R5,R1,R2", "BZ,#8", "HALT",
    ]


def test_format_stage():
    bubble = StageLatch()
    assert report.format_stage(Stage.MEM2, bubble) == "Memory2        : pc(0) NOP"
    stalled = StageLatch.from_instruction(parse_program("ADD,R2,R1,R1")[0], 4004)
    stalled.stalled = True
    assert report.format_stage(Stage.DECODE, stalled) == "Decode/RF      : pc(4004) ADD,R2,R1,R1 (stalled)"


def test_register_dump_shows_pending_writes():
    cpu = PipelineCPU(parse_program("MOVC,R1,#5\nHALT"))
    cpu.run(3)
    rows = report.format_registers(cpu, 2)
    assert len(rows) == 3
    assert "|REG[1]| \t |Value=0| \t |Status='INVALID'|" in rows[2]
    cpu.run(5)
    rows = report.format_registers(cpu, 2)
    assert "|Value=5| \t |Status='VALID'|" in rows[2]


def test_memory_dump_and_summary():
    cpu = PipelineCPU(parse_program("MOVC,R1,#9\nSTORE,R1,R0,#2"))
    cpu.run(20)
    rows = report.format_memory(cpu, 4)
    assert rows[3] == "\t |MEM[2]| \t |Value=9|"
    assert report.format_summary(cpu) == "Cycles: 20 | Completed: 2 | Stalls: 4 | Flushes: 0"


def test_format_program_table():
    rows = report.format_program(parse_program("MOVC,R1,#5"))
    assert rows[0].split() == ["opcode", "rd", "rs1", "rs2", "imm"]
    assert rows[1].split() == ["MOVC", "1", "0", "0", "5"]
