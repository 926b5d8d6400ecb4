class ApexError(Exception):
    """Base class for simulator failures."""


class ProgramLoadError(ApexError, ValueError):
    """Program text is missing or malformed; raised before the pipeline runs."""

    def __init__(self, message: str, line_no: int = 0):
        if line_no:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no


class InvalidInstructionError(ApexError, ValueError):
    """An instruction or operand broke the machine contract (bad opcode,
    register or memory index out of range, pc outside code memory)."""
