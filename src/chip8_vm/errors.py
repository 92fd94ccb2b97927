"""Exception hierarchy for the CHIP-8 virtual machine.

Load and frontend errors are raised before any instruction executes. VM
faults are raised from inside ``step()`` when a program drives the machine
into a state the hardware model cannot represent (call stack
overflow/underflow).
"""


class Chip8Error(RuntimeError):
    """Base class for every error raised by the virtual machine."""


class RomLoadError(Chip8Error):
    """ROM file missing, unreadable, or too large for program memory."""


class VMFault(Chip8Error):
    """Fatal condition reached while executing an instruction.

    Attributes:
        address: Address of the faulting instruction
        opcode: Raw 16-bit opcode that faulted
    """

    def __init__(self, message: str, address: int = 0, opcode: int = 0):
        super().__init__(f"{message} (opcode 0x{opcode:04X} at 0x{address:03X})")
        self.address = address
        self.opcode = opcode


class CallStackOverflowError(VMFault):
    """Subroutine call with the call stack already at its limit."""


class CallStackUnderflowError(VMFault):
    """Subroutine return with an empty call stack."""


class FrontendError(Chip8Error):
    """Window, audio or input backend could not be started."""
