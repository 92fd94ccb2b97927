"""chip8-vm: a CHIP-8 virtual machine.

The machine fetches 16-bit big-endian opcodes from 4 KiB of memory, decodes
them into instruction families and executes them through a frozen handler
registry against a 16-register file, a call stack, two 60 Hz timers, a
16-key keypad and a 64x32 monochrome display.

Architecture:
    MEMORY -> FETCH -> DECODE -> FAMILY -> REGISTRY -> EXECUTE -> STATE
                                                          |
    FrameDriver: N x step() per 1/60 s, timer tick, render flush

Modules:
    config: EmulatorConfig and QuirkMode
    state: MachineState and ROM loading
    decode: Instruction decoder
    registry: Per-family opcode handlers
    sprite: DXYN sprite blit
    keypad: Keypad state
    timers: Delay/sound timers and audio gate
    cpu: Chip8VM step engine and FX0A key wait
    frame: FrameDriver and collaborator protocols
"""

__version__ = "0.1.0"

from .config import EmulatorConfig, QuirkMode
from .cpu import Chip8VM
from .decode import Instruction, InstructionFamily, decode
from .errors import (
    CallStackOverflowError,
    CallStackUnderflowError,
    Chip8Error,
    FrontendError,
    RomLoadError,
    VMFault,
)
from .frame import ControlCommand, FrameDriver
from .state import MachineState

__all__ = [
    "Chip8VM",
    "EmulatorConfig",
    "QuirkMode",
    "MachineState",
    "Instruction",
    "InstructionFamily",
    "decode",
    "FrameDriver",
    "ControlCommand",
    "Chip8Error",
    "FrontendError",
    "RomLoadError",
    "VMFault",
    "CallStackOverflowError",
    "CallStackUnderflowError",
]
