"""MachineState: the complete architectural state of a CHIP-8 machine.

State Components:
    - Memory: 4096 bytes, font at 0x000-0x04F, program from 0x200
    - Registers: V0-VF (16 x 8-bit), VF doubles as carry/borrow/collision flag
    - I: 16-bit index register
    - PC: program counter, address of the next opcode
    - Stack: bounded list of return addresses
    - Timers: delay and sound, 8-bit, decremented at 60 Hz
    - Display: 64 x 32 monochrome bitmap
    - Keypad: 16 logical keys

The state is a single mutable object owned by the VM for the whole run.
``reset`` on the VM discards it and builds a fresh one from the same ROM.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .config import QuirkMode
from .decode import Instruction
from .errors import CallStackOverflowError, CallStackUnderflowError, RomLoadError
from .keypad import Keypad

MEMORY_SIZE = 4096
PROGRAM_START = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START
REGISTER_COUNT = 16
FLAG_REGISTER = 0xF
DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
FONT_START = 0x000
FONT_GLYPH_SIZE = 5

FONT = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


def blank_display() -> List[List[bool]]:
    """A display with every pixel off, indexed ``display[y][x]``."""
    return [[False] * DISPLAY_WIDTH for _ in range(DISPLAY_HEIGHT)]


@dataclass
class MachineState:
    """Mutable CHIP-8 machine state.

    Attributes:
        memory: 4096 bytes of RAM
        registers: V0-VF, each 0-255
        index: I register (16-bit)
        pc: Program counter (address of the next opcode)
        stack: Return addresses, innermost last
        stack_limit: Maximum number of return addresses
        delay_timer: 60 Hz countdown readable by programs
        sound_timer: 60 Hz countdown, tone plays while non-zero
        display: 32 rows of 64 booleans
        keypad: Logical key table
        current_instruction: Most recently decoded instruction
        redraw_pending: Display changed since the last render flush
        mode: Quirk mode selected for the run
    """
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    index: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=list)
    stack_limit: int = 16
    delay_timer: int = 0
    sound_timer: int = 0
    display: List[List[bool]] = field(default_factory=blank_display)
    keypad: Keypad = field(default_factory=Keypad)
    current_instruction: Optional[Instruction] = None
    redraw_pending: bool = False
    mode: QuirkMode = QuirkMode.MODERN

    # =========================================================================
    # Memory
    # =========================================================================

    def read_byte(self, address: int) -> int:
        return self.memory[address % MEMORY_SIZE]

    def write_byte(self, address: int, value: int) -> None:
        self.memory[address % MEMORY_SIZE] = value & 0xFF

    def read_opcode(self, address: int) -> int:
        """Big-endian 16-bit word at address."""
        return (self.read_byte(address) << 8) | self.read_byte(address + 1)

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, reg: int) -> int:
        """Get value of register V0-VF.

        Raises:
            KeyError: If reg is not 0x0-0xF
        """
        if not 0 <= reg < REGISTER_COUNT:
            raise KeyError(f"Invalid register: V{reg}")
        return self.registers[reg]

    def set_register(self, reg: int, value: int) -> None:
        """Set register V0-VF, truncating value to 8 bits.

        Raises:
            KeyError: If reg is not 0x0-0xF
        """
        if not 0 <= reg < REGISTER_COUNT:
            raise KeyError(f"Invalid register: V{reg}")
        self.registers[reg] = value & 0xFF

    def set_flag(self, value: int) -> None:
        self.registers[FLAG_REGISTER] = value & 0xFF

    def dump_registers(self) -> List[int]:
        return list(self.registers)

    # =========================================================================
    # Call stack
    # =========================================================================

    def push_return(self, address: int) -> None:
        """Push a return address.

        Raises:
            CallStackOverflowError: If the stack is already full
        """
        if len(self.stack) >= self.stack_limit:
            raise CallStackOverflowError(
                f"Call stack overflow (limit {self.stack_limit})",
                address=(self.pc - 2) & 0xFFFF,
                opcode=self._current_opcode(),
            )
        self.stack.append(address & 0xFFFF)

    def pop_return(self) -> int:
        """Pop the innermost return address.

        Raises:
            CallStackUnderflowError: If the stack is empty
        """
        if not self.stack:
            raise CallStackUnderflowError(
                "Return with empty call stack",
                address=(self.pc - 2) & 0xFFFF,
                opcode=self._current_opcode(),
            )
        return self.stack.pop()

    def _current_opcode(self) -> int:
        if self.current_instruction is None:
            return 0
        return self.current_instruction.opcode

    # =========================================================================
    # Display
    # =========================================================================

    def clear_display(self) -> None:
        self.display = blank_display()
        self.redraw_pending = True

    def pixel(self, x: int, y: int) -> bool:
        return self.display[y][x]

    def lit_pixel_count(self) -> int:
        return sum(sum(row) for row in self.display)

    # =========================================================================
    # Inspection
    # =========================================================================

    def snapshot(self) -> dict:
        """Copy of the register-level state for summaries and tests.

        Memory and display are excluded; they are large and inspected
        directly when needed.
        """
        return {
            "registers": list(self.registers),
            "index": self.index,
            "pc": self.pc,
            "stack": list(self.stack),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "redraw_pending": self.redraw_pending,
            "mode": self.mode.value,
        }

    def validate(self) -> bool:
        """Check state integrity.

        Checks:
            - Memory is exactly 4096 bytes
            - Registers are 16 values within 0-255
            - I and PC fit in 16 bits, timers in 8 bits
            - Stack depth does not exceed its limit
            - Display is 64 x 32

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False
        if len(self.registers) != REGISTER_COUNT:
            return False
        if any(not 0 <= v <= 0xFF for v in self.registers):
            return False
        if not 0 <= self.index <= 0xFFFF or not 0 <= self.pc <= 0xFFFF:
            return False
        if not 0 <= self.delay_timer <= 0xFF or not 0 <= self.sound_timer <= 0xFF:
            return False
        if len(self.stack) > self.stack_limit:
            return False
        if len(self.display) != DISPLAY_HEIGHT:
            return False
        return all(len(row) == DISPLAY_WIDTH for row in self.display)

    def __str__(self) -> str:
        regs = " ".join(f"V{i:X}={v:02X}" for i, v in enumerate(self.registers))
        return (
            f"PC={self.pc:03X} I={self.index:03X} SP={len(self.stack)} "
            f"DT={self.delay_timer} ST={self.sound_timer} {regs}"
        )


def create_initial_state(
    rom: bytes,
    mode: QuirkMode = QuirkMode.MODERN,
    stack_limit: int = 16,
) -> MachineState:
    """Create a fresh machine state with font and ROM loaded.

    Args:
        rom: Raw program bytes, copied to 0x200
        mode: Quirk mode for the run
        stack_limit: Maximum call stack depth

    Returns:
        MachineState ready to execute at 0x200

    Raises:
        RomLoadError: If the ROM does not fit in program memory
    """
    if len(rom) > MAX_ROM_SIZE:
        raise RomLoadError(
            f"ROM is {len(rom)} bytes, maximum is {MAX_ROM_SIZE} bytes"
        )
    state = MachineState(mode=mode, stack_limit=stack_limit)
    state.memory[FONT_START:FONT_START + len(FONT)] = FONT
    state.memory[PROGRAM_START:PROGRAM_START + len(rom)] = rom
    return state


def read_rom(path: Union[str, Path]) -> bytes:
    """Read a ROM image from disk.

    Raises:
        RomLoadError: If the file is missing, unreadable or oversized
    """
    rom_path = Path(path)
    if not rom_path.is_file():
        raise RomLoadError(f"ROM file not found: {rom_path}")
    try:
        data = rom_path.read_bytes()
    except OSError as e:
        raise RomLoadError(f"Could not read ROM {rom_path}: {e}") from e
    if len(data) > MAX_ROM_SIZE:
        raise RomLoadError(
            f"ROM {rom_path} is {len(data)} bytes, maximum is {MAX_ROM_SIZE} bytes"
        )
    return data
