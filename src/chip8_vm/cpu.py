"""Chip8VM: fetch-decode-execute engine for the CHIP-8 virtual machine.

This module implements the execution pipeline:
    MEMORY -> FETCH -> DECODE -> FAMILY -> REGISTRY -> EXECUTE -> STATE

One ``step()`` runs exactly one instruction. Pacing, timer ticks and
rendering belong to the frame driver (``frame.py``).
"""

import enum
import logging
import random
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import EmulatorConfig
from .decode import Instruction, decode
from .keypad import KEY_COUNT, Keypad
from .registry import OpcodeRegistry, get_registry
from .state import MachineState, create_initial_state, read_rom

logger = logging.getLogger(__name__)

# Per-instruction trace, enabled by setting this logger to DEBUG
TRACE_LOGGER_NAME = "chip8_vm.trace"
trace_logger = logging.getLogger(TRACE_LOGGER_NAME)


class KeyWaitPhase(enum.Enum):
    IDLE = "idle"
    LATCHED = "latched"


class KeyWait:
    """State machine behind FX0A.

    IDLE: wait for any key to go down, then latch the lowest one.
    LATCHED: wait for the latched key to come back up, then report it.

    Attributes:
        phase: Current phase
        key: Latched key while in LATCHED, else None
        blocked: The last poll left the wait unresolved
    """

    def __init__(self):
        self.phase = KeyWaitPhase.IDLE
        self.key: Optional[int] = None
        self.blocked = False

    def poll(self, keypad: Keypad) -> Optional[int]:
        """Advance the state machine against the current keypad.

        Returns:
            The key index once a full press-then-release has been observed,
            None while still waiting
        """
        self.blocked = True
        if self.phase is KeyWaitPhase.IDLE:
            pressed = keypad.first_pressed()
            if pressed is not None:
                self.phase = KeyWaitPhase.LATCHED
                self.key = pressed
            return None

        if keypad.is_pressed(self.key):
            return None

        key = self.key
        self.reset()
        return key

    def reset(self) -> None:
        self.phase = KeyWaitPhase.IDLE
        self.key = None
        self.blocked = False


class Chip8VM:
    """CHIP-8 virtual machine.

    Attributes:
        config: Run-wide configuration
        registry: Frozen opcode registry
        state: Current machine state (None until a ROM is loaded)
        rng: Random source for CXNN, seeded once per run
        key_wait: FX0A state machine
        steps: Instructions executed since load or reset
    """

    def __init__(self, config: Optional[EmulatorConfig] = None):
        """Initialize the VM.

        Args:
            config: Emulator configuration (defaults if None)
        """
        self.config = (config or EmulatorConfig()).validate()
        self.registry: OpcodeRegistry = get_registry()
        self.state: Optional[MachineState] = None
        self.rng = random.Random(self.config.seed)
        self.key_wait = KeyWait()
        self.steps = 0
        self._rom: bytes = b""

    def load_rom(self, rom: bytes) -> None:
        """Load a program image and build a fresh machine state.

        Raises:
            RomLoadError: If the ROM does not fit in program memory
        """
        self.state = create_initial_state(
            bytes(rom), mode=self.config.mode, stack_limit=self.config.stack_limit
        )
        self._rom = bytes(rom)
        self.key_wait.reset()
        self.steps = 0
        logger.info("Loaded %d byte ROM (%s mode)", len(rom), self.config.mode.value)

    def load_rom_file(self, path: Union[str, Path]) -> None:
        """Read a ROM from disk and load it.

        Raises:
            RomLoadError: If the file is missing, unreadable or oversized
        """
        self.load_rom(read_rom(path))

    def load_program(self, opcodes: List[int]) -> None:
        """Load a program given as a list of 16-bit opcodes."""
        rom = bytearray()
        for opcode in opcodes:
            rom += (opcode & 0xFFFF).to_bytes(2, "big")
        self.load_rom(bytes(rom))

    def reset(self) -> None:
        """Rebuild the machine from the loaded ROM.

        The keypad object survives so keys physically held across a reset
        stay pressed. The RNG is reseeded from the configuration.
        """
        self._require_state()
        keypad = self.state.keypad
        self.load_rom(self._rom)
        self.state.keypad = keypad
        self.state.redraw_pending = True
        self.rng = random.Random(self.config.seed)
        logger.info("Machine reset")

    def step(self) -> Instruction:
        """Execute a single instruction.

        Performs: FETCH -> DECODE -> EXECUTE. The PC is advanced by 2 before
        the handler runs. When the trace logger is at DEBUG, one record per
        instruction is logged before it executes.

        Returns:
            The decoded instruction that was executed

        Raises:
            RuntimeError: If no ROM is loaded
            VMFault: On call stack overflow or underflow
        """
        state = self._require_state()

        address = state.pc
        opcode = state.read_opcode(address)
        state.pc = (address + 2) & 0xFFFF

        inst = decode(opcode)
        state.current_instruction = inst
        if trace_logger.isEnabledFor(logging.DEBUG):
            trace_logger.debug("0x%03X %04X %s", address, opcode, inst.describe())

        self.registry.execute(self, inst)
        self.steps += 1
        return inst

    def run(self, count: int) -> int:
        """Execute ``count`` instructions back to back.

        Returns:
            Number of instructions executed
        """
        for _ in range(count):
            self.step()
        return count

    @property
    def waiting_for_key(self) -> bool:
        """True while an FX0A is suspended waiting for a press and release."""
        return self.key_wait.blocked

    # =========================================================================
    # Inspection
    # =========================================================================

    def _require_state(self) -> MachineState:
        if self.state is None:
            raise RuntimeError("No ROM loaded")
        return self.state

    def get_register(self, reg: int) -> int:
        return self._require_state().get_register(reg)

    def dump_registers(self) -> List[int]:
        return self._require_state().dump_registers()

    def get_pc(self) -> int:
        return self._require_state().pc

    def press_key(self, key: int) -> None:
        self._require_state().keypad.press(key)

    def release_key(self, key: int) -> None:
        self._require_state().keypad.release(key)

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with step count, register-level state and display stats
        """
        state = self._require_state()
        summary = state.snapshot()
        summary["steps"] = self.steps
        summary["lit_pixels"] = state.lit_pixel_count()
        summary["waiting_for_key"] = self.waiting_for_key
        summary["keys"] = [k for k in range(KEY_COUNT) if state.keypad.is_pressed(k)]
        return summary
