"""OpcodeRegistry: per-family execution handlers for the CHIP-8 VM.

Each instruction family decoded by ``decode.py`` maps to exactly one
handler. The registry is frozen after construction so no handler can be
swapped at runtime.

Handler contract:
    handler(vm, inst) -> None

    ``vm.state`` has already had its PC advanced past the instruction, so
    jumps and calls write absolute targets and skips add 2 to the PC.

Quirk branch points (the only places ``QuirkMode`` is consulted):
    - ``_shift_source``: 8XY6/8XYE shift VY (legacy) or VX (modern)
    - ``_logic_resets_flag``: 8XY1/2/3 clear VF (legacy only)
    - ``_advances_index``: FX55/FX65 leave I past the block (legacy only)
"""

import logging
from typing import TYPE_CHECKING, Callable, Dict, Optional, Set

from .config import QuirkMode
from .decode import Instruction, InstructionFamily
from .sprite import draw_sprite
from .state import FONT_GLYPH_SIZE, FONT_START, MachineState

if TYPE_CHECKING:
    from .cpu import Chip8VM

logger = logging.getLogger(__name__)

Handler = Callable[["Chip8VM", Instruction], None]


class OpcodeRegistry:
    """Frozen mapping from instruction family to handler.

    Attributes:
        _handlers: Dictionary mapping families to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all opcode handlers."""
        self._handlers: Dict[InstructionFamily, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        F = InstructionFamily

        # Flow control
        self.register(F.CLS, self._op_cls)
        self.register(F.RET, self._op_ret)
        self.register(F.SYS, self._op_nop)
        self.register(F.JP, self._op_jp)
        self.register(F.CALL, self._op_call)
        self.register(F.JP_V0, self._op_jp_v0)

        # Conditional skips
        self.register(F.SE_BYTE, self._op_se_byte)
        self.register(F.SNE_BYTE, self._op_sne_byte)
        self.register(F.SE_REG, self._op_se_reg)
        self.register(F.SNE_REG, self._op_sne_reg)
        self.register(F.SKP, self._op_skp)
        self.register(F.SKNP, self._op_sknp)

        # Register loads and arithmetic
        self.register(F.LD_BYTE, self._op_ld_byte)
        self.register(F.ADD_BYTE, self._op_add_byte)
        self.register(F.LD_REG, self._op_ld_reg)
        self.register(F.OR, self._op_or)
        self.register(F.AND, self._op_and)
        self.register(F.XOR, self._op_xor)
        self.register(F.ADD_REG, self._op_add_reg)
        self.register(F.SUB, self._op_sub)
        self.register(F.SHR, self._op_shr)
        self.register(F.SUBN, self._op_subn)
        self.register(F.SHL, self._op_shl)
        self.register(F.RND, self._op_rnd)

        # Index register and memory
        self.register(F.LD_I, self._op_ld_i)
        self.register(F.ADD_I, self._op_add_i)
        self.register(F.LD_F, self._op_ld_f)
        self.register(F.LD_B, self._op_ld_b)
        self.register(F.STORE_REGS, self._op_store_regs)
        self.register(F.LOAD_REGS, self._op_load_regs)

        # Display, timers, keypad
        self.register(F.DRW, self._op_drw)
        self.register(F.LD_VX_DT, self._op_ld_vx_dt)
        self.register(F.LD_DT_VX, self._op_ld_dt_vx)
        self.register(F.LD_ST_VX, self._op_ld_st_vx)
        self.register(F.LD_VX_K, self._op_ld_vx_k)

        self.register(F.UNKNOWN, self._op_unknown)

    def register(self, family: InstructionFamily, handler: Handler) -> None:
        """Register the handler for an instruction family.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If family already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if family in self._handlers:
            raise ValueError(f"Handler already registered: {family.name}")
        self._handlers[family] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_families(self) -> Set[InstructionFamily]:
        return set(self._handlers.keys())

    def execute(self, vm: "Chip8VM", inst: Instruction) -> None:
        """Execute one decoded instruction against the VM.

        Raises:
            KeyError: If no handler is registered for the family
            VMFault: Propagated from handlers (call stack faults)
        """
        if inst.family not in self._handlers:
            raise KeyError(f"Unknown instruction family: {inst.family}")
        self._handlers[inst.family](vm, inst)

    # =========================================================================
    # Quirk branch points
    # =========================================================================

    @staticmethod
    def _shift_source(state: MachineState, inst: Instruction) -> int:
        if state.mode is QuirkMode.LEGACY:
            return state.registers[inst.y]
        return state.registers[inst.x]

    @staticmethod
    def _logic_resets_flag(state: MachineState) -> bool:
        return state.mode is QuirkMode.LEGACY

    @staticmethod
    def _advances_index(state: MachineState) -> bool:
        return state.mode is QuirkMode.LEGACY

    # =========================================================================
    # Flow control
    # =========================================================================

    def _op_cls(self, vm: "Chip8VM", inst: Instruction) -> None:
        """00E0 - Clear the display."""
        vm.state.clear_display()

    def _op_ret(self, vm: "Chip8VM", inst: Instruction) -> None:
        """00EE - Return from subroutine.

        Raises:
            CallStackUnderflowError: If no return address is on the stack
        """
        vm.state.pc = vm.state.pop_return()

    def _op_jp(self, vm: "Chip8VM", inst: Instruction) -> None:
        """1NNN - Jump to NNN."""
        vm.state.pc = inst.nnn

    def _op_call(self, vm: "Chip8VM", inst: Instruction) -> None:
        """2NNN - Call subroutine at NNN.

        The pushed return address is the already-advanced PC, i.e. the
        instruction after the call.

        Raises:
            CallStackOverflowError: If the stack is at its limit
        """
        vm.state.push_return(vm.state.pc)
        vm.state.pc = inst.nnn

    def _op_jp_v0(self, vm: "Chip8VM", inst: Instruction) -> None:
        """BNNN - Jump to V0 + NNN."""
        vm.state.pc = (vm.state.registers[0] + inst.nnn) & 0xFFFF

    # =========================================================================
    # Conditional skips
    # =========================================================================

    @staticmethod
    def _skip_if(state: MachineState, condition: bool) -> None:
        if condition:
            state.pc = (state.pc + 2) & 0xFFFF

    def _op_se_byte(self, vm: "Chip8VM", inst: Instruction) -> None:
        """3XNN - Skip next instruction if VX == NN."""
        self._skip_if(vm.state, vm.state.registers[inst.x] == inst.nn)

    def _op_sne_byte(self, vm: "Chip8VM", inst: Instruction) -> None:
        """4XNN - Skip next instruction if VX != NN."""
        self._skip_if(vm.state, vm.state.registers[inst.x] != inst.nn)

    def _op_se_reg(self, vm: "Chip8VM", inst: Instruction) -> None:
        """5XY0 - Skip next instruction if VX == VY."""
        regs = vm.state.registers
        self._skip_if(vm.state, regs[inst.x] == regs[inst.y])

    def _op_sne_reg(self, vm: "Chip8VM", inst: Instruction) -> None:
        """9XY0 - Skip next instruction if VX != VY."""
        regs = vm.state.registers
        self._skip_if(vm.state, regs[inst.x] != regs[inst.y])

    def _op_skp(self, vm: "Chip8VM", inst: Instruction) -> None:
        """EX9E - Skip next instruction if key VX is pressed."""
        key = vm.state.registers[inst.x] & 0xF
        self._skip_if(vm.state, vm.state.keypad.is_pressed(key))

    def _op_sknp(self, vm: "Chip8VM", inst: Instruction) -> None:
        """EXA1 - Skip next instruction if key VX is not pressed."""
        key = vm.state.registers[inst.x] & 0xF
        self._skip_if(vm.state, not vm.state.keypad.is_pressed(key))

    # =========================================================================
    # Register loads and arithmetic
    # =========================================================================

    def _op_ld_byte(self, vm: "Chip8VM", inst: Instruction) -> None:
        """6XNN - VX = NN."""
        vm.state.registers[inst.x] = inst.nn

    def _op_add_byte(self, vm: "Chip8VM", inst: Instruction) -> None:
        """7XNN - VX += NN, wrapping, VF untouched."""
        regs = vm.state.registers
        regs[inst.x] = (regs[inst.x] + inst.nn) & 0xFF

    def _op_ld_reg(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY0 - VX = VY."""
        regs = vm.state.registers
        regs[inst.x] = regs[inst.y]

    def _logic(self, vm: "Chip8VM", inst: Instruction, value: int) -> None:
        vm.state.registers[inst.x] = value
        if self._logic_resets_flag(vm.state):
            vm.state.set_flag(0)

    def _op_or(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY1 - VX |= VY."""
        regs = vm.state.registers
        self._logic(vm, inst, regs[inst.x] | regs[inst.y])

    def _op_and(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY2 - VX &= VY."""
        regs = vm.state.registers
        self._logic(vm, inst, regs[inst.x] & regs[inst.y])

    def _op_xor(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY3 - VX ^= VY."""
        regs = vm.state.registers
        self._logic(vm, inst, regs[inst.x] ^ regs[inst.y])

    def _op_add_reg(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY4 - VX += VY, VF = carry.

        VF is written after VX so the flag survives when X is F.
        """
        regs = vm.state.registers
        total = regs[inst.x] + regs[inst.y]
        regs[inst.x] = total & 0xFF
        vm.state.set_flag(1 if total > 0xFF else 0)

    def _op_sub(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY5 - VX -= VY, VF = 1 when there is no borrow (VY <= VX)."""
        regs = vm.state.registers
        vx, vy = regs[inst.x], regs[inst.y]
        regs[inst.x] = (vx - vy) & 0xFF
        vm.state.set_flag(1 if vy <= vx else 0)

    def _op_subn(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY7 - VX = VY - VX, VF = 1 when there is no borrow (VX <= VY)."""
        regs = vm.state.registers
        vx, vy = regs[inst.x], regs[inst.y]
        regs[inst.x] = (vy - vx) & 0xFF
        vm.state.set_flag(1 if vx <= vy else 0)

    def _op_shr(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XY6 - Shift right by one, VF = bit shifted out.

        Legacy mode shifts VY into VX; modern mode shifts VX in place.
        """
        source = self._shift_source(vm.state, inst)
        vm.state.registers[inst.x] = source >> 1
        vm.state.set_flag(source & 0x01)

    def _op_shl(self, vm: "Chip8VM", inst: Instruction) -> None:
        """8XYE - Shift left by one, VF = bit shifted out.

        Legacy mode shifts VY into VX; modern mode shifts VX in place.
        """
        source = self._shift_source(vm.state, inst)
        vm.state.registers[inst.x] = (source << 1) & 0xFF
        vm.state.set_flag((source & 0x80) >> 7)

    def _op_rnd(self, vm: "Chip8VM", inst: Instruction) -> None:
        """CXNN - VX = random byte AND NN."""
        vm.state.registers[inst.x] = vm.rng.randrange(256) & inst.nn

    # =========================================================================
    # Index register and memory
    # =========================================================================

    def _op_ld_i(self, vm: "Chip8VM", inst: Instruction) -> None:
        """ANNN - I = NNN."""
        vm.state.index = inst.nnn

    def _op_add_i(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX1E - I += VX (16-bit, VF untouched)."""
        state = vm.state
        state.index = (state.index + state.registers[inst.x]) & 0xFFFF

    def _op_ld_f(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX29 - I = address of the font glyph for VX."""
        state = vm.state
        state.index = FONT_START + state.registers[inst.x] * FONT_GLYPH_SIZE

    def _op_ld_b(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX33 - Store BCD of VX at I (hundreds), I+1 (tens), I+2 (ones)."""
        state = vm.state
        value = state.registers[inst.x]
        state.write_byte(state.index, value // 100)
        state.write_byte(state.index + 1, (value // 10) % 10)
        state.write_byte(state.index + 2, value % 10)

    def _op_store_regs(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX55 - Store V0..VX inclusive at I."""
        state = vm.state
        for i in range(inst.x + 1):
            state.write_byte(state.index + i, state.registers[i])
        if self._advances_index(state):
            state.index = (state.index + inst.x + 1) & 0xFFFF

    def _op_load_regs(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX65 - Load V0..VX inclusive from I."""
        state = vm.state
        for i in range(inst.x + 1):
            state.registers[i] = state.read_byte(state.index + i)
        if self._advances_index(state):
            state.index = (state.index + inst.x + 1) & 0xFFFF

    # =========================================================================
    # Display, timers, keypad
    # =========================================================================

    def _op_drw(self, vm: "Chip8VM", inst: Instruction) -> None:
        """DXYN - Draw an N-row sprite from I at (VX, VY), VF = collision."""
        state = vm.state
        collision = draw_sprite(
            state, state.registers[inst.x], state.registers[inst.y], inst.n
        )
        state.set_flag(1 if collision else 0)

    def _op_ld_vx_dt(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX07 - VX = delay timer."""
        vm.state.registers[inst.x] = vm.state.delay_timer

    def _op_ld_dt_vx(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX15 - Delay timer = VX."""
        vm.state.delay_timer = vm.state.registers[inst.x]

    def _op_ld_st_vx(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX18 - Sound timer = VX."""
        vm.state.sound_timer = vm.state.registers[inst.x]

    def _op_ld_vx_k(self, vm: "Chip8VM", inst: Instruction) -> None:
        """FX0A - Wait for a key press and release, store the key in VX.

        While the wait is unresolved the PC is rewound so this instruction
        executes again on the next step.
        """
        state = vm.state
        key = vm.key_wait.poll(state.keypad)
        if key is None:
            state.pc = (state.pc - 2) & 0xFFFF
        else:
            state.registers[inst.x] = key

    # =========================================================================
    # Special
    # =========================================================================

    def _op_nop(self, vm: "Chip8VM", inst: Instruction) -> None:
        """0NNN - Machine code routine call, not supported; ignored."""

    def _op_unknown(self, vm: "Chip8VM", inst: Instruction) -> None:
        """Unrecognized sub-opcode, executed as a no-op."""
        logger.debug(
            "Unimplemented opcode 0x%04X at 0x%03X", inst.opcode, (vm.state.pc - 2) & 0xFFFF
        )


# Singleton registry instance
_registry: Optional[OpcodeRegistry] = None


def get_registry() -> OpcodeRegistry:
    """Get the shared, frozen opcode registry."""
    global _registry
    if _registry is None:
        _registry = OpcodeRegistry()
    return _registry
