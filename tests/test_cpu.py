"""Tests for per-opcode execution semantics."""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm import Chip8VM, EmulatorConfig
from chip8_vm.cpu import TRACE_LOGGER_NAME
from chip8_vm.decode import InstructionFamily
from chip8_vm.errors import CallStackOverflowError, CallStackUnderflowError


def run(vm, program, steps=None, registers=None):
    """Load a program, preset registers, execute it and return the state."""
    vm.load_program(program)
    for reg, value in (registers or {}).items():
        vm.state.registers[reg] = value
    vm.run(len(program) if steps is None else steps)
    return vm.state


class TestStep:
    """Test the fetch/advance/dispatch contract."""

    def test_requires_rom(self):
        with pytest.raises(RuntimeError, match="No ROM"):
            Chip8VM().step()

    def test_pc_advances_before_dispatch(self, vm):
        vm.load_program([0x6005])
        inst = vm.step()
        assert inst.family is InstructionFamily.LD_BYTE
        assert vm.get_pc() == 0x202
        assert vm.state.current_instruction == inst
        assert vm.steps == 1

    def test_unknown_opcode_is_noop(self, vm):
        state = run(vm, [0x8AB9, 0xF0FF, 0x0123])
        assert state.pc == 0x206
        assert state.registers == [0] * 16


class TestFlowControl:
    """Test jumps, calls and returns."""

    def test_clear_screen(self, vm):
        vm.load_program([0x00E0])
        vm.state.display[5][5] = True
        vm.step()
        assert vm.state.lit_pixel_count() == 0
        assert vm.state.redraw_pending is True

    def test_jump(self, vm):
        state = run(vm, [0x1ABC], steps=1)
        assert state.pc == 0xABC

    def test_call_pushes_next_address(self, vm):
        state = run(vm, [0x2208], steps=1)
        assert state.pc == 0x208
        assert state.stack == [0x202]

    def test_call_and_return(self, vm):
        # 200: call 206; 202: V0 = 1; 204: jump 204; 206: V1 = 2; 208: ret
        vm.load_program([0x2206, 0x6001, 0x1204, 0x6102, 0x00EE])
        vm.run(4)
        assert vm.get_pc() == 0x204
        assert vm.get_register(0) == 1
        assert vm.get_register(1) == 2
        assert vm.state.stack == []

    def test_nested_calls_restore_pc(self, vm):
        """N nested calls then N returns come back to the original PC."""
        depth = 10
        # 200: call 204; 202: jump 202
        # each subroutine: call the next one, then return; innermost: return
        program = [0x2204, 0x1202]
        for k in range(1, depth):
            program.extend([0x2000 | (0x204 + 4 * k), 0x00EE])
        program.append(0x00EE)
        vm.load_program(program)

        vm.run(depth)
        assert len(vm.state.stack) == depth
        assert vm.get_pc() == 0x204 + 4 * (depth - 1)

        vm.run(depth)
        assert vm.get_pc() == 0x202
        assert vm.state.stack == []

    def test_stack_overflow_is_fault(self):
        vm = Chip8VM(EmulatorConfig(stack_limit=3))
        vm.load_program([0x2200])  # calls itself forever
        vm.run(3)
        with pytest.raises(CallStackOverflowError) as excinfo:
            vm.step()
        assert excinfo.value.opcode == 0x2200
        assert excinfo.value.address == 0x200
        assert len(vm.state.stack) == 3

    def test_return_on_empty_stack_is_fault(self, vm):
        vm.load_program([0x00EE])
        with pytest.raises(CallStackUnderflowError):
            vm.step()

    def test_jump_v0(self, vm):
        state = run(vm, [0xB300], steps=1, registers={0: 0x10})
        assert state.pc == 0x310


class TestSkips:
    """Test conditional skip instructions."""

    @pytest.mark.parametrize("opcode,regs,skipped", [
        (0x3A12, {0xA: 0x12}, True),
        (0x3A12, {0xA: 0x13}, False),
        (0x4A12, {0xA: 0x12}, False),
        (0x4A12, {0xA: 0x13}, True),
        (0x5AB0, {0xA: 7, 0xB: 7}, True),
        (0x5AB0, {0xA: 7, 0xB: 8}, False),
        (0x9AB0, {0xA: 7, 0xB: 7}, False),
        (0x9AB0, {0xA: 7, 0xB: 8}, True),
    ])
    def test_register_skips(self, vm, opcode, regs, skipped):
        state = run(vm, [opcode], steps=1, registers=regs)
        assert state.pc == (0x204 if skipped else 0x202)

    def test_skip_if_key_pressed(self, vm):
        vm.load_program([0xE19E, 0xE19E])
        vm.state.registers[1] = 0xA
        vm.step()
        assert vm.get_pc() == 0x202
        vm.press_key(0xA)
        vm.step()
        assert vm.get_pc() == 0x206

    def test_skip_if_key_not_pressed(self, vm):
        vm.load_program([0xE1A1, 0x0000, 0xE1A1])
        vm.state.registers[1] = 0x3
        vm.step()
        assert vm.get_pc() == 0x204
        vm.press_key(0x3)
        vm.step()
        assert vm.get_pc() == 0x206

    def test_key_index_uses_low_nibble(self, vm):
        vm.load_program([0xE19E])
        vm.state.registers[1] = 0x1A
        vm.press_key(0xA)
        vm.step()
        assert vm.get_pc() == 0x204


class TestLoadsAndArithmetic:
    """Test 6XNN, 7XNN and the 8XY_ family."""

    def test_load_byte(self, vm):
        assert run(vm, [0x6A42]).registers[0xA] == 0x42

    def test_add_byte_wraps_without_flag(self, vm):
        state = run(vm, [0x7AFF], registers={0xA: 0x02, 0xF: 0x55})
        assert state.registers[0xA] == 0x01
        assert state.registers[0xF] == 0x55

    def test_copy(self, vm):
        assert run(vm, [0x8AB0], registers={0xB: 9}).registers[0xA] == 9

    @pytest.mark.parametrize("opcode,expected", [
        (0x8AB1, 0b1110),
        (0x8AB2, 0b1000),
        (0x8AB3, 0b0110),
    ])
    def test_logic_ops_modern_keep_flag(self, vm, opcode, expected):
        state = run(vm, [opcode], registers={0xA: 0b1100, 0xB: 0b1010, 0xF: 7})
        assert state.registers[0xA] == expected
        assert state.registers[0xF] == 7

    @pytest.mark.parametrize("vx,vy,result,flag", [
        (0x10, 0x20, 0x30, 0),
        (0xFF, 0x01, 0x00, 1),
        (0x80, 0x80, 0x00, 1),
        (0xFF, 0x00, 0xFF, 0),
    ])
    def test_add_carry(self, vm, vx, vy, result, flag):
        state = run(vm, [0x8AB4], registers={0xA: vx, 0xB: vy})
        assert state.registers[0xA] == result
        assert state.registers[0xF] == flag

    @pytest.mark.parametrize("vx,vy,result,flag", [
        (0x30, 0x10, 0x20, 1),
        (0x10, 0x10, 0x00, 1),
        (0x10, 0x30, 0xE0, 0),
    ])
    def test_sub_borrow(self, vm, vx, vy, result, flag):
        state = run(vm, [0x8AB5], registers={0xA: vx, 0xB: vy})
        assert state.registers[0xA] == result
        assert state.registers[0xF] == flag

    @pytest.mark.parametrize("vx,vy,result,flag", [
        (0x10, 0x30, 0x20, 1),
        (0x10, 0x10, 0x00, 1),
        (0x30, 0x10, 0xE0, 0),
    ])
    def test_subn_borrow(self, vm, vx, vy, result, flag):
        state = run(vm, [0x8AB7], registers={0xA: vx, 0xB: vy})
        assert state.registers[0xA] == result
        assert state.registers[0xF] == flag

    def test_add_aliased_registers(self, vm):
        """X == Y uses the pre-mutation value for both operands and flag."""
        state = run(vm, [0x8AA4], registers={0xA: 0x90})
        assert state.registers[0xA] == 0x20
        assert state.registers[0xF] == 1

    def test_sub_aliased_registers(self, vm):
        state = run(vm, [0x8AA5], registers={0xA: 0x90})
        assert state.registers[0xA] == 0
        assert state.registers[0xF] == 1

    def test_subn_aliased_registers(self, vm):
        state = run(vm, [0x8AA7], registers={0xA: 0x90})
        assert state.registers[0xA] == 0
        assert state.registers[0xF] == 1

    def test_flag_register_as_destination(self, vm):
        """When X is F the flag overwrites the arithmetic result."""
        state = run(vm, [0x8F14], registers={0xF: 0x10, 0x1: 0x02})
        assert state.registers[0xF] == 0

    def test_shift_right_modern(self, vm):
        state = run(vm, [0x8AB6], registers={0xA: 0b0000_0101, 0xB: 0xF0})
        assert state.registers[0xA] == 0b0000_0010
        assert state.registers[0xF] == 1

    def test_shift_left_modern(self, vm):
        state = run(vm, [0x8ABE], registers={0xA: 0b1000_0001, 0xB: 0x01})
        assert state.registers[0xA] == 0b0000_0010
        assert state.registers[0xF] == 1

    def test_random_masked(self, vm):
        state = run(vm, [0xCA0F] * 50, registers={0xA: 0})
        assert 0 <= state.registers[0xA] <= 0x0F

    def test_random_zero_mask(self, vm):
        assert run(vm, [0xCA00], registers={0xA: 0x55}).registers[0xA] == 0

    def test_random_is_seeded(self):
        a = Chip8VM(EmulatorConfig(seed=99))
        b = Chip8VM(EmulatorConfig(seed=99))
        values = []
        for machine in (a, b):
            machine.load_program([0xC0FF, 0xC1FF, 0xC2FF, 0xC3FF])
            machine.run(4)
            values.append(machine.dump_registers()[:4])
        assert values[0] == values[1]


class TestIndexAndMemory:
    """Test I register and memory instructions."""

    def test_load_index(self, vm):
        assert run(vm, [0xA123]).index == 0x123

    def test_add_index(self, vm):
        vm.load_program([0xA0FF, 0xF11E])
        vm.state.registers[1] = 0x01
        vm.state.registers[0xF] = 0x33
        vm.run(2)
        assert vm.state.index == 0x100
        assert vm.state.registers[0xF] == 0x33

    def test_add_index_wraps_16_bits(self, vm):
        vm.load_program([0xF11E])
        vm.state.index = 0xFFFF
        vm.state.registers[1] = 2
        vm.step()
        assert vm.state.index == 0x0001

    def test_font_glyph(self, vm):
        state = run(vm, [0xF129], registers={1: 0xA})
        assert state.index == 0xA * 5
        assert state.memory[state.index] == 0xF0

    @pytest.mark.parametrize("value,digits", [
        (123, [1, 2, 3]),
        (0, [0, 0, 0]),
        (255, [2, 5, 5]),
        (7, [0, 0, 7]),
    ])
    def test_bcd(self, vm, value, digits):
        vm.load_program([0xA300, 0xF533])
        vm.state.registers[5] = value
        vm.run(2)
        assert list(vm.state.memory[0x300:0x303]) == digits

    def test_store_registers_modern(self, vm):
        vm.load_program([0xA300, 0xF255])
        vm.state.registers[0:4] = [1, 2, 3, 4]
        vm.run(2)
        assert list(vm.state.memory[0x300:0x304]) == [1, 2, 3, 0]
        assert vm.state.index == 0x300

    def test_load_registers_modern(self, vm):
        vm.load_program([0xA300, 0xF265])
        vm.state.memory[0x300:0x304] = bytes([9, 8, 7, 6])
        vm.run(2)
        assert vm.state.registers[0:4] == [9, 8, 7, 0]
        assert vm.state.index == 0x300


class TestTimerRegisters:
    """Test timer load/store opcodes."""

    def test_set_and_read_delay(self, vm):
        vm.load_program([0xF315, 0xF407])
        vm.state.registers[3] = 42
        vm.run(2)
        assert vm.state.delay_timer == 42
        assert vm.state.registers[4] == 42

    def test_set_sound(self, vm):
        state = run(vm, [0xF318], registers={3: 9})
        assert state.sound_timer == 9


class TestTrace:
    """Test the per-instruction trace log."""

    def test_one_record_per_step(self, vm, caplog):
        caplog.set_level(logging.DEBUG, logger=TRACE_LOGGER_NAME)
        vm.load_program([0x6A2A, 0x8124])
        vm.step()

        records = [r for r in caplog.records if r.name == TRACE_LOGGER_NAME]
        assert len(records) == 1
        assert records[0].getMessage() == "0x200 6A2A LD_BYTE VA, 0x2A"

        vm.step()
        records = [r for r in caplog.records if r.name == TRACE_LOGGER_NAME]
        assert [r.getMessage() for r in records][-1] == "0x202 8124 ADD_REG V1, V2"

    def test_faulting_instruction_is_traced(self, vm, caplog):
        caplog.set_level(logging.DEBUG, logger=TRACE_LOGGER_NAME)
        vm.load_program([0x00EE])
        with pytest.raises(CallStackUnderflowError):
            vm.step()
        messages = [r.getMessage() for r in caplog.records if r.name == TRACE_LOGGER_NAME]
        assert messages == ["0x200 00EE RET"]

    def test_silent_by_default(self, vm, caplog):
        caplog.set_level(logging.WARNING)
        vm.load_program([0x1200])
        vm.run(10)
        assert not [r for r in caplog.records if r.name == TRACE_LOGGER_NAME]
