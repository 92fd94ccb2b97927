"""Tests for legacy vs modern quirk mode divergence."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm import QuirkMode


def setup(machine, program, registers):
    machine.load_program(program)
    for reg, value in registers.items():
        machine.state.registers[reg] = value


class TestShiftSource:
    """8XY6/8XYE read VY in legacy mode and VX in modern mode."""

    def test_shift_right(self, vm, legacy_vm):
        regs = {0xA: 0b0000_0100, 0xB: 0b0000_0011}
        setup(vm, [0x8AB6], regs)
        setup(legacy_vm, [0x8AB6], regs)
        vm.step()
        legacy_vm.step()

        assert vm.state.registers[0xA] == 0b0000_0010
        assert vm.state.registers[0xF] == 0
        assert legacy_vm.state.registers[0xA] == 0b0000_0001
        assert legacy_vm.state.registers[0xF] == 1
        assert legacy_vm.state.registers[0xB] == 0b0000_0011

    def test_shift_left(self, vm, legacy_vm):
        regs = {0xA: 0b0100_0000, 0xB: 0b1000_0001}
        setup(vm, [0x8ABE], regs)
        setup(legacy_vm, [0x8ABE], regs)
        vm.step()
        legacy_vm.step()

        assert vm.state.registers[0xA] == 0b1000_0000
        assert vm.state.registers[0xF] == 0
        assert legacy_vm.state.registers[0xA] == 0b0000_0010
        assert legacy_vm.state.registers[0xF] == 1


class TestLogicFlagReset:
    """8XY1/2/3 clear VF only in legacy mode."""

    @pytest.mark.parametrize("opcode", [0x8AB1, 0x8AB2, 0x8AB3])
    def test_flag(self, vm, legacy_vm, opcode):
        regs = {0xA: 0x0F, 0xB: 0xF0, 0xF: 0x01}
        setup(vm, [opcode], regs)
        setup(legacy_vm, [opcode], regs)
        vm.step()
        legacy_vm.step()

        assert vm.state.registers[0xF] == 1
        assert legacy_vm.state.registers[0xF] == 0
        assert vm.state.registers[0xA] == legacy_vm.state.registers[0xA]


class TestIndexIncrement:
    """FX55/FX65 advance I by X + 1 only in legacy mode."""

    @pytest.mark.parametrize("opcode", [0xF355, 0xF365])
    def test_index(self, vm, legacy_vm, opcode):
        setup(vm, [0xA300, opcode], {})
        setup(legacy_vm, [0xA300, opcode], {})
        vm.run(2)
        legacy_vm.run(2)

        assert vm.state.index == 0x300
        assert legacy_vm.state.index == 0x304

    def test_legacy_store_then_load_round_trip(self, legacy_vm):
        # store V0..V2 at 0x300, reset I, clear, load back
        setup(legacy_vm, [0xA300, 0xF255, 0x6000, 0x6100, 0x6200, 0xA300, 0xF265],
              {0: 5, 1: 6, 2: 7})
        legacy_vm.run(7)
        assert legacy_vm.state.registers[0:3] == [5, 6, 7]
        assert legacy_vm.state.index == 0x303


class TestModeIsFixed:
    """Mode comes from the configuration and survives reset."""

    def test_mode_on_state(self, vm, legacy_vm):
        vm.load_program([0x00E0])
        legacy_vm.load_program([0x00E0])
        assert vm.state.mode is QuirkMode.MODERN
        assert legacy_vm.state.mode is QuirkMode.LEGACY

        legacy_vm.reset()
        assert legacy_vm.state.mode is QuirkMode.LEGACY
