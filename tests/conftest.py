import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm import Chip8VM, EmulatorConfig, QuirkMode


@pytest.fixture
def vm():
    """VM in modern mode with a fixed RNG seed."""
    return Chip8VM(EmulatorConfig(seed=1234))


@pytest.fixture
def legacy_vm():
    """VM in legacy mode with a fixed RNG seed."""
    return Chip8VM(EmulatorConfig(seed=1234, mode=QuirkMode.LEGACY))
