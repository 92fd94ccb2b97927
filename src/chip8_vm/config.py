"""Emulator configuration.

A single ``EmulatorConfig`` value is built once (normally by the CLI) and
passed explicitly to the VM, the frame driver and the frontends.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

Color = Tuple[int, int, int]

FRAMES_PER_SECOND = 60


class QuirkMode(enum.Enum):
    """Selects between the two behaviour sets for the quirky opcodes.

    LEGACY follows the original COSMAC VIP interpreter: 8XY6/8XYE shift VY,
    8XY1/2/3 clear VF, FX55/FX65 advance I. MODERN follows the later
    CHIP-48/SCHIP convention and is the default.
    """
    LEGACY = "legacy"
    MODERN = "modern"


@dataclass(frozen=True)
class EmulatorConfig:
    """Run-wide emulator options.

    Attributes:
        scale: Window pixels per CHIP-8 pixel
        foreground: RGB colour of lit pixels
        background: RGB colour of unlit pixels
        instructions_per_second: Emulated clock rate
        draw_pixel_outlines: Outline lit pixels in the background colour
        square_wave_freq: Beep frequency in Hz
        volume: Square wave amplitude (int16 range)
        sample_rate: Audio sample rate in Hz
        mode: Quirk mode for the run
        stack_limit: Maximum call stack depth
        seed: RNG seed for CXNN (None uses OS entropy)
    """
    scale: int = 20
    foreground: Color = (255, 255, 255)
    background: Color = (0, 0, 0)
    instructions_per_second: int = 700
    draw_pixel_outlines: bool = True
    square_wave_freq: int = 1244
    volume: int = 3000
    sample_rate: int = 44100
    mode: QuirkMode = QuirkMode.MODERN
    stack_limit: int = 16
    seed: Optional[int] = None

    @property
    def instructions_per_frame(self) -> int:
        """Number of steps executed per 1/60 s frame (at least one)."""
        return max(1, self.instructions_per_second // FRAMES_PER_SECOND)

    def validate(self) -> "EmulatorConfig":
        """Check option ranges.

        Returns:
            self, so the call can be chained

        Raises:
            ValueError: If any option is out of range
        """
        if self.scale < 1:
            raise ValueError(f"scale must be >= 1, got {self.scale}")
        if self.instructions_per_second < 1:
            raise ValueError(
                f"instructions_per_second must be >= 1, got {self.instructions_per_second}"
            )
        if self.stack_limit < 1:
            raise ValueError(f"stack_limit must be >= 1, got {self.stack_limit}")
        if self.square_wave_freq <= 0 or self.square_wave_freq * 2 > self.sample_rate:
            raise ValueError(f"square_wave_freq out of range: {self.square_wave_freq}")
        if not 0 <= self.volume <= 32767:
            raise ValueError(f"volume must be within int16 range, got {self.volume}")
        for name in ("foreground", "background"):
            color = getattr(self, name)
            if len(color) != 3 or any(not 0 <= c <= 255 for c in color):
                raise ValueError(f"{name} must be an RGB triple, got {color}")
        return self


def parse_color(text: str) -> Color:
    """Parse ``RRGGBB`` or ``#RRGGBB`` into an RGB tuple.

    Raises:
        ValueError: If text is not six hex digits
    """
    value = text.strip().lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Invalid colour: {text}")
    rgb = int(value, 16)
    return (rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF
