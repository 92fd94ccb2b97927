"""pygame window, square-wave audio and QWERTY keypad for the frame driver.

------------------------------------
CHIP-8 keypad  | QWERTY layout
------------------------------------
123C           | 1234
456D           | qwer
789E           | asdf
A0BF           | zxcv
------------------------------------

Controls: ESC or closing the window quits, SPACE toggles pause, "=" resets.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pygame

from ..config import EmulatorConfig
from ..errors import FrontendError
from ..frame import ControlCommand
from ..keypad import Keypad
from ..state import DISPLAY_HEIGHT, DISPLAY_WIDTH

logger = logging.getLogger(__name__)

KEYMAP: Dict[int, int] = {
    pygame.K_1: 0x1, pygame.K_2: 0x2, pygame.K_3: 0x3, pygame.K_4: 0xC,
    pygame.K_q: 0x4, pygame.K_w: 0x5, pygame.K_e: 0x6, pygame.K_r: 0xD,
    pygame.K_a: 0x7, pygame.K_s: 0x8, pygame.K_d: 0x9, pygame.K_f: 0xE,
    pygame.K_z: 0xA, pygame.K_x: 0x0, pygame.K_c: 0xB, pygame.K_v: 0xF,
}

CONTROL_KEYS: Dict[int, ControlCommand] = {
    pygame.K_ESCAPE: ControlCommand.QUIT,
    pygame.K_SPACE: ControlCommand.TOGGLE_PAUSE,
    pygame.K_EQUALS: ControlCommand.RESET,
}


def square_wave(config: EmulatorConfig) -> np.ndarray:
    """One period-aligned buffer of a square wave, int16 mono.

    The buffer is a whole number of periods long (about 50 ms) so it loops
    without a click.
    """
    period = max(2, config.sample_rate // config.square_wave_freq)
    periods = max(1, (config.sample_rate // 20) // period)
    t = np.arange(period * periods)
    wave = np.where(t % period < period // 2, config.volume, -config.volume)
    return wave.astype(np.int16)


class PygameRenderer:
    """Draws the display as filled rectangles in a scaled window."""

    def __init__(self, config: EmulatorConfig, caption: str = "CHIP-8"):
        self.config = config
        self.surface = pygame.display.set_mode(
            (DISPLAY_WIDTH * config.scale, DISPLAY_HEIGHT * config.scale)
        )
        pygame.display.set_caption(caption)
        self.surface.fill(config.background)
        pygame.display.flip()

    def present(self, display: Sequence[Sequence[bool]], config: EmulatorConfig) -> None:
        scale = config.scale
        surf = self.surface
        surf.fill(config.background)
        for y, row in enumerate(display):
            for x, lit in enumerate(row):
                if not lit:
                    continue
                rect = pygame.Rect(x * scale, y * scale, scale, scale)
                pygame.draw.rect(surf, config.foreground, rect)
                if config.draw_pixel_outlines:
                    pygame.draw.rect(surf, config.background, rect, 1)
        pygame.display.flip()


class PygameAudio:
    """Loops a square wave while the tone level is high."""

    def __init__(self, config: EmulatorConfig):
        self.sound: Optional[pygame.mixer.Sound] = None
        self.playing = False
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init(config.sample_rate, -16, 1, 512)
        except pygame.error as e:
            logger.warning("Audio disabled: %s", e)
            return
        self.sound = pygame.mixer.Sound(buffer=square_wave(config).tobytes())

    def set_tone(self, enabled: bool) -> None:
        if self.sound is None or enabled == self.playing:
            return
        if enabled:
            self.sound.play(loops=-1)
        else:
            self.sound.stop()
        self.playing = enabled


class PygameInput:
    """Translates pygame events into keypad changes and control commands."""

    def poll(self, keypad: Keypad) -> List[ControlCommand]:
        commands: List[ControlCommand] = []
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                commands.append(ControlCommand.QUIT)
            elif event.type == pygame.KEYDOWN:
                if event.key in CONTROL_KEYS:
                    commands.append(CONTROL_KEYS[event.key])
                elif event.key in KEYMAP:
                    keypad.press(KEYMAP[event.key])
            elif event.type == pygame.KEYUP:
                if event.key in KEYMAP:
                    keypad.release(KEYMAP[event.key])
        return commands


def init(config: EmulatorConfig, caption: str = "CHIP-8"):
    """Initialize pygame and build the three collaborators.

    Returns:
        Tuple of (renderer, audio, input source)

    Raises:
        FrontendError: If pygame cannot open the window
    """
    try:
        pygame.mixer.pre_init(config.sample_rate, -16, 1, 512)
        pygame.init()
        renderer = PygameRenderer(config, caption)
    except pygame.error as e:
        pygame.quit()
        raise FrontendError(f"Could not start pygame: {e}") from e
    return renderer, PygameAudio(config), PygameInput()


def shutdown() -> None:
    pygame.quit()
