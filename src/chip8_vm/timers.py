"""Delay/sound timer controller.

Ticked exactly once per emulated frame regardless of how many instructions
ran in it. The audio gate is level-triggered: every tick reports whether the
tone should currently be sounding.
"""

import logging

from .state import MachineState

logger = logging.getLogger(__name__)


class TimerController:
    """Decrements the 60 Hz timers and drives the audio gate.

    Attributes:
        audio: Collaborator with a ``set_tone(enabled)`` method, or None
        tone_on: Level reported on the most recent tick
    """

    def __init__(self, audio=None):
        self.audio = audio
        self.tone_on = False

    def tick(self, state: MachineState) -> bool:
        """Advance both timers by one frame.

        The tone level is taken before the decrement, so a sound timer set
        to 1 sounds for exactly one frame.

        Returns:
            True if the tone is enabled for this frame
        """
        tone = state.sound_timer > 0

        if state.delay_timer > 0:
            state.delay_timer -= 1
        if state.sound_timer > 0:
            state.sound_timer -= 1

        if tone != self.tone_on:
            logger.debug("Tone %s", "on" if tone else "off")
        self.tone_on = tone
        if self.audio is not None:
            self.audio.set_tone(tone)
        return tone

    def reset(self) -> None:
        self.tone_on = False
        if self.audio is not None:
            self.audio.set_tone(False)
