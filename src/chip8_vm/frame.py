"""Frame driver: paces the VM at 60 frames per second.

One frame:
    poll input -> (paused? pace and return) -> N x step() -> timer tick
    -> render flush if the display changed -> sleep out the rest of 1/60 s

The renderer, audio and input collaborators are plain objects that satisfy
the small protocols below. ``frontends.pygame_frontend`` provides the
windowed implementations; the Null/Scripted ones here serve tests and
headless runs.
"""

import enum
import logging
import time
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Protocol, Sequence

from .config import FRAMES_PER_SECOND, EmulatorConfig
from .cpu import Chip8VM
from .keypad import Keypad
from .timers import TimerController

logger = logging.getLogger(__name__)

FRAME_SECONDS = 1.0 / FRAMES_PER_SECOND


class ControlCommand(enum.Enum):
    """Out-of-band commands delivered by the input collaborator."""
    QUIT = "quit"
    TOGGLE_PAUSE = "toggle_pause"
    RESET = "reset"


class Renderer(Protocol):
    def present(self, display: Sequence[Sequence[bool]], config: EmulatorConfig) -> None:
        ...


class Audio(Protocol):
    def set_tone(self, enabled: bool) -> None:
        ...


class InputSource(Protocol):
    def poll(self, keypad: Keypad) -> List[ControlCommand]:
        ...


class NullRenderer:
    """Renderer that only counts presented frames."""

    def __init__(self):
        self.frames_presented = 0
        self.last_frame: Optional[List[List[bool]]] = None

    def present(self, display: Sequence[Sequence[bool]], config: EmulatorConfig) -> None:
        self.frames_presented += 1
        self.last_frame = [list(row) for row in display]


class NullAudio:
    """Audio sink that records the tone level of every tick."""

    def __init__(self):
        self.levels: List[bool] = []

    def set_tone(self, enabled: bool) -> None:
        self.levels.append(enabled)


class ScriptedInput:
    """Input source replaying a fixed script, one entry per poll.

    Each entry is a list of events: ``("down", key)``, ``("up", key)`` or a
    ``ControlCommand``. Polls past the end of the script deliver nothing.
    """

    def __init__(self, script: Iterable[Iterable] = ()):
        self._script: Deque[List] = deque(list(events) for events in script)

    def poll(self, keypad: Keypad) -> List[ControlCommand]:
        commands: List[ControlCommand] = []
        if not self._script:
            return commands
        for event in self._script.popleft():
            if isinstance(event, ControlCommand):
                commands.append(event)
                continue
            kind, key = event
            if kind == "down":
                keypad.press(key)
            elif kind == "up":
                keypad.release(key)
            else:
                raise ValueError(f"Unknown input event: {event!r}")
        return commands


class FrameDriver:
    """Runs the VM one 60 Hz frame at a time.

    Attributes:
        vm: The virtual machine (must have a ROM loaded)
        config: Configuration shared with the VM
        renderer: Display collaborator
        timers: Timer/audio-gate controller
        input: Input collaborator
        paused: Instruction execution and timers are frozen
        running: False once QUIT has been received
        frames: Frames executed (paused frames excluded)
    """

    def __init__(
        self,
        vm: Chip8VM,
        config: Optional[EmulatorConfig] = None,
        renderer: Optional[Renderer] = None,
        audio: Optional[Audio] = None,
        input_source: Optional[InputSource] = None,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.vm = vm
        self.config = config or vm.config
        self.renderer = renderer or NullRenderer()
        self.timers = TimerController(audio or NullAudio())
        self.input = input_source or ScriptedInput()
        self.clock = clock
        self.sleep = sleep
        self.paused = False
        self.running = True
        self.frames = 0

    def handle_controls(self, commands: Iterable[ControlCommand]) -> None:
        for command in commands:
            if command is ControlCommand.QUIT:
                logger.info("Quit requested")
                self.running = False
            elif command is ControlCommand.TOGGLE_PAUSE:
                self.paused = not self.paused
                logger.info("Paused" if self.paused else "Resumed")
                if self.paused:
                    self.timers.reset()
            elif command is ControlCommand.RESET:
                self.vm.reset()
                self.timers.reset()

    def run_frame(self) -> bool:
        """Poll input and, unless paused, emulate one frame.

        Pacing is left to ``run``; this method never sleeps.

        Returns:
            True if the frame executed instructions, False if paused or quit

        Raises:
            VMFault: Propagated from the VM
        """
        self.handle_controls(self.input.poll(self.vm.state.keypad))
        if not self.running or self.paused:
            return False

        for _ in range(self.config.instructions_per_frame):
            self.vm.step()

        self.timers.tick(self.vm.state)
        self.flush()
        self.frames += 1
        return True

    def flush(self) -> bool:
        """Hand the display to the renderer if it changed.

        Returns:
            True if a frame was presented
        """
        state = self.vm.state
        if not state.redraw_pending:
            return False
        self.renderer.present(state.display, self.config)
        state.redraw_pending = False
        return True

    def run(self, max_frames: Optional[int] = None) -> int:
        """Run frames until QUIT or ``max_frames`` frames have elapsed.

        Paused iterations count towards ``max_frames`` so a paused run with a
        limit still terminates.

        Returns:
            Number of loop iterations performed
        """
        iterations = 0
        while self.running and (max_frames is None or iterations < max_frames):
            start = self.clock()
            self.run_frame()
            iterations += 1

            elapsed = self.clock() - start
            if elapsed < FRAME_SECONDS:
                self.sleep(FRAME_SECONDS - elapsed)
        self.timers.reset()
        return iterations
