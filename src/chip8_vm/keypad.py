"""Keypad state: 16 logical keys, 0x0-0xF.

Only the input collaborator presses and releases keys. The execution engine
reads the table for EX9E, EXA1 and FX0A.
"""

from typing import List, Optional

KEY_COUNT = 16


class Keypad:
    """Pressed/released table for the hexadecimal keypad."""

    def __init__(self):
        self._pressed: List[bool] = [False] * KEY_COUNT

    @staticmethod
    def _check(key: int) -> int:
        if not 0 <= key < KEY_COUNT:
            raise ValueError(f"Invalid key: {key}")
        return key

    def press(self, key: int) -> None:
        self._pressed[self._check(key)] = True

    def release(self, key: int) -> None:
        self._pressed[self._check(key)] = False

    def is_pressed(self, key: int) -> bool:
        return self._pressed[self._check(key)]

    def first_pressed(self) -> Optional[int]:
        """Lowest-numbered key currently held down, or None."""
        for key, down in enumerate(self._pressed):
            if down:
                return key
        return None

    def clear(self) -> None:
        self._pressed = [False] * KEY_COUNT

    def pressed_keys(self) -> List[int]:
        return [key for key, down in enumerate(self._pressed) if down]

    def __str__(self) -> str:
        return "".join(f"{k:X}" if down else "." for k, down in enumerate(self._pressed))
