"""Sprite blitting for DXYN.

Sprites are 8 pixels wide and 1-15 rows tall, one byte per row, most
significant bit leftmost. Pixels are XORed onto the display. The origin wraps
around the screen but the sprite body is clipped at the right and bottom
edges rather than wrapping.
"""

from .state import DISPLAY_HEIGHT, DISPLAY_WIDTH, MachineState

SPRITE_WIDTH = 8


def draw_sprite(state: MachineState, x: int, y: int, height: int) -> bool:
    """XOR a sprite from memory[I] onto the display.

    Args:
        state: Machine state (display and memory are used)
        x: Horizontal origin, wrapped modulo the display width
        y: Vertical origin, wrapped modulo the display height
        height: Number of sprite rows (0-15)

    Returns:
        True if any lit pixel was turned off (collision)
    """
    origin_x = x % DISPLAY_WIDTH
    origin_y = y % DISPLAY_HEIGHT
    collision = False

    for row in range(height):
        py = origin_y + row
        if py >= DISPLAY_HEIGHT:
            break
        sprite_row = state.read_byte(state.index + row)
        line = state.display[py]

        for col in range(SPRITE_WIDTH):
            px = origin_x + col
            if px >= DISPLAY_WIDTH:
                break
            if sprite_row & (0x80 >> col):
                if line[px]:
                    collision = True
                line[px] = not line[px]

    state.redraw_pending = True
    return collision
