"""chip8-vm Interactive Demo.

A Gradio web interface for running a CHIP-8 ROM for a fixed number of frames
and inspecting the resulting display and machine state.

Usage:
    cd /path/to/chip8-vm
    python demo/gradio_app.py

Features:
    - Upload a ROM or pick a built-in example program
    - Choose legacy or modern quirk mode
    - Hold keypad keys for the whole run
    - See the display and register state after N frames
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
import numpy as np

from chip8_vm import Chip8Error, Chip8VM, EmulatorConfig, FrameDriver, QuirkMode


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    # Draw the hex digits 0-F in two rows of eight
    "Font Grid": [
        0x6000,  # V0 = 0     (digit)
        0x6101,  # V1 = 1     (x)
        0x6201,  # V2 = 1     (y)
        0xF029,  # I = font(V0)
        0xD125,  # draw 5 rows at (V1, V2)
        0x7001,  # V0 += 1
        0x7108,  # V1 += 8
        0x3010,  # skip if V0 == 16
        0x1214,  # -> row check
        0x121E,  # -> halt
        0x3008,  # skip if V0 == 8
        0x1206,  # loop
        0x6101,  # V1 = 1
        0x7207,  # V2 += 7
        0x1206,  # loop
        0x121E,  # halt (jump to self)
    ],
    # Show the BCD digits of 0x9C (156)
    "BCD 156": [
        0x609C,  # V0 = 156
        0xA300,  # I = 0x300
        0xF033,  # BCD V0 -> [I..I+2]
        0xF265,  # V0..V2 = [I..I+2]
        0x6300,  # V3 = 0 (x)
        0x6400,  # V4 = 0 (y)
        0xF029, 0xD345, 0x7305,  # draw hundreds
        0xF129, 0xD345, 0x7305,  # draw tens
        0xF229, 0xD345,          # draw ones
        0x121C,                  # halt
    ],
    # Wait for a key press and release, then draw that key's glyph
    "Key Echo": [
        0xF00A,  # V0 = key
        0x00E0,  # clear
        0xF029,  # I = font(V0)
        0x611C,  # V1 = 28
        0x620D,  # V2 = 13
        0xD125,  # draw
        0x1200,  # again
    ],
}


def display_image(vm: Chip8VM, config: EmulatorConfig, scale: int = 8) -> np.ndarray:
    """Render the display as an RGB array, scaled up."""
    lit = np.array(vm.state.display, dtype=bool)
    image = np.where(lit[..., None], config.foreground, config.background).astype(np.uint8)
    return np.repeat(np.repeat(image, scale, axis=0), scale, axis=1)


# =============================================================================
# Execution Functions
# =============================================================================

def run_rom(rom_bytes, example: str, mode: str, frames: int, ips: int,
            seed: float, held_keys: list) -> tuple:
    """Load a ROM, run it for a number of frames and report the result.

    Returns:
        Tuple of (display image, summary text, registers text)
    """
    config = EmulatorConfig(
        instructions_per_second=int(ips),
        mode=QuirkMode(mode),
        seed=None if seed is None else int(seed),
    )

    try:
        vm = Chip8VM(config)
        if rom_bytes:
            vm.load_rom(bytes(rom_bytes))
            source = "uploaded ROM"
        else:
            vm.load_program(EXAMPLE_PROGRAMS[example])
            source = example

        for key in held_keys or []:
            vm.press_key(int(key, 16))

        driver = FrameDriver(vm, config)
        error_msg = None
        try:
            for _ in range(int(frames)):
                driver.run_frame()
        except Chip8Error as e:
            error_msg = str(e)

        summary = vm.get_summary()
        summary_lines = [
            "EXECUTION SUMMARY",
            "=" * 40,
            f"Program: {source}",
            f"Mode: {mode}",
            f"Frames: {driver.frames}",
            f"Steps: {summary['steps']}",
            f"Lit pixels: {summary['lit_pixels']}",
            f"Waiting for key: {'Yes' if summary['waiting_for_key'] else 'No'}",
        ]
        if error_msg:
            summary_lines.append(f"\nFault: {error_msg}")
        summary_text = "\n".join(summary_lines)

        reg_lines = [
            "REGISTERS",
            "=" * 30,
        ]
        for i, value in enumerate(summary["registers"]):
            marker = " *" if value != 0 else ""
            reg_lines.append(f"  V{i:X}: 0x{value:02X} ({value:>3}){marker}")
        reg_lines.append("")
        reg_lines.append(f"  PC: 0x{summary['pc']:03X}")
        reg_lines.append(f"  I:  0x{summary['index']:03X}")
        reg_lines.append(f"  DT: {summary['delay_timer']}  ST: {summary['sound_timer']}")
        reg_lines.append(f"  Stack: {[hex(a) for a in summary['stack']]}")

        return display_image(vm, config), summary_text, "\n".join(reg_lines)

    except Chip8Error as e:
        return None, f"Error: {e}", ""


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="chip8-vm Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # chip8-vm

        Run a CHIP-8 program for a number of 60 Hz frames and inspect the
        display and machine state.

        **Pipeline**: `fetch -> decode -> family -> registry -> execute -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                rom_file = gr.File(label="ROM (optional)", type="binary")
                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Font Grid",
                    label="Built-in Example (used when no ROM is uploaded)"
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    mode_radio = gr.Radio(
                        choices=[m.value for m in QuirkMode],
                        value=QuirkMode.MODERN.value,
                        label="Quirk Mode",
                        info="legacy: COSMAC VIP | modern: CHIP-48/SCHIP"
                    )
                    frames = gr.Slider(
                        minimum=1,
                        maximum=600,
                        value=60,
                        step=1,
                        label="Frames"
                    )

                with gr.Row():
                    ips = gr.Slider(
                        minimum=60,
                        maximum=5000,
                        value=700,
                        step=60,
                        label="Instructions per Second"
                    )
                    seed = gr.Number(value=0, label="RNG Seed", precision=0)

                held_keys = gr.CheckboxGroup(
                    choices=[f"{k:X}" for k in range(16)],
                    label="Keys held during the run"
                )

                run_button = gr.Button("Run", variant="primary")

            with gr.Column(scale=3):
                display_output = gr.Image(label="Display", interactive=False)
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Registers",
                        lines=10,
                        interactive=False
                    )

        with gr.Accordion("Quirk Modes", open=False):
            gr.Markdown("""
            | Opcode | legacy | modern |
            |--------|--------|--------|
            | `8XY6` / `8XYE` | VX = VY shifted | VX = VX shifted |
            | `8XY1` / `8XY2` / `8XY3` | VF = 0 | VF unchanged |
            | `FX55` / `FX65` | I += X + 1 | I unchanged |
            """)

        run_button.click(
            fn=run_rom,
            inputs=[rom_file, example_dropdown, mode_radio, frames, ips, seed, held_keys],
            outputs=[display_output, summary_output, registers_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
