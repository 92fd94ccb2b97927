"""chip8-vm command line interface.

Run a CHIP-8 ROM in a pygame window.

Usage:
    chip8-vm roms/IBM_Logo.ch8
    chip8-vm roms/PONG --scale 10 --mode legacy --ips 1000
    chip8-vm roms/test_opcode.ch8 --headless --max-frames 120
    chip8-vm roms/test_opcode.ch8 --headless --max-frames 2 --trace
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import EmulatorConfig, QuirkMode, parse_color
from .cpu import TRACE_LOGGER_NAME, Chip8VM
from .errors import FrontendError, RomLoadError, VMFault
from .frame import FrameDriver

EXIT_OK = 0
EXIT_LOAD_ERROR = 1
# 2 is left to argparse for usage errors
EXIT_VM_FAULT = 3
EXIT_FRONTEND_ERROR = 4

logger = logging.getLogger("chip8_vm")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8-vm",
        description="CHIP-8 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Keys:
    1234 / qwer / asdf / zxcv   CHIP-8 keypad 123C / 456D / 789E / A0BF
    SPACE                       pause / resume
    =                           reset
    ESC                         quit
        """
    )

    parser.add_argument("rom", help="Path to a CHIP-8 ROM image")
    parser.add_argument(
        "--scale", "-s",
        type=int,
        default=20,
        help="Window pixels per CHIP-8 pixel. Default: 20"
    )
    parser.add_argument(
        "--ips",
        type=int,
        default=700,
        help="Instructions per second. Default: 700"
    )
    parser.add_argument(
        "--mode", "-m",
        choices=[m.value for m in QuirkMode],
        default=QuirkMode.MODERN.value,
        help="Quirk mode for shifts, logic ops and FX55/FX65. Default: modern"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the CXNN random number generator"
    )
    parser.add_argument(
        "--fg",
        type=parse_color,
        default=(255, 255, 255),
        help="Foreground colour as RRGGBB. Default: FFFFFF"
    )
    parser.add_argument(
        "--bg",
        type=parse_color,
        default=(0, 0, 0),
        help="Background colour as RRGGBB. Default: 000000"
    )
    parser.add_argument(
        "--no-outlines",
        action="store_true",
        help="Do not outline lit pixels"
    )
    parser.add_argument(
        "--tone",
        type=int,
        default=1244,
        help="Beep frequency in Hz. Default: 1244"
    )
    parser.add_argument(
        "--stack-limit",
        type=int,
        default=16,
        help="Maximum subroutine nesting depth. Default: 16"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without a window, audio or keyboard"
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        help="Stop after this many frames"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging verbosity. Default: WARNING"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Log every executed instruction (address, opcode, mnemonic)"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print the final machine summary"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> EmulatorConfig:
    return EmulatorConfig(
        scale=args.scale,
        foreground=args.fg,
        background=args.bg,
        instructions_per_second=args.ips,
        draw_pixel_outlines=not args.no_outlines,
        square_wave_freq=args.tone,
        mode=QuirkMode(args.mode),
        stack_limit=args.stack_limit,
        seed=args.seed,
    )


def print_summary(vm: Chip8VM) -> None:
    summary = vm.get_summary()
    regs = " ".join(f"V{i:X}={v:02X}" for i, v in enumerate(summary["registers"]))
    print(f"Steps: {summary['steps']}")
    print(f"PC: 0x{summary['pc']:03X}  I: 0x{summary['index']:03X}  Stack: {len(summary['stack'])}")
    print(f"Registers: {regs}")
    print(f"Lit pixels: {summary['lit_pixels']}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if args.trace:
        logging.getLogger(TRACE_LOGGER_NAME).setLevel(logging.DEBUG)

    try:
        config = config_from_args(args).validate()
    except ValueError as e:
        parser.error(str(e))

    vm = Chip8VM(config)
    try:
        vm.load_rom_file(args.rom)
    except RomLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    if args.headless:
        driver = FrameDriver(vm, config, sleep=lambda _: None)
        frontend = None
    else:
        from .frontends import pygame_frontend as frontend

        try:
            renderer, audio, input_source = frontend.init(config, caption=f"CHIP-8 - {args.rom}")
        except FrontendError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_FRONTEND_ERROR
        driver = FrameDriver(vm, config, renderer, audio, input_source)

    exit_code = EXIT_OK
    try:
        driver.run(max_frames=args.max_frames)
    except VMFault as e:
        logger.error("VM fault: %s", e)
        print(f"Execution error: {e}", file=sys.stderr)
        exit_code = EXIT_VM_FAULT
    except KeyboardInterrupt:
        print("\nExiting.")
    finally:
        if frontend is not None:
            frontend.shutdown()

    if not args.quiet:
        print_summary(vm)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
