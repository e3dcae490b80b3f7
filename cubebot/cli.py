"""
Cubebot CLI - Command-line interface for the engine.

Usage:
    cubebot levels                          List the orientation levels
    cubebot validate <level_file>           Validate a level document
    cubebot run <level> MOVE JUMP ...       Run a program on a level
    cubebot solve <level>                   Find the shortest winning program

<level> is a built-in level id or the path of a level JSON file.
"""

import argparse
import json
import logging
import sys

from .config import EngineConfig


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Cubebot - Block Programming Game Engine",
        prog="cubebot",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every step")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Levels command
    subparsers.add_parser("levels", help="List the orientation levels")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a level document")
    validate_parser.add_argument("level_file", help="Path to level JSON file")
    validate_parser.add_argument(
        "--max-length", type=int, default=24, help="Longest program the solvability check tries"
    )

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a program on a level")
    run_parser.add_argument("level", help="Built-in level id or level JSON file")
    run_parser.add_argument("program", nargs="*", help="Blocks: MOVE, JUMP, TURN_LEFT, TURN_RIGHT")

    # Solve command
    solve_parser = subparsers.add_parser("solve", help="Find the shortest winning program")
    solve_parser.add_argument("level", help="Built-in level id or level JSON file")
    solve_parser.add_argument("--max-length", type=int, default=24, help="Longest program to try")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "levels":
        cmd_levels(args)
    elif args.command == "validate":
        cmd_validate(args)
    elif args.command == "run":
        cmd_run(args)
    elif args.command == "solve":
        cmd_solve(args)
    else:
        parser.print_help()
        sys.exit(1)


def load_level(source: str):
    """Load a built-in level by id, or a level document from a file."""
    from .engine_core.grid import InvalidLevel
    from .level_schema import level_from_dict
    from .levels import get_level

    level = get_level(source)
    if level is not None:
        return level

    try:
        with open(source, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        print(f"Error: No built-in level or file named {source}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: {source} is not valid JSON: {e}")
        sys.exit(1)

    try:
        return level_from_dict(data)
    except InvalidLevel as e:
        print("Error: Invalid level:")
        for error in e.errors:
            print(f"  - {error}")
        sys.exit(1)


def cmd_levels(args):
    """List the orientation levels."""
    from .levels import ORIENTATION_LEVELS

    for level in ORIENTATION_LEVELS:
        width, height = level.size
        print(f"{level.level_id}: {level.name} ({width}x{height}, par {level.par})")


def cmd_validate(args):
    """Validate a level document."""
    from .level_schema import validate_level

    level = load_level(args.level_file)
    result = validate_level(level, max_length=args.max_length)

    print(f"Level: {level.name}")
    print(f"Valid: {'yes' if result.valid else 'no'}")
    if result.solution_length is not None:
        print(f"Shortest solution: {result.solution_length} block(s)")

    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")

    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e}")
        sys.exit(1)


def cmd_run(args):
    """Run a program on a level."""
    from .engine_core.executor import RunEventType, execute_program
    from .engine_core.grid import InvalidLevel
    from .engine_core.instruction import parse_program

    level = load_level(args.level)
    try:
        program = parse_program(args.program)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    try:
        result = execute_program(level, program, EngineConfig.instant())
    except InvalidLevel as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Level: {level.name}")
    for event in result.events:
        snap = event.snapshot
        if event.event_type == RunEventType.COMMIT:
            instruction = program[event.instruction_index]
            print(
                f"  {event.instruction_index + 1}. {instruction.instruction_type.value:<10} "
                f"-> {snap.position.key} facing {snap.direction.name}"
            )
        elif event.event_type == RunEventType.COLLECT and event.collected:
            print(f"     collected goal at {event.collected.key}")

    print(result.outcome.message)
    if not result.outcome.won:
        sys.exit(1)


def cmd_solve(args):
    """Find the shortest winning program."""
    from .engine_core.grid import InvalidLevel
    from .level_schema import solve

    level = load_level(args.level)
    try:
        solution = solve(level, max_length=args.max_length)
    except InvalidLevel as e:
        print(f"Error: {e}")
        sys.exit(1)

    if solution is None:
        print(f"No solution of at most {args.max_length} blocks")
        sys.exit(1)

    print(f"{len(solution)} block(s): {' '.join(t.value for t in solution)}")


if __name__ == "__main__":
    main()
