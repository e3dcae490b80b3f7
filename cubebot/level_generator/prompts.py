"""
Generator Prompts - Prompts for LLM-based level design.

The model is asked for strict JSON in the level document shape,
which is then parsed and validated like any other level file.
"""

from dataclasses import dataclass


@dataclass
class LevelPrompts:
    """
    Collection of prompts for level generation.

    Each prompt includes:
    - Design constraints
    - Output format
    """

    @staticmethod
    def system_instruction() -> str:
        """Designer persona and grid rules."""
        return """
You are a level designer for a block-coding game "Cubebot".
The grid represents a 3D world.
0 is a hole/void (death).
1 is a walkable platform.
2 is the start position (must be on a platform).
3 is the goal position (must be on a platform).
4 is a wall (crashing into it ends the run).
Ensure the path from 2 to 3 is solvable using Move, Turn Left, Turn Right, and Jump (jump spans 1 gap of 0s).
The grid size should be between 5x5 and 10x10.
"""

    @staticmethod
    def response_schema() -> dict:
        """JSON schema for the expected response."""
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "A creative name for the level"},
                "description": {"type": "string", "description": "Short hint or description"},
                "grid": {
                    "type": "array",
                    "description": (
                        "2D array representing the map. 0=Empty(Void), 1=Path, "
                        "2=Start, 3=Goal, 4=Wall. The path must be contiguous."
                    ),
                    "items": {"type": "array", "items": {"type": "integer"}},
                },
                "startDir": {
                    "type": "integer",
                    "description": "0: North, 1: East, 2: South, 3: West",
                },
                "par": {"type": "integer", "description": "Expected number of blocks to solve"},
            },
            "required": ["name", "description", "grid", "startDir", "par"],
        }

    @staticmethod
    def level_request(prompt: str) -> str:
        """User request wrapped for the model."""
        return f"Generate a level with this request: {prompt}"
