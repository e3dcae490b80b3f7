"""
Cubebot - Block Programming Game Engine

A deterministic engine for Qbo Academy, where learners program a small
robot with MOVE, JUMP and TURN blocks. The engine loads levels and provides:
- Grid and motion rules
- Step-by-step program execution with win/loss outcomes
- A timed run loop for animation
- Level validation, solving and AI level generation
"""

__version__ = "0.1.0"
