"""
Arcade reward core.

Backend for a small arcade platform (claw machine, gacha machine and a
whack-a-mole leaderboard) built around a shared randomized reward core.
"""

__version__ = "1.0.0"
