"""Game modules: shared foundations, claw, gacha, leaderboard, whack-a-mole, wallet, sessions."""
