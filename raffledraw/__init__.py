"""Raffle drawing for event check-in: fair winner selection across a prize queue."""
