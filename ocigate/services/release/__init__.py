"""Release gate, notes and the GitHub release client."""
