"""Competition scheduling and tournament-progression engine."""
