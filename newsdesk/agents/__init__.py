"""Article processing agents."""
