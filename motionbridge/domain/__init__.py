"""Domain value objects: curves and rules."""
