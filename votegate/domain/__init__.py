"""Domain layer for Votegate: models, events and errors."""
