"""Domain layer: entities, protocols and exceptions."""
