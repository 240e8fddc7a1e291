"""Domain layer - models, protocols and the error taxonomy."""
