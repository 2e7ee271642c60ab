"""Domain layer: models, lifecycle rules and pure calculators."""
