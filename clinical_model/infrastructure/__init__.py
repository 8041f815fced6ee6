"""Infrastructure layer: settings and logging configuration."""
