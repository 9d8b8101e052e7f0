"""pgcrate: PostgreSQL settings resolution and configuration file generation."""

__version__ = "1.0.0"
