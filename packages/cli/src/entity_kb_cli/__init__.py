"""Entity KB CLI - command-line interface for the schema-evolution pipeline."""

__version__ = "0.1.0"
