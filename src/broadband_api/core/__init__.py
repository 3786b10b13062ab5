"""Core configuration, logging, database, and dependency wiring."""
