"""Core primitives: settings, time, persistence, passwords and tokens."""
