"""Detect helicopter tracks entering a restricted airspace boundary and
render annotated flight maps documenting each intrusion."""

__version__ = "0.1.0"
