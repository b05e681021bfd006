"""Shadowplay -- learn repetitive UI tasks from demonstrations and replay them."""

__version__ = "0.1.0"
