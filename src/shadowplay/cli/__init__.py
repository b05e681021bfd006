"""Shadowplay command line interface."""
