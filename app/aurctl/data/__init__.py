"""Bundled data files for aurctl (default theme)."""
