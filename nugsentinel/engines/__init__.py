"""Engines: pure planning logic plus the scanner and registry collaborators."""
