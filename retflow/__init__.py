"""
Retflow - Frame annotation engine for video review.

This package contains the application modules:
- editor: Drawing entries, compositor, tool sessions and the editor UI
- services: Application services (config, logging, annotation store)
- ui: Top-level windows
"""

__version__ = "0.1.0"
