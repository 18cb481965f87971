"""
Common utilities for the face identification system.

Contains shared functionality used across the pipeline:
- Constants and configuration loading
- Exception hierarchy
- Image conversion helpers
"""
