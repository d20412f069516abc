"""
Role-Based Edit Control

Decides, per identity, whether the actor may edit content and whether the
actor may use the page-builder editor. Role defaults, per-user overrides,
administration, import/export and a command-line surface.
"""

__version__ = "1.0.0"
