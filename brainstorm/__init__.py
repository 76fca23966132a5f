"""Brainstorm - a self-arranging node and edge diagram editor."""

__version__ = "1.0.0"
__app_id__ = "io.github.brainstorm.Brainstorm"
