"""Post-upload image optimization pipeline."""

__version__ = "0.1.0"
