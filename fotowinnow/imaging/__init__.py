"""Pillow-based stages of the image pipeline."""
