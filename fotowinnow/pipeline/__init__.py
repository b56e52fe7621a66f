"""Orchestration of the image pipeline."""
