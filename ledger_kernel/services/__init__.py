"""Kernel services: write-side operations that flush within the caller's transaction."""
