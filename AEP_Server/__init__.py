"""Decode After Effects project containers into an inspectable item tree."""
