"""Slide management over HTTP."""
