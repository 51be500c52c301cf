"""Project (document) management."""
