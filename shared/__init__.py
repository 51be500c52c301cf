"""Shared configuration, logging and wire models."""
