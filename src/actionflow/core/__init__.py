"""Ambient infrastructure: errors, logging, settings, storage, events and scheduling."""
