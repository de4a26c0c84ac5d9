"""Toolgate gateway core: envelope, sanitizer, security classifier, validation, dispatch."""
