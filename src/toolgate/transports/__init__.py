"""Toolgate transports: stdio pipe, HTTP and server-sent events."""
