"""Collaborators that touch the host: shell sandbox, filesystem, file splitting."""
