"""Helpers for local Kubernetes clusters whose nodes run as containers: errors, commands, files, node roles and image loading."""

__version__ = "0.1.0"