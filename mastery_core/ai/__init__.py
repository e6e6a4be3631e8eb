"""Content-generation and evaluation collaborators."""
