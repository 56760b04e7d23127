"""File system, buffer cache, log, pipes, console and image-building logic of a small teaching kernel."""

__version__ = "0.1.0"