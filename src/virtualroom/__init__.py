"""Virtual Room client: generation-job orchestration for the try-on app."""

__version__ = "0.1.0"
