"""Frame-streaming FFmpeg exporter with asset audio composition and partial renders."""

__version__ = "0.1.0"
