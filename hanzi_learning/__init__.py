"""Chinese character lookup, stroke-order animation and pronunciation practice."""

__version__ = "0.1.0"
