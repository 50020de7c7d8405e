"""Field Visit to Sales Pipeline conversion engine."""

__version__ = "1.0.0"
