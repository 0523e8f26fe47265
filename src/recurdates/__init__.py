"""recurdates — recurring date rules that round-trip through text."""

__version__ = "0.1.0"
