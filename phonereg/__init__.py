"""phonereg: persistent registry of call-capable phone accounts."""

__version__ = "0.1.0"
