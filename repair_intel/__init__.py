"""The Repair Intel: inspection PDF to repair cost report."""

__version__ = "0.1.0"
