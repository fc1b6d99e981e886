# src/__init__.py - v1
"""podbatch: batch raw-signal files through a basecaller and a compressor."""

from podbatch.version import __version__

__all__ = ["__version__"]
