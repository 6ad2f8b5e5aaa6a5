"""
tripstreamer - streaming deal pipeline with a similarity lookup index.
"""

__version__ = "0.1.0"
