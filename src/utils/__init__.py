"""
Shared Utilities

Constants and file I/O used across the pipeline. Import the submodules
directly (``src.utils.io``, ``src.utils.constants``).
"""
