"""
PDF Paginator - fixed-page pagination engine for print/PDF output.

Partitions a flowing HTML document into fixed-height pages without
splitting visually-atomic blocks, then hands the result to Chromium.
"""

__version__ = "0.1.0"
