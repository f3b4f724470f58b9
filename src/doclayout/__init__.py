"""
Document Layout Structuring
===========================

Turns per-page layout detections and region text into a structured,
hierarchical description of a multi-page document.

Main components:
- Detection normalization (scaling, confidence filtering, labels)
- Reading order resolution
- Heading hierarchy construction
- Multi-view JSON export and CSV summary
"""

__version__ = "1.0.0"
__author__ = "Document Layout Team"
