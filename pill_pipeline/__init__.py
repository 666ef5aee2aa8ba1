"""
Pill Identification Pipeline

Identifies pharmaceutical pills from photographs.
Pipeline: DETECT → (CROP → EXTRACT) per region → AGGREGATE → SEARCH → RERANK
"""

__version__ = "1.0.0"
__author__ = "Pill Identification Pipeline Team"
