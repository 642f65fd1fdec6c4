"""bleedserve models package.

  - scan.py — Target, Classification, ScanResult (orchestrator ↔ HTTP contract)
"""

from bleedserve.models.scan import Classification, ScanResult, Target

__all__ = ["Classification", "ScanResult", "Target"]
