"""Classification pipeline.

ClassificationOrchestrator turns one Target into one ScanResult: cache
lookup, probe on a miss, verdict mapping, counters and cache write-back.
"""
