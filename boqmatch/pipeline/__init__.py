"""BOQ processing pipeline for BOQMatch.

Extraction, matching, anomaly detection, persistence and guarded
master-rate learning for one upload at a time.
"""
