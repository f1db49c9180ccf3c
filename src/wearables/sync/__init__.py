"""Activity import pipeline for SwellSync.

Modules:
    ingestor — Pull sync + webhook ingestion into SessionDrafts
    dedup    — Deduplication keys and per-batch cache
"""
