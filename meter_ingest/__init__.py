"""Meter reading ingestion service.

Accumulates readings collected from meters, validates them, inserts them in
bounded transactional batches with retry, and exposes insertion metrics.
"""
