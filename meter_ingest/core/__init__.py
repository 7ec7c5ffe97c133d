"""Core module - meter reading insertion pipeline.

Structure:
- domain/      → Reading and batch models
- validation/  → Reading validation
- batching/    → Batch splitting
- pipeline/    → Invocation orchestration
"""
