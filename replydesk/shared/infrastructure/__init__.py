"""
Infrastructure Layer
=====================

Cross-cutting technical concerns shared by every module:
- Structured logging setup
- Latency measurement helpers
"""
