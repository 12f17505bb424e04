"""Core (UI-agnostic) dashboard logic.

This package contains:
- dataset ingestion and the dataset store (CSV/XLSX -> pandas)
- filter normalization and the primary/comparison period filters
- summary metrics, demographic cross-tabs and chart helpers
- share configuration, redaction, snapshot building and persistence
"""
