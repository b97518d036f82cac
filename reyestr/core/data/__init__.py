"""Data ingestion and storage."""
