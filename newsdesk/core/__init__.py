"""Core data model, scraping, storage and pipeline wiring."""
