"""
Newsdesk - News Curation Pipeline

Turns raw search and scrape results into scored, summarized and ranked
articles, with per-user personalization and a bounded in-memory store.
"""

__version__ = "0.1.0"
