"""Listing search filter extraction and validation.

The search layer converts a free-text buyer query into candidate filters (rules or LLM), then runs
every candidate through the sanitizer, which is the single trust boundary before a filter object
reaches the SQL builder.
"""
