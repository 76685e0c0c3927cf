"""JSON:API request models and query translation."""
