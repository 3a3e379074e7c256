"""Security module: audit trail and rate limiting."""
