"""Flight school invoice payment reconciliation service."""
