"""Wild90 scanner client."""
