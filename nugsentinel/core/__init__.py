"""Cross-cutting infrastructure: configuration, logging, errors."""
