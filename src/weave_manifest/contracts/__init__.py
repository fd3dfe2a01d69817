"""JSON contracts for emitted artifacts."""
