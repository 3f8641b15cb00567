"""Cache-consistency and regeneration pipeline."""
