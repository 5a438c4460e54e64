"""Input records, computed aggregates and the snapshot member schema."""
