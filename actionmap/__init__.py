"""Action-item hierarchy engine: tree building, progress rollups, due-date warnings and versioned edits."""
