"""Per-project message thread with optional attachments."""
