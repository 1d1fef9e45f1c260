"""Critical path analysis over a Perfetto thread selection."""
