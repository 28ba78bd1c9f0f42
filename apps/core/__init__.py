"""Infrastructure shared by every app: keyed locks and their errors."""
