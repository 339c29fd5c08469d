"""Role-gated account registration, login and session service."""
