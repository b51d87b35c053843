"""Admin audit trail."""
