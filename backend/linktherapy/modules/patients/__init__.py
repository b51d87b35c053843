"""Admin-managed patient records."""
