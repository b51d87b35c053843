"""Therapist directory, onboarding, self-service profile and admin management."""
