"""Therapist calendar sessions; changes feed the commission calculator."""
