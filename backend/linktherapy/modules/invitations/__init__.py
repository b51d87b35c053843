"""Single-use therapist invitations."""
