"""Editable site copy stored as validated JSON documents."""
