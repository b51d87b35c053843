"""LinkTherapy API: therapist directory, booking and commission tracking."""

__version__ = "0.1.0"
