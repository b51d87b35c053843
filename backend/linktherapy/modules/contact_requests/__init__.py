"""Client contact requests routed to therapists."""
