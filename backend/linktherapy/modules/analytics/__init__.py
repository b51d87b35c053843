"""Match quiz events and the admin analytics built on them."""
