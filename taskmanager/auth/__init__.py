"""Auth session lifecycle: stores, manager and HTTP mapping."""
