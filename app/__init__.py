"""HTTP surface for the scheduler host."""
