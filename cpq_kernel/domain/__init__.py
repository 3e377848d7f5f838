"""Pure domain value objects for quote costing. Zero I/O."""
