"""
cpq_kernel -- shared kernel for the quote costing engine.

Holds the pieces every other package depends on: structured logging,
the typed exception hierarchy, immutable domain value objects
(payroll rule snapshots, salary inputs, positions, ancillary lines,
quote parameters), the injectable clock, and the SQLAlchemy declarative
base used by the record store.

The kernel MUST NOT import from ``cpq_engines``, ``cpq_config`` or
``cpq_services``.
"""
