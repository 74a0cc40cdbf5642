"""List-view derivations -- filtering, sorting, grouping, and dashboard metrics.

Everything here is a pure function over record snapshots returned by the
record services, except ``load_dashboard``, which gathers those snapshots
concurrently before aggregating.
"""
