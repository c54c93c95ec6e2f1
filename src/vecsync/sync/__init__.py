"""Source sync engines and the shared diff planner.

Every engine follows the same shape: scan the source, plan against known
state with ``planner.diff``, execute the plan item by item (per-item
failures land in ``SyncResult.errors``), and persist whatever state the
source needs.
"""
