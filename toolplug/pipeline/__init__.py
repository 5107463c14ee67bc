"""Generation phase orchestration and period bookkeeping."""
