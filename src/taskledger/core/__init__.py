"""Core ledger, paging, configuration and logging."""
