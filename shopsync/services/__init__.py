"""Business logic: normalization, reconciliation, sync orchestration and webhooks"""
