"""Webhook-driven indexing and visibility-scoped search for tasks and organizations."""
