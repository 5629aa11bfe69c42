"""Agora forum backend: vote ledger, content reports and moderation."""
