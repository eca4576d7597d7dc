"""Payments app: payment records, provider gateway and webhook endpoint."""
