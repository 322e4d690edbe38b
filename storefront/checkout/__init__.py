"""
Checkout core: pricing, validation, submission, payment completion and
realtime reconciliation for a single checkout session.
"""
