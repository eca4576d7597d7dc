"""
Shared Kernel

Base classes and utilities shared across the venue, booking and payment
contexts: value objects, operation outcomes, the unit of work and the
message bus.
"""
