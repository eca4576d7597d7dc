"""Bookings app package.

Reserves a court for a whole-hour time range, computes the hourly
availability grid, and drives a booking through its lifecycle as payment
results, cancellations and the completion sweep arrive. Double booking is
prevented by locking the court row inside the reservation transaction,
with an exclusion constraint as backstop on PostgreSQL.
"""
