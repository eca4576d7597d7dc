"""Venues app package.

Venues and their courts are owned by the venue-management side of the
platform (listing, approval, pricing). The booking core only reads them:
a court's operating hours and hourly price, and whether its venue has been
approved.
"""
