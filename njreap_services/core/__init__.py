"""
Core business logic for quotes, scheduling and bookings.
"""
