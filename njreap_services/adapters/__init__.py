"""
Adapter modules for external services.

This module contains adapters for:
- Property record lookup and address typeahead
- Google Calendar and Google Places reviews
- Transactional email delivery
"""
