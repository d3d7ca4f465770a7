"""
NJREAP Services Package

Back office for the appraisal and photography business:
- Property address lookup
- Quote pricing and discount codes
- Calendar booking and confirmation email
- Job records and admin dashboard metrics
"""

__version__ = "1.0.0"
__author__ = "NJREAP Team"

# Submodules are imported on demand; the FastAPI app lives in services.api_service
