"""
Kiosk Dispatch

Real-time staff dispatch for kiosk support calls: rings the staff line via
Twilio, fans the call out to connected staff clients, lets exactly one staff
member resolve it, and keeps a bounded call history.
"""

__version__ = "1.0.0"
