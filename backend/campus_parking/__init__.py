"""
Campus Parking Sanction Service

Tracks confirmed parking/traffic violations of registered vehicles,
escalates sanctions (warning -> suspension -> revocation) and lifts
them on expiry, administrative resolution or registration renewal.
"""

__version__ = "1.0.0"
