"""
Package: sms_dispatch
Description: Flight notification SMS delivery pipeline.

Drives queued SMS requests from the sms-requests table through the
provider API and records a terminal delivery status on each one.
"""

__version__ = "0.3.0"
