"""
Package: delivery
Description: SMS delivery mechanisms for the dispatch service.

Provides the provider HTTP client and the delivery executor that drives
an SMS request to its terminal status.
"""
