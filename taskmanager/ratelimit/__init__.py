"""Admission control: fixed-window rate limiting keyed by caller identity."""
