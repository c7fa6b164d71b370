"""Consult scheduling and appointment lifecycle service."""
