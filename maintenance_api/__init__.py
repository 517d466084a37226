"""Maintenance Desk API: ticketing and facilities management backend."""
