"""Deployment helpers for the FunZone Docker stack."""
