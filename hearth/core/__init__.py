"""Heating automation engine."""
