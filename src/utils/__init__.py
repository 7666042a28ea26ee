"""Utilities package for the food package engine."""
