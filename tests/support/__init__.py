"""Shared test models and helpers."""
