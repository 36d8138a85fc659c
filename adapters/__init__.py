"""Adapters for the meal store API and device-local storage."""
