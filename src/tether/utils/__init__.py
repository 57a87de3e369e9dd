"""Shared utilities for Tether."""
