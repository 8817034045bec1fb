"""Shared utilities: configuration, logging, money and datetime helpers."""
