"""Skribble e-signature API integration."""

from src.integrations.skribble.client import SkribbleClient

__all__ = ["SkribbleClient"]
