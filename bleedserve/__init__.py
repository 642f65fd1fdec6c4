"""bleedserve — Heartbleed vulnerability classification service."""

from bleedserve.constants import SERVICE_VERSION

__version__ = SERVICE_VERSION
