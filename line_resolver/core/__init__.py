"""Core module - shared models, store, session and utilities."""

from line_resolver.core.models import AdvertAsset, CloudSource, ProbeResult, SessionSnapshot
from line_resolver.core.logger import setup_logger
