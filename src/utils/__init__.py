"""유틸리티 모듈"""
from .config import ConfigError, OverlayConfig, load_config
from .logging_config import setup_logging

__all__ = ["ConfigError", "OverlayConfig", "load_config", "setup_logging"]
