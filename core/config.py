#!/usr/bin/env python3
"""
Centralized configuration management for the reel pipeline
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional, Tuple


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ('false', '0', 'no', 'off', '')


class Config:
    """Centralized configuration constants and environment management"""

    # Browser pool
    BROWSER_MAX_LAUNCH_ATTEMPTS = 3
    BROWSER_LAUNCH_RETRY_DELAY = 1.0
    BROWSER_LAUNCH_WAIT_TIMEOUT = 30.0
    BROWSER_LAUNCH_POLL_INTERVAL = 0.1
    BROWSER_IDLE_TIMEOUT = 300.0
    BROWSER_VIEWPORT = {'width': 1280, 'height': 720}
    BROWSER_USER_AGENT = (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36'
    )

    # Processing queue
    QUEUE_PAUSE_BETWEEN_RUNS = 1.0

    # HTTP timeouts (seconds)
    DEFAULT_TIMEOUT = 30
    SHORT_TIMEOUT = 15
    BROWSER_NAVIGATION_TIMEOUT = 15
    BROWSER_SETTLE_DELAY = 0.8

    # Hosted conversion API retry schedule (seconds)
    COBALT_RETRY_DELAYS = (0.5, 1.0, 2.0)

    # Video download
    MAX_VIDEO_SIZE_MB = 200
    DOWNLOAD_TIMEOUT = 120
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    # Audio extraction
    AUDIO_COPY_TIMEOUT = 3.0
    AUDIO_BITRATE = '128k'
    AUDIO_SAMPLE_RATE = 44100
    AUDIO_CHANNELS = 2

    # Frame sampling
    FRAME_INTERVAL_SECONDS = 7
    FRAME_MIN_COUNT = 2
    FRAME_MAX_COUNT = 8
    FRAME_MAX_COUNT_PRODUCTION = 5
    FRAME_RESOLUTION = (960, 540)
    DEFAULT_DURATION_SECONDS = 30

    # Thumbnail
    THUMBNAIL_TIMESTAMPS = (2.0, 1.0, 0.5)
    THUMBNAIL_RESOLUTION = (720, 1280)

    # Summarizer
    MAX_SUMMARY_INPUT_CHARS = 10000

    # Entity extraction
    DEFAULT_SOURCE_PRIORITY = ('visual', 'metadata', 'audio')
    DEFAULT_ENTITY_CONFIDENCE = 0.85

    # AI models
    CLAUDE_MODEL = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS = 8000
    OCR_MODEL = "gpt-4o-mini"
    OCR_DEFAULT_CONFIDENCE = 0.8
    DEEPGRAM_MODEL = "nova-2"

    PROCESSING_VERSION = "2.0"

    @staticmethod
    def get_api_keys() -> Dict[str, Optional[str]]:
        """Get all configured API keys"""
        return {
            'openai': os.getenv('OPENAI_API_KEY'),
            'claude': os.getenv('ANTHROPIC_API_KEY'),
            'deepgram': os.getenv('DEEPGRAM_API_KEY'),
            'braintrust': os.getenv('BRAINTRUST_API_KEY'),
        }

    @staticmethod
    def get_storage_settings() -> Dict[str, Optional[str]]:
        """Get Supabase storage connection settings and bucket names"""
        return {
            'url': os.getenv('SUPABASE_URL'),
            'key': os.getenv('SUPABASE_SERVICE_ROLE_KEY'),
            'frame_bucket': os.getenv('FRAME_BUCKET', 'reel-frames'),
            'thumbnail_bucket': os.getenv('THUMBNAIL_BUCKET', 'reel-thumbnails'),
        }

    @staticmethod
    def get_default_headers() -> Dict[str, str]:
        """Get default HTTP headers"""
        return {
            'User-Agent': os.getenv('USER_AGENT', Config.BROWSER_USER_AGENT),
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
            'Accept-Encoding': 'gzip, deflate',
            'Connection': 'keep-alive',
        }

    @staticmethod
    def is_headless() -> bool:
        return _env_flag('PLAYWRIGHT_HEADLESS', True)

    @staticmethod
    def use_browser_strategy() -> bool:
        return _env_flag('USE_BROWSER_STRATEGY', True)

    @staticmethod
    def use_ytdlp() -> bool:
        return _env_flag('USE_YTDLP', False)

    @staticmethod
    def get_cobalt_api_url() -> str:
        return os.getenv('COBALT_API_URL', 'https://api.cobalt.tools').rstrip('/')

    @staticmethod
    def get_temp_dir() -> Path:
        """Base directory for run-scoped temporary files"""
        return Path(os.getenv('TEMP_DIR', 'temp'))

    @staticmethod
    def get_frame_max_count() -> int:
        if os.getenv('ENVIRONMENT', 'development') == 'production':
            return Config.FRAME_MAX_COUNT_PRODUCTION
        return Config.FRAME_MAX_COUNT

    @staticmethod
    def get_source_priority() -> Tuple[str, ...]:
        """
        Source priority used when deduplicating entities

        Reads ENTITY_SOURCE_PRIORITY (e.g. "visual,metadata,audio"); unknown
        names are dropped and missing sources are appended in default order.
        """
        raw = os.getenv('ENTITY_SOURCE_PRIORITY')
        if not raw:
            return Config.DEFAULT_SOURCE_PRIORITY

        order: List[str] = []
        for name in raw.split(','):
            name = name.strip().lower()
            if name in Config.DEFAULT_SOURCE_PRIORITY and name not in order:
                order.append(name)
        for name in Config.DEFAULT_SOURCE_PRIORITY:
            if name not in order:
                order.append(name)
        return tuple(order)

    @staticmethod
    def validate_environment() -> Dict[str, bool]:
        """Validate required environment variables and return status"""
        required_for_full_functionality = {
            'ANTHROPIC_API_KEY': bool(os.getenv('ANTHROPIC_API_KEY')),
            'DEEPGRAM_API_KEY': bool(os.getenv('DEEPGRAM_API_KEY')),
            'OPENAI_API_KEY': bool(os.getenv('OPENAI_API_KEY')),
            'SUPABASE_URL': bool(os.getenv('SUPABASE_URL')),
            'SUPABASE_SERVICE_ROLE_KEY': bool(os.getenv('SUPABASE_SERVICE_ROLE_KEY')),
        }

        optional = {
            'BRAINTRUST_API_KEY': bool(os.getenv('BRAINTRUST_API_KEY')),
            'COBALT_API_URL': bool(os.getenv('COBALT_API_URL')),
        }

        return {
            'required': required_for_full_functionality,
            'optional': optional,
            'all_required_present': all(required_for_full_functionality.values()),
        }

    @staticmethod
    def setup_logging(logs_dir: Path, log_name: str = 'backend.log') -> Path:
        """
        Configure root logging with a rotating file handler and console output

        Args:
            logs_dir: Directory for log files (created if missing)
            log_name: Log file name

        Returns:
            Path to the active log file
        """
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / log_name

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10_000_000,  # 10MB per file
            backupCount=5,
            encoding='utf-8'
        )
        console_handler = logging.StreamHandler()

        log_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        file_handler.setFormatter(log_format)
        console_handler.setFormatter(log_format)

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            handlers=[file_handler, console_handler]
        )

        return log_file
