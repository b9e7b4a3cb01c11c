"""
Server configuration, read from the environment.

    PORT / HOST               listen address (default 0.0.0.0:8080)
    RATE_LIMITING             "0" disables the download rate limit
    DOWNLOAD_RATE_LIMIT       Flask-Limiter limit string (default "10 per 15 minutes")
    RATE_LIMIT_STORAGE_URI    limiter storage backend (default in-process memory)
    YDL_PROXY                 proxy URL for yt-dlp and stream requests
    YDL_COOKIES               cookie file handed to yt-dlp
    TRUST_PROXY_HOPS          reverse proxies in front of the app (default 1)
    CORS_ORIGINS              comma separated allowed origins (default "*")
    LOG_LEVEL                 logging level name (default INFO)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from youtube_api import DIRECT, Transport, normalize_proxy_url

logger = logging.getLogger(__name__)

FALSE_VALUES = {'0', 'false', 'no', 'off', 'disabled'}


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in FALSE_VALUES


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f'{name} must be an integer, got {value!r}')


def transport_from_env(environ: Mapping[str, str]) -> Transport:
    """Proxied transport when YDL_PROXY is set, otherwise a direct connection"""
    proxy = normalize_proxy_url(environ.get('YDL_PROXY'))

    cookiefile = None
    cookie_setting = environ.get('YDL_COOKIES')
    if cookie_setting:
        cookie_path = Path(cookie_setting).expanduser()
        if cookie_path.exists():
            cookiefile = str(cookie_path)
        else:
            logger.warning("Cookie file %s not found. Continuing without cookies.", cookie_path)

    if proxy is None and cookiefile is None:
        return DIRECT
    return Transport(proxy=proxy, cookiefile=cookiefile)


@dataclass(frozen=True)
class ServerConfig:
    rate_limiting: bool = True
    rate_limit: str = '10 per 15 minutes'
    rate_limit_storage: str = 'memory://'
    transport: Transport = field(default_factory=Transport)
    trust_proxy_hops: int = 1
    cors_origins: str = '*'
    host: str = '0.0.0.0'
    port: int = 8080
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ServerConfig':
        environ = os.environ if environ is None else environ
        origins = environ.get('CORS_ORIGINS', '*').strip() or '*'
        return cls(
            rate_limiting=_env_flag(environ, 'RATE_LIMITING', True),
            rate_limit=environ.get('DOWNLOAD_RATE_LIMIT') or cls.rate_limit,
            rate_limit_storage=environ.get('RATE_LIMIT_STORAGE_URI') or cls.rate_limit_storage,
            transport=transport_from_env(environ),
            trust_proxy_hops=_env_int(environ, 'TRUST_PROXY_HOPS', 1),
            cors_origins=origins,
            host=environ.get('HOST') or cls.host,
            port=_env_int(environ, 'PORT', 8080),
            log_level=(environ.get('LOG_LEVEL') or cls.log_level).upper()
        )

    @property
    def allowed_origins(self):
        if self.cors_origins == '*':
            return '*'
        return [origin.strip() for origin in self.cors_origins.split(',') if origin.strip()]
