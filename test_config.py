import pytest

from config import ServerConfig, transport_from_env
from youtube_api import DIRECT


def test_defaults_from_empty_environment():
    config = ServerConfig.from_env({})
    assert config.rate_limiting is True
    assert config.rate_limit == '10 per 15 minutes'
    assert config.rate_limit_storage == 'memory://'
    assert config.transport == DIRECT
    assert config.trust_proxy_hops == 1
    assert config.allowed_origins == '*'
    assert config.port == 8080
    assert config.log_level == 'INFO'


def test_values_from_environment():
    config = ServerConfig.from_env({
        'RATE_LIMITING': 'off',
        'DOWNLOAD_RATE_LIMIT': '5 per minute',
        'PORT': '9000',
        'TRUST_PROXY_HOPS': '0',
        'CORS_ORIGINS': 'https://a.example, https://b.example',
        'LOG_LEVEL': 'debug',
    })
    assert config.rate_limiting is False
    assert config.rate_limit == '5 per minute'
    assert config.port == 9000
    assert config.trust_proxy_hops == 0
    assert config.allowed_origins == ['https://a.example', 'https://b.example']
    assert config.log_level == 'DEBUG'


def test_malformed_port_is_rejected():
    with pytest.raises(ValueError):
        ServerConfig.from_env({'PORT': 'eighty'})


def test_proxy_gets_scheme():
    transport = transport_from_env({'YDL_PROXY': ' proxy.internal:3128 '})
    assert transport.proxied
    assert transport.proxy == 'http://proxy.internal:3128'


def test_existing_cookie_file_is_used(tmp_path):
    cookies = tmp_path / 'cookies.txt'
    cookies.write_text('# Netscape HTTP Cookie File\n')
    transport = transport_from_env({'YDL_COOKIES': str(cookies)})
    assert transport.cookiefile == str(cookies)
    assert not transport.proxied


def test_missing_cookie_file_is_ignored(tmp_path):
    transport = transport_from_env({'YDL_COOKIES': str(tmp_path / 'missing.txt')})
    assert transport == DIRECT
