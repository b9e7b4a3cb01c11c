#!/usr/bin/env python3
"""
YouTube Downloader Backend
==========================

Accepts a YouTube URL and streams back an MP4 or MP3 download.

LEGAL WARNING:
This tool is for educational purposes only. Downloading YouTube videos
may violate YouTube's Terms of Service. Always ensure you have permission
to download and use the content.

Usage:
python app.py

API Endpoint:
POST /api/download
Content-Type: application/json

Request body:
{
    "url": "https://www.youtube.com/watch?v=VIDEO_ID",
    "formatType": "mp4"  // optional: "mp3" for audio, anything else serves mp4
}

Response:
    200 with the media as an attachment, or
    {"success": false, "error": "..."} with 400/404/429/500
"""

import logging
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix

from config import ServerConfig
from errors import ApiError, InvalidInput
from format_selector import OutputKind, Tier, select_rendition
from response_framer import frame_download, require_rendition
from youtube_api import YouTubeExtractor, validate_url

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = 'Too many download requests from this IP, please try again later.'

SECURITY_HEADERS = {
    'Content-Security-Policy': "default-src 'self'",
    'Cross-Origin-Opener-Policy': 'same-origin',
    'Referrer-Policy': 'no-referrer',
    'Strict-Transport-Security': 'max-age=15552000; includeSubDomains',
    'X-Content-Type-Options': 'nosniff',
    'X-DNS-Prefetch-Control': 'off',
    'X-Download-Options': 'noopen',
    'X-Frame-Options': 'SAMEORIGIN',
    'X-Permitted-Cross-Domain-Policies': 'none',
}


def _error_response(message: str, status: int):
    return jsonify({
        'success': False,
        'error': message
    }), status


def create_app(config: Optional[ServerConfig] = None,
               extractor: Optional[YouTubeExtractor] = None) -> Flask:
    config = config or ServerConfig.from_env()
    extractor = extractor or YouTubeExtractor()

    app = Flask(__name__)
    app.config['SERVER_CONFIG'] = config

    if config.trust_proxy_hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=config.trust_proxy_hops, x_proto=config.trust_proxy_hops)

    CORS(app, origins=config.allowed_origins)

    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=[],
        storage_uri=config.rate_limit_storage,
        enabled=config.rate_limiting
    )
    # the limit decorator only holds a weak proxy to the limiter
    app.extensions['download_limiter'] = limiter

    @app.after_request
    def set_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.route('/', methods=['GET'])
    def index():
        return 'YouTube Downloader Backend is running!'

    @app.route('/api/download', methods=['POST'])
    @limiter.limit(config.rate_limit)
    def download():
        """Resolve the video, pick a rendition and stream it back"""
        data = request.get_json(silent=True) or {}
        url = data.get('url') if isinstance(data, dict) else None

        if not url or not validate_url(url):
            raise InvalidInput('Invalid or missing YouTube URL provided.')

        kind = OutputKind.from_format_type(data.get('formatType'))

        try:
            info = extractor.get_video_info(url, transport=config.transport)
            selection = select_rendition(kind, info.renditions)
            rendition = require_rendition(selection)

            if selection.tier is Tier.VIDEO_ONLY:
                logger.warning("No combined MP4 for %s, serving video-only format %s without audio",
                               info.video_id, rendition.format_id)

            stream = extractor.open_stream(rendition, transport=config.transport)
        except ApiError:
            raise
        except Exception as e:
            logger.exception("Error in API route: %s", e)
            return _error_response('Internal server error', 500)

        logger.info("Streaming %s format %s (%s) as %s",
                    info.video_id, rendition.format_id, selection.tier.value, kind.extension)
        return frame_download(selection, info.title, stream)

    @app.errorhandler(ApiError)
    def api_error(error):
        if error.status_code >= 500:
            logger.error("Download failed: %s", error.message)
        else:
            logger.info("Download rejected (%d): %s", error.status_code, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return _error_response('Endpoint not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error_response('Method not allowed', 405)

    @app.errorhandler(429)
    def rate_limited(error):
        return _error_response(RATE_LIMIT_MESSAGE, 429)

    @app.errorhandler(500)
    def internal_error(error):
        return _error_response('Internal server error', 500)

    return app


app = create_app()


if __name__ == '__main__':
    server_config = app.config['SERVER_CONFIG']
    logging.basicConfig(level=server_config.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    print("Starting YouTube Downloader Backend...")
    print(f"API will be available at: http://localhost:{server_config.port}")
    print("Endpoints:")
    print("  POST /api/download  - Download video (mp4) or audio (mp3)")
    print("  GET /               - Liveness check")

    app.run(host=server_config.host, port=server_config.port)
