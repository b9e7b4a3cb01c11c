"""Errors raised while serving a download; each one maps to a JSON envelope"""

from typing import Any, Dict, Optional


class ApiError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error': self.message
        }


class InvalidInput(ApiError):
    status_code = 400
    default_message = 'Invalid or missing YouTube URL provided.'


class NoQualifyingRendition(ApiError):
    status_code = 404
    default_message = 'No downloadable format found.'


class UpstreamRateLimited(ApiError):
    status_code = 429
    default_message = 'YouTube is rate-limiting requests. Please try again later.'


class UpstreamFailure(ApiError):
    status_code = 500
    default_message = 'Failed to extract video information'
