"""
Request ID middleware - Inject X-Request-ID for request correlation.

The scraper webhook sends its own X-Request-ID; when it does, the same id
shows up in the scraper's logs and in every airlock log line for the
evaluation.
"""

import logging
import uuid
from flask import Flask, request, g, has_request_context


class RequestIdLogFilter(logging.Filter):
    """Adds record.request_id ('-' outside a request) for log formats."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = g.get('request_id', '-') if has_request_context() else '-'
        return True


def setup_request_id_middleware(app: Flask) -> None:
    """
    Set up request ID middleware on Flask app.

    Injects X-Request-ID into:
    - Flask's g object (g.request_id)
    - Response headers (X-Request-ID)
    - Log records emitted through the root handlers (record.request_id)
    """
    log_filter = RequestIdLogFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(log_filter)

    @app.before_request
    def inject_request_id():
        # Use existing header if provided, otherwise generate new
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())

    @app.after_request
    def add_request_id_header(response):
        if hasattr(g, 'request_id'):
            response.headers['X-Request-ID'] = g.request_id
        return response
