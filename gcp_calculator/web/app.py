"""Flask web application exposing the calculator link generator."""

import logging

from flask import Flask, jsonify, request

from gcp_calculator.core.config import load_environment
from gcp_calculator.shared.async_utils import run_coroutine
from gcp_calculator.shared.logging import resolve_log_level, setup_logging
from gcp_calculator.shared.metrics import configure_metrics, increment_errors
from gcp_calculator.shared.tracing import configure_tracing
from gcp_calculator.web.handlers import WebHandlers

logger = logging.getLogger(__name__)


def create_app(handlers: WebHandlers = None) -> Flask:
    """
    Create the Flask application.

    Args:
        handlers: Route handlers; a default WebHandlers is built when omitted

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    handlers = handlers or WebHandlers()

    @app.route('/api/generate-gcp-url', methods=['POST'])
    def generate_gcp_url():
        """Drive the calculator and return a share URL."""
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({
                'success': False,
                'error': 'Request body must be JSON',
                'errorCode': 'ValidationError',
            }), 400
        try:
            body, status = run_coroutine(handlers.handle_generate_url(payload))
            return jsonify(body), status
        except Exception as e:
            logger.exception("Error in GCP URL generation")
            increment_errors("route_error", stage="generate-gcp-url")
            return jsonify({'success': False, 'error': str(e), 'errorCode': 'InternalError'}), 500

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify(handlers.handle_health())

    return app


def main() -> None:
    from gcp_calculator.core.config import get_port

    load_environment()
    setup_logging(
        name="gcp_calculator",
        level=resolve_log_level(),
        service_name="gcp-calculator-web",
    )
    configure_tracing(service_name="gcp-calculator-web")
    configure_metrics()

    app = create_app()
    app.run(host='0.0.0.0', port=get_port(), debug=False)


if __name__ == '__main__':
    main()
