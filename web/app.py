#!/usr/bin/env python3
"""
Flask application exposing balanced start generation and evaluation.
"""

import os

from flask import Flask

from fairstart.config import Settings


def create_app(service=None):
    """Application factory.

    service: an EvaluatorService; built from environment settings when omitted.
    """
    app = Flask(__name__)

    if service is None:
        from web.service import EvaluatorService
        service = EvaluatorService(Settings.from_env())
    app.extensions['fairstart'] = service

    # Register routes (import here to avoid circular imports)
    from web import routes
    routes.register_routes(app, service)

    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port)
