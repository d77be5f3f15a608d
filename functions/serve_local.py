#!/usr/bin/env python3
"""Local development server for MultiBuild.

Serves the same handlers as the Cloud Functions in ``main.py`` with plain
REST routes, so the chat UI can run without the Firebase emulators.

Usage:
    cd functions
    source venv/bin/activate
    python serve_local.py

Routes:
- POST /calculate            -> pizza oven shopping list
- GET  /options/<quality>    -> shopping list for one tier (?area=1.8)
- GET  /demo                 -> shopping list for the default input
- GET  /materials            -> catalog, calculation rules and tiers
- POST /chat                 -> one message to the build planner
- GET  /chat/session         -> session info (?sessionId=...)
- POST /chat/reset           -> start a new session
- GET  /health
"""

import os

# Set environment for local development
os.environ.setdefault('FUNCTIONS_EMULATOR', 'true')
os.environ.setdefault('SESSION_BACKEND', 'memory')

from flask import Flask, request, jsonify
from flask_cors import CORS

# Import the main module after setting env vars
from main import (
    handle_calculate,
    handle_chat,
    handle_chat_reset,
    handle_chat_session,
    handle_demo,
    handle_materials,
    handle_options,
)


def _body():
    return request.get_json(force=True, silent=True)


def create_app() -> Flask:
    app = Flask(__name__)
    app.json.ensure_ascii = False
    CORS(app)

    @app.route('/calculate', methods=['POST'])
    def calculate():
        payload, status = handle_calculate(_body())
        return jsonify(payload), status

    @app.route('/options/<quality>', methods=['GET'])
    def quality_options(quality):
        payload, status = handle_options(quality, request.args.get('area'))
        return jsonify(payload), status

    @app.route('/demo', methods=['GET'])
    def demo():
        payload, status = handle_demo()
        return jsonify(payload), status

    @app.route('/materials', methods=['GET'])
    def materials():
        payload, status = handle_materials()
        return jsonify(payload), status

    @app.route('/chat', methods=['POST'])
    def chat():
        payload, status = handle_chat(_body())
        return jsonify(payload), status

    @app.route('/chat/session', methods=['GET'])
    def chat_session():
        payload, status = handle_chat_session(request.args.get('sessionId'))
        return jsonify(payload), status

    @app.route('/chat/reset', methods=['POST'])
    def chat_reset():
        payload, status = handle_chat_reset(_body())
        return jsonify(payload), status

    # Health check
    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'service': 'multibuild-agent'})

    return app


app = create_app()


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5002))
    print(f"""
╔════════════════════════════════════════════════════════════════╗
║  MultiBuild - Local Development Server                         ║
╠════════════════════════════════════════════════════════════════╣
║                                                                ║
║  Server running on: http://127.0.0.1:{port}                     ║
║                                                                ║
║  Endpoints:                                                    ║
║  • POST /calculate          • GET /options/<quality>?area=     ║
║  • GET  /demo               • GET /materials                   ║
║  • POST /chat               • GET /chat/session                ║
║  • POST /chat/reset         • GET /health                      ║
║                                                                ║
╚════════════════════════════════════════════════════════════════╝
""")
    app.run(host='127.0.0.1', port=port, debug=True, threaded=True)
