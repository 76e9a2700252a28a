# src/server.py

from flask import Flask, request, jsonify

from vinculum.config import Settings
from vinculum.handler import handle_tracking_request
from vinculum.logger import Logger

# Every method reaches the handler so it can answer 405 with its own Allow header
ROUTED_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']


def create_app(settings: Settings = None, session=None) -> Flask:
    settings = settings or Settings.from_env()
    Logger(level=settings.log_level, log_dir=settings.log_dir)

    app = Flask(__name__)

    @app.route('/api/track', methods=ROUTED_METHODS)
    def api_track():
        body = None
        if request.method == 'POST':
            body = request.get_json(silent=True)
            if request.get_data() and body is None:
                return jsonify({"error": "Request body is not valid JSON"}), 400

        status_code, headers, result = handle_tracking_request(
            request.method,
            request.args.to_dict(flat=False),
            body,
            settings=settings,
            session=session,
        )
        return jsonify(result), status_code, headers

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
