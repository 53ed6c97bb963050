import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import load_credentials
from .logger import LOGGER_NAME, setup_logger
from .reset import PasswordResetService

logger = logging.getLogger(LOGGER_NAME)


def create_app(credentials=None, service=None):
    """Build the Flask app.

    Credentials are loaded from the environment when not given, so a missing
    setting stops the process at startup instead of on the first request.
    """
    if service is None:
        if credentials is None:
            credentials = load_credentials()
        service = PasswordResetService(credentials)
        if credentials.audit_attribute:
            logger.warning(f"New passwords are also written in plaintext to the "
                           f"'{credentials.audit_attribute}' attribute (LDAP_AUDIT_ATTRIBUTE)")

    app = Flask(__name__)
    CORS(app)
    app.extensions['password_reset'] = service

    @app.route('/api/forgot-password', methods=['POST'])
    def forgot_password():
        data = request.get_json(silent=True) or {}
        email = data.get('email') if isinstance(data, dict) else None

        if not isinstance(email, str) or not email.strip():
            logger.warning("Received forgot password request, but email address is empty")
            return jsonify({'error': 'Email is required.'}), 400

        outcome = service.reset_password(email.strip())
        return jsonify(outcome.body), outcome.status

    return app


def main():
    """Start the application"""
    from dotenv import load_dotenv
    load_dotenv()

    setup_logger(os.getenv('LOG_DIR', 'logs'), os.getenv('LOG_LEVEL', 'INFO'))
    app = create_app()
    logger.info("Password reset service started")
    app.run(host=os.getenv('HOST', '0.0.0.0'), port=int(os.getenv('PORT', 5001)), threaded=True)


if __name__ == '__main__':
    main()
