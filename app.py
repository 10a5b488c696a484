from flask import Flask, jsonify
from dotenv import load_dotenv
import logging
import os

load_dotenv()

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max payload (logos, XML)
    if config:
        app.config.update(config)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    # Register blueprints
    from blueprints.compliance import compliance_bp

    app.register_blueprint(compliance_bp, url_prefix='/api/compliance')
    return app


app = create_app()


if __name__ == '__main__':
    app.run(debug=os.getenv('FLASK_DEBUG', '0') == '1', host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
