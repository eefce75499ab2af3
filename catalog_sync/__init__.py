import sys
import logging
from flask import Flask
from dotenv import load_dotenv


def create_app():
    load_dotenv()
    app = Flask(__name__)

    # =========================================================
    # Logging: stdout handler so job output shows up in the shell / container logs
    # =========================================================
    app.logger.setLevel(logging.INFO)
    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    app.logger.addHandler(sh)

    # =========================================================
    # Batch jobs (flask inventory-update / product-upload)
    # =========================================================
    from .commands.jobs import bp as jobs_bp

    app.register_blueprint(jobs_bp)

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        app.logger.info("Health check endpoint called")
        return {"ok": True}, 200

    return app
