import logging

from stockroom import create_app

LOG = logging.getLogger(__name__)

app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=bool(app.config.get("DEBUG")))
