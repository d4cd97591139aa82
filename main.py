"""WSGI entrypoint for the Recipe Book API.

Containerized deployments serve the ``app`` object below with Gunicorn.
Running this module directly starts the Flask development server on ``PORT``
(default 5000), which is convenient for local work.
"""

import os

from dotenv import load_dotenv

load_dotenv()

from recipebook import create_app  # noqa: E402
from recipebook.logging_config import configure_logging  # noqa: E402

configure_logging()
app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))


__all__ = ["app"]
