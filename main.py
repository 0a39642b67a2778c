import os

from app import app, configure_logging, preload_templates

HOST = os.getenv("BLOG_HOST", "0.0.0.0")
PORT = int(os.getenv("BLOG_PORT", "54545"))


def main() -> None:
    configure_logging()
    with app.app_context():
        preload_templates()
    app.run(host=HOST, port=PORT, threaded=True)


if __name__ == "__main__":
    main()
