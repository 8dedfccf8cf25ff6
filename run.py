"""Project root entry point for launching the web interface."""

from __future__ import annotations

from sims4_translator.web import create_app


def main():
    app = create_app()
    # The reloader would start a second process with its own translation jobs
    app.run(host="127.0.0.1", port=5500, debug=True, use_reloader=False)


if __name__ == "__main__":
    main()
