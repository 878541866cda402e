"""Allow ``python -m keel``."""

from keel.cli.app import app

if __name__ == "__main__":
    app()
