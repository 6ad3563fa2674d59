"""Entry point for running ownerstore as a module."""

from ownerstore.cli.commands import app

if __name__ == "__main__":
    app()
