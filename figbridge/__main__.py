"""
Entry point for running figbridge as a module: python -m figbridge
"""

from figbridge.cli.commands import app

if __name__ == "__main__":
    app()
