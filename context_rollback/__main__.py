# context_rollback/__main__.py
"""
Entry point for the context-rollback CLI.
"""
from context_rollback.cli import app

if __name__ == "__main__":
    app()
