"""
Allow ``python -m restic_orchestrator``.
"""

from restic_orchestrator.api.cli import cli

if __name__ == "__main__":
    cli()
