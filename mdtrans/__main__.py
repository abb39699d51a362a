"""
Entry point for running MDTrans as a module.

Usage:
    python -m mdtrans --help
    python -m mdtrans translate docs/ --output output/
"""
from .cli import app


if __name__ == "__main__":
    app()
