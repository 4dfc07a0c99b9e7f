"""Shared fixtures — stand-in engines built from one-line Python scripts.

Each engine reads the document from stdin like the Tika app does.
"""

import sys

import pytest


def _python(script: str) -> list[str]:
    return [sys.executable, "-c", script]


@pytest.fixture
def upper_engine() -> list[str]:
    """Echoes stdin back upper-cased."""
    return _python(
        "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read().upper())"
    )


@pytest.fixture
def silent_engine() -> list[str]:
    """Consumes stdin, writes nothing, exits 0."""
    return _python("import sys; sys.stdin.buffer.read()")


@pytest.fixture
def failing_engine() -> list[str]:
    """Consumes stdin, complains on stderr, exits 3."""
    return _python(
        "import sys; sys.stdin.buffer.read(); sys.stderr.write('boom\\n'); sys.exit(3)"
    )


@pytest.fixture
def sleeping_engine() -> list[str]:
    """Never finishes on its own."""
    return _python("import time; time.sleep(60)")
