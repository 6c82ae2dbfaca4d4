"""One-time code generation."""

from __future__ import annotations

import secrets

CODE_MIN = 100_000
CODE_MAX = 999_999


class CodeGenerator:
    """Produces 6-digit codes from the OS CSPRNG.

    The range starts at 100000 so a code never has a leading zero.
    """

    def generate(self) -> str:
        return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))
