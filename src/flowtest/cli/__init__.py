from __future__ import annotations

from flowtest.cli.commands import flowtest, run

__all__ = ["flowtest", "run"]
