"""Exit-code contract for every CLI command.

Code  Meaning
----  -------
  0   Success — manifest reconciled, nothing to report
  1   Violation — run completed with stale/undiscovered warnings (``--strict``)
      or a JSON instance failed schema validation
  2   Error — configuration, parse, write or weaving failure
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    VIOLATION = 1
    ERROR = 2
