"""Downstream weaving handoff.

The weaving step itself is external.  This module only packages the
parameters (source, target, classpath, manifest location, log level) and
hands them to a :class:`Weaver`.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from weave_manifest.errors import WeaveError

_logger = logging.getLogger(__name__)

STATIC_WEAVE_MAIN = "org.eclipse.persistence.tools.weaving.jpa.StaticWeave"


@dataclass(frozen=True, slots=True)
class WeaveRequest:
    """Everything the weaver receives.  No return value is consumed."""

    source: Path
    target: Path
    classpath: tuple[Path, ...]
    persistence_info: Path
    log_level: str = "WARNING"


class Weaver(Protocol):
    def weave(self, request: WeaveRequest) -> None: ...


class NullWeaver:
    """Logs the handoff and does nothing else."""

    def weave(self, request: WeaveRequest) -> None:
        _logger.info(
            "No weaver configured; skipping weaving of %s -> %s",
            request.source,
            request.target,
        )


@dataclass(frozen=True)
class StaticWeaveCommand:
    """Run EclipseLink's ``StaticWeave`` command-line tool in a JVM.

    Parameters
    ----------
    java:
        The ``java`` executable.
    weaver_classpath:
        JVM classpath holding EclipseLink itself (``-cp``).
    main_class:
        Entry point of the weaving tool.
    """

    java: str = "java"
    weaver_classpath: tuple[Path, ...] = ()
    main_class: str = STATIC_WEAVE_MAIN

    def command(self, request: WeaveRequest) -> list[str]:
        cmd = [self.java]
        if self.weaver_classpath:
            cmd += ["-cp", os.pathsep.join(str(p) for p in self.weaver_classpath)]
        cmd.append(self.main_class)
        cmd += ["-persistenceinfo", str(request.persistence_info)]
        if request.classpath:
            cmd += ["-classpath", os.pathsep.join(str(p) for p in request.classpath)]
        cmd += ["-loglevel", request.log_level]
        cmd += [str(request.source), str(request.target)]
        return cmd

    def weave(self, request: WeaveRequest) -> None:
        cmd = self.command(request)
        _logger.debug("Running weaver: %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError as exc:
            raise WeaveError(f"weaver executable not found: {self.java}") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            raise WeaveError(
                f"weaver exited with status {exc.returncode}: {detail}"
            ) from exc
        for line in proc.stdout.splitlines():
            _logger.info("[weaver] %s", line)


def build_request(
    source: Path,
    target: Path,
    classpath: Sequence[Path],
    persistence_info: Path,
    log_level: str,
) -> WeaveRequest:
    return WeaveRequest(
        source=source,
        target=target,
        classpath=tuple(classpath),
        persistence_info=persistence_info,
        log_level=log_level,
    )
