"""Weaving handoff."""

from weave_manifest.weaving.static_weave import (  # noqa: F401
    STATIC_WEAVE_MAIN,
    NullWeaver,
    StaticWeaveCommand,
    WeaveRequest,
    Weaver,
    build_request,
)
