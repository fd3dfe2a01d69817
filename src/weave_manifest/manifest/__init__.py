"""Persistence manifest store."""

from weave_manifest.manifest.store import (  # noqa: F401
    MANIFEST_RELATIVE_PATH,
    Manifest,
    append,
    create,
    dumps,
    existing_entries,
    load,
    manifest_path,
    save,
)
