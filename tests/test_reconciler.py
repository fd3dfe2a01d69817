"""Tests for manifest/classpath reconciliation and the resolvers."""

from __future__ import annotations

from pathlib import Path

from weave_manifest.core.scanner import MarkerIndex
from weave_manifest.reconcile import (
    ReconciliationReport,
    any_resolver,
    archive_resolver,
    classpath_resolver,
    default_resolver,
    reconcile,
)


def _resolves(*names: str):
    known = set(names)
    return lambda name: name in known


class TestReconcile:
    def test_delta_is_discovered_minus_existing(self):
        report = reconcile(
            {"com.acme.Foo"},
            ["com.acme.Bar", "com.acme.Foo"],
            _resolves("com.acme.Foo", "com.acme.Bar"),
        )
        assert report.delta == ("com.acme.Bar",)
        assert report.undiscovered_entries == ("com.acme.Bar",)
        assert report.stale_entries == ()

    def test_stale_entries_are_reported_not_removed(self):
        report = reconcile(
            {"com.acme.Ghost", "com.acme.Foo"},
            ["com.acme.Foo"],
            _resolves("com.acme.Foo"),
        )
        assert report.stale_entries == ("com.acme.Ghost",)
        assert report.delta == ()
        assert report.existing_count == 2

    def test_delta_keeps_discovery_order(self):
        report = reconcile(set(), ["b.B", "a.A", "c.C", "a.A"], _resolves())
        assert report.delta == ("b.B", "a.A", "c.C")
        assert report.undiscovered_entries == ("a.A", "b.B", "c.C")

    def test_resolver_consulted_once_per_existing_entry(self):
        calls: list[str] = []

        def resolve(name: str) -> bool:
            calls.append(name)
            return True

        reconcile({"a.A", "b.B"}, ["c.C"], resolve)
        assert sorted(calls) == ["a.A", "b.B"]

    def test_nothing_to_do(self):
        report = reconcile({"a.A"}, ["a.A"], _resolves("a.A"))
        assert report.delta == ()
        assert not report.has_warnings

    def test_to_dict_counts(self):
        report = reconcile({"a.A", "g.Ghost"}, ["a.A", "b.B"], _resolves("a.A", "b.B"))
        payload = report.to_dict()
        assert payload["counts"] == {
            "discovered": 2,
            "existing": 2,
            "appended": 1,
            "stale": 1,
            "undiscovered": 1,
        }
        assert payload["appended"] == ["b.B"]
        assert payload["stale_entries"] == ["g.Ghost"]

    def test_summary_line(self):
        report = ReconciliationReport(discovered=("a.A",), delta=("a.A",))
        assert report.summary() == "Discovered: 1, Appended: 1, Stale: 0, Undiscovered: 0"


class TestResolvers:
    def test_classpath_resolver_uses_scanned_types(self):
        resolve = classpath_resolver(MarkerIndex(types={"a.A"}))
        assert resolve("a.A")
        assert not resolve("b.B")

    def test_archive_resolver_checks_directories_and_jars(self, sample_classpath):
        resolve = archive_resolver(sample_classpath)
        assert resolve("com.acme.Order")
        assert resolve("com.acme.service.OrderService")
        assert resolve("com.acme.Address")
        assert not resolve("com.acme.Ghost")

    def test_archive_resolver_ignores_missing_and_corrupt_roots(self, tmp_path: Path, class_dir):
        bad = tmp_path / "bad.jar"
        bad.write_bytes(b"nope")
        root = class_dir({"com.acme.Order": []})
        resolve = archive_resolver([tmp_path / "missing", bad, root])
        assert resolve("com.acme.Order")
        assert not resolve("com.acme.Other")

    def test_archive_resolver_sees_ignored_packages(self, class_dir):
        resolve = archive_resolver([class_dir({"org.maven.Plugin": []})])
        assert resolve("org.maven.Plugin")


class TestDefaultResolver:
    def test_index_covers_nested_archive_members(self, jar, nested_jar_bytes):
        war = jar({}, name="app.war", extra={"WEB-INF/lib/m.jar": nested_jar_bytes({"com.acme.Order": []})})
        index = MarkerIndex(types={"com.acme.Order"})
        assert not archive_resolver([war])("com.acme.Order")
        assert default_resolver(index, [war])("com.acme.Order")

    def test_membership_covers_types_missing_from_the_index(self, class_dir):
        root = class_dir({"org.maven.Plugin": []})
        resolve = default_resolver(MarkerIndex(), [root])
        assert resolve("org.maven.Plugin")
        assert not resolve("com.acme.Ghost")

    def test_any_resolver_short_circuits(self):
        calls: list[str] = []

        def never(name: str) -> bool:
            calls.append(name)
            return False

        resolve = any_resolver(lambda name: True, never)
        assert resolve("a.A")
        assert calls == []
        assert not any_resolver()("a.A")
