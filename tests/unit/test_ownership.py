"""Tests for artifact ownership and lookup."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from httpsource.core.ownership import ArtifactResolver, is_owned_by, owner_reference_for
from httpsource.core.store import SqliteObjectStore
from httpsource.models.artifacts import Artifact, ArtifactSpec
from httpsource.models.declarations import Http
from httpsource.models.meta import ObjectMeta, OwnerReference


def _artifact(name: str, refs: list[OwnerReference]) -> Artifact:
    return Artifact(
        metadata=ObjectMeta(name=name, owner_references=refs),
        spec=ArtifactSpec(revision="r", digest="r"),
    )


@pytest.fixture
def owner(make_http: Callable[..., Http]) -> Http:
    return make_http()


class TestOwnerReference:
    def test_points_at_declaration(self, owner: Http):
        ref = owner_reference_for(owner)
        assert ref.kind == "Http"
        assert ref.name == "test-http"
        assert ref.uid == owner.metadata.uid
        assert ref.controller is True

    def test_is_owned_by(self, owner: Http):
        assert is_owned_by(_artifact("a", [owner_reference_for(owner)]), owner)

    def test_other_owner(self, owner: Http):
        ref = OwnerReference(kind="Http", name="someone-else", uid="x")
        assert not is_owned_by(_artifact("a", [ref]), owner)

    def test_uid_mismatch(self, owner: Http):
        ref = OwnerReference(kind="Http", name="test-http", uid="previous-incarnation")
        assert not is_owned_by(_artifact("a", [ref]), owner)

    def test_multiple_owners_is_not_ownership(self, owner: Http):
        refs = [owner_reference_for(owner), OwnerReference(kind="Http", name="b", uid="b")]
        assert not is_owned_by(_artifact("a", refs), owner)


class TestArtifactResolver:
    def test_deterministic_lookup(self, store: SqliteObjectStore, owner: Http):
        store.create(_artifact("http-default-test-http", []))
        found = ArtifactResolver(store).find_artifact(owner)
        assert found is not None
        assert found.metadata.name == "http-default-test-http"

    def test_not_found_is_none(self, store: SqliteObjectStore, owner: Http):
        assert ArtifactResolver(store).find_artifact(owner) is None

    def test_scan_disabled_by_default(self, store: SqliteObjectStore, owner: Http):
        store.create(_artifact("legacy-name", [owner_reference_for(owner)]))
        assert ArtifactResolver(store).find_artifact(owner) is None

    def test_scan_fallback_finds_owned(self, store: SqliteObjectStore, owner: Http):
        store.create(_artifact("legacy-name", [owner_reference_for(owner)]))
        found = ArtifactResolver(store, scan_fallback=True).find_artifact(owner)
        assert found is not None
        assert found.metadata.name == "legacy-name"

    def test_scan_skips_ambiguous_owners(self, store: SqliteObjectStore, owner: Http):
        refs = [owner_reference_for(owner), OwnerReference(kind="Http", name="b", uid="b")]
        store.create(_artifact("shared", refs))
        assert ArtifactResolver(store, scan_fallback=True).find_artifact(owner) is None
