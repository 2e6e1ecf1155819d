"""
Tests for the in-memory document store.

These tests verify fixture loading and the atomic operations the scan
lease relies on.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from tagscan.data_store import InMemoryDocumentStore


class TestFixtureLoading:
    """Tests for reading the JSON fixtures."""

    def test_get_document(self, store: InMemoryDocumentStore):
        doc = store.get_document("pets", "pet-001")

        assert doc == {"name": "Rex", "ownerID": "user-001"}

    def test_get_missing_document(self, store: InMemoryDocumentStore):
        assert store.get_document("pets", "nope") is None

    def test_missing_fixture_file_is_empty_collection(self, store: InMemoryDocumentStore):
        assert store.count("scanEvents") == 0
        assert store.query_documents("scanEvents", []) == []

    def test_returned_documents_are_copies(self, store: InMemoryDocumentStore):
        doc = store.get_document("pets", "pet-001")
        doc["name"] = "Changed"

        assert store.get_document("pets", "pet-001")["name"] == "Rex"

    def test_reload_discards_writes(self, store: InMemoryDocumentStore):
        store.append_document("scanEvents", {"petId": "pet-001"})
        assert store.count("scanEvents") == 1

        store.reload()

        assert store.count("scanEvents") == 0


class TestQueries:
    """Tests for filtered queries."""

    def _seed(self, store):
        for minute, pet_id in [(5, "a"), (1, "a"), (3, "b"), (9, "a")]:
            store.append_document("events", {
                "petId": pet_id,
                "createdAt": datetime(2025, 1, 1, 0, minute, tzinfo=timezone.utc),
            })

    def test_equality_and_range_filters(self, store):
        self._seed(store)

        results = store.query_documents("events", [
            ("petId", "==", "a"),
            ("createdAt", ">", datetime(2025, 1, 1, 0, 2, tzinfo=timezone.utc)),
        ])

        assert sorted(r["createdAt"].minute for r in results) == [5, 9]

    def test_order_by_and_limit(self, store):
        self._seed(store)

        results = store.query_documents(
            "events", [("petId", "==", "a")], limit=2, order_by="createdAt"
        )

        assert [r["createdAt"].minute for r in results] == [1, 5]

    def test_results_include_id(self, store):
        doc_id = store.append_document("events", {"petId": "x"})

        results = store.query_documents("events", [("petId", "==", "x")])

        assert results[0]["id"] == doc_id

    def test_missing_field_never_matches(self, store):
        store.append_document("events", {"petId": "x"})

        assert store.query_documents("events", [("reason", "!=", "notified")]) == []


class TestAtomicOperations:
    """Tests for create-if-absent and compare-and-delete."""

    def test_create_only_if_absent(self, store):
        assert store.create_document("locks", "pet-001", {"token": "a"}) is True
        assert store.create_document("locks", "pet-001", {"token": "b"}) is False
        assert store.get_document("locks", "pet-001") == {"token": "a"}

    def test_delete_with_matching_token(self, store):
        store.create_document("locks", "pet-001", {"token": "a"})

        assert store.delete_document("locks", "pet-001", if_match={"token": "b"}) is False
        assert store.delete_document("locks", "pet-001", if_match={"token": "a"}) is True
        assert store.get_document("locks", "pet-001") is None

    def test_delete_missing_document(self, store):
        assert store.delete_document("locks", "nothing") is False

    def test_concurrent_creates_have_one_winner(self, store):
        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(
                lambda i: store.create_document("locks", "pet-001", {"token": str(i)}),
                range(50),
            ))

        assert results.count(True) == 1
