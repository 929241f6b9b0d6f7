"""Tests for link resolution and the link graph.

Coverage:
- noteexplorer.registry.NoteRegistry
- noteexplorer.graph.LinkGraph
"""

from __future__ import annotations

import pytest

from noteexplorer.graph import Connectivity

A_ID = "20210101000000"


def _by_stem(collection, stem):
    (note,) = [note for note in collection.notes if note.stem == stem]
    return note


# ─────────────────────────────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────────────────────────────


class TestResolve:
    """Link targets to notes."""

    def test_id_link(self, collection_from):
        collection = collection_from({f"{A_ID} A.md": "# A\n", "B.md": f"[[{A_ID}]]\n"})
        assert collection.registry.resolve(A_ID).stem == f"{A_ID} A"

    def test_unknown_id_is_not_looked_up_by_filename(self, collection_from):
        collection = collection_from({"Note.md": "# Note\n"})
        assert collection.registry.resolve("20991231235959") is None

    @pytest.mark.parametrize("target", ["Target", "target", "TARGET.md", "  target  ", "target.MD"])
    def test_filename_link_variants(self, collection_from, target):
        collection = collection_from({"Target.md": "# T\n"})
        assert collection.registry.resolve(target).stem == "Target"

    def test_unresolved_filename(self, collection_from):
        collection = collection_from({"Target.md": ""})
        assert collection.registry.resolve("Missing") is None
        assert collection.registry.resolve("") is None

    def test_note_with_id_still_resolves_by_filename(self, collection_from):
        collection = collection_from({f"{A_ID} A.md": ""})
        assert collection.registry.resolve(f"{A_ID} a").id == A_ID


class TestCollisions:
    """Notes competing for the same key."""

    def test_duplicate_id_first_wins(self, collection_from):
        collection = collection_from({"first.md": f"{A_ID}\n", "second.md": f"{A_ID}\n"})
        registry = collection.registry

        assert len(registry) == 2
        assert registry.resolve(A_ID).stem == "first"
        assert registry.resolve("second").stem == "second"

        (collision,) = registry.collisions
        assert collision.kind == "id"
        assert collision.key == A_ID
        assert collision.kept.endswith("first.md")
        assert collision.duplicate.endswith("second.md")
        assert not collision.excluded

    def test_duplicate_filename_excluded(self, collection_from):
        collection = collection_from({"x/Same.md": "# X\n", "y/same.md": "# Y\n"})
        registry = collection.registry

        assert len(registry) == 1
        assert registry.resolve("same").title == "X"
        (collision,) = registry.collisions
        assert collision.kind == "filename"
        assert collision.excluded


# ─────────────────────────────────────────────────────────────────────────────
# Graph
# ─────────────────────────────────────────────────────────────────────────────


class TestLinkGraph:
    """Edges and classification."""

    def test_self_links_ignored(self, collection_from):
        collection = collection_from({"A.md": "[[A]] and [[a.md]]\n"})
        note = _by_stem(collection, "A")
        assert collection.graph.outgoing(note) == []
        assert collection.graph.classify(note) is Connectivity.ISOLATED

    def test_duplicate_links_collapse(self, collection_from):
        collection = collection_from({"A.md": "[[B]] [[b]] [[x|B.md]]\n", "B.md": ""})
        a = _by_stem(collection, "A")
        b = _by_stem(collection, "B")
        assert collection.graph.outgoing(a) == [b]
        assert collection.graph.incoming(b) == [a]

    def test_id_and_filename_links_reach_same_note(self, collection_from):
        collection = collection_from({f"{A_ID} A.md": "", "B.md": f"[[{A_ID}]] [[{A_ID} A]]\n"})
        assert len(collection.graph.outgoing(_by_stem(collection, "B"))) == 1

    def test_classification(self, collection_from):
        collection = collection_from(
            {
                "Source.md": "[[Middle]]\n",
                "Middle.md": "[[Sink]]\n",
                "Sink.md": "# Sink\n",
                "Alone.md": "[[Missing]]\n",
            }
        )
        graph = collection.graph
        classes = {note.stem: graph.classify(note) for note in collection.notes}
        assert classes == {
            "Source": Connectivity.SOURCE,
            "Middle": Connectivity.CONNECTED,
            "Sink": Connectivity.SINK,
            "Alone": Connectivity.ISOLATED,
        }
        assert [note.stem for note in graph.sources()] == ["Source"]
        assert [note.stem for note in graph.sinks()] == ["Sink"]
        assert [note.stem for note in graph.isolated()] == ["Alone"]

    def test_incoming_is_inverse_of_outgoing(self, collection_from):
        collection = collection_from(
            {
                "a.md": "[[b]] [[c]]\n",
                "b.md": "[[a]]\n",
                "c.md": "[[c]] [[b]]\n",
                "d.md": "",
            }
        )
        graph = collection.graph
        for n in collection.notes:
            for m in collection.notes:
                assert (m in graph.incoming(n)) == (n in graph.outgoing(m))

    def test_listings_sorted_by_title(self, collection_from):
        collection = collection_from({"z.md": "# apple\n", "a.md": "# Banana\n", "m.md": ""})
        assert [note.stem for note in collection.graph.isolated()] == ["z", "a", "m"]


class TestBrokenLinks:
    """Unresolved link report."""

    def test_reasons_and_order(self, collection_from):
        collection = collection_from(
            {
                "a.md": "[[Missing]]\n[[]]\n",
                "b.md": "[[bad/target]]\n[[a]]\n[[20991231235959]]\n",
            }
        )
        broken = collection.graph.broken_links()
        assert [(item.source.stem, item.target, item.line, item.reason) for item in broken] == [
            ("a", "Missing", 1, "unknown"),
            ("a", "", 2, "empty"),
            ("b", "bad/target", 1, "illegal"),
            ("b", "20991231235959", 3, "unknown"),
        ]

    def test_links_in_code_are_never_broken(self, collection_from):
        collection = collection_from({"a.md": "```\n[[Missing]]\n```\n`[[inline]]` is body text\n"})
        assert [item.target for item in collection.graph.broken_links()] == ["inline"]
