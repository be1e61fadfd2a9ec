"""Tests for specview.parser.resolver -- multi-file graph resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from specview.cache import SchemaCache
from specview.exceptions import ConfigError
from specview.parser import resolver as resolver_module
from specview.parser.refs import hash_file_name
from specview.parser.resolver import SpecResolver

WriteSpec = Callable[[str, str], Path]


@pytest.fixture
def load_calls(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Record the basename of every file the resolver loads."""
    calls: list[str] = []
    real_load = resolver_module.load_document

    def _tracking(path: str, **kwargs):  # noqa: ANN202
        calls.append(os.path.basename(path))
        return real_load(path, **kwargs)

    monkeypatch.setattr("specview.parser.resolver.load_document", _tracking)
    return calls


def _document(cache: SchemaCache, path: Path) -> dict:
    entry = cache.get(hash_file_name(str(path)))
    assert entry is not None, f"{path} was not cached"
    return entry.document


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------


class TestSingleDocument:
    def test_returns_handle_with_hash_and_basename(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        entry = write_spec("api/openapi.yaml", "openapi: 3.0.3\npaths: {}\n")
        handle = SpecResolver(str(entry), cache).parse()
        assert handle.hash == hash_file_name(str(entry))
        assert handle.basename == "openapi.yaml"
        assert handle.path == f"/{handle.hash}/openapi.yaml"

    def test_expands_internal_refs(self, write_spec: WriteSpec, cache: SchemaCache) -> None:
        entry = write_spec("openapi.yaml", """
            openapi: 3.0.3
            paths:
              /pets:
                get:
                  responses:
                    "200":
                      content:
                        application/json:
                          schema:
                            $ref: "#/components/schemas/Pet"
            components:
              schemas:
                Pet:
                  type: object
                  properties:
                    name: {type: string}
        """)

        document = SpecResolver(str(entry), cache).resolve()

        assert document is not None
        schema = document["paths"]["/pets"]["get"]["responses"]["200"]["content"][
            "application/json"
        ]["schema"]
        assert schema == {"type": "object", "properties": {"name": {"type": "string"}}}

    def test_self_file_reference_becomes_internal(
        self, write_spec: WriteSpec, cache: SchemaCache, load_calls: list[str]
    ) -> None:
        entry = write_spec("a.yaml", """
            pet:
              $ref: ./a.yaml#/components/schemas/Pet
            components:
              schemas:
                Pet: {type: object}
        """)
        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        assert document["pet"] == {"type": "object"}
        assert load_calls == ["a.yaml"]

    def test_stored_entry_is_fresh_and_records_source(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        entry = write_spec("a.yaml", "openapi: 3.0.3\n")
        handle = SpecResolver(str(entry), cache).parse()
        stored = cache.get(handle.hash)
        assert stored is not None
        assert stored.source_path == str(entry)
        assert stored.must_revalidate is False
        assert stored.source_mtime == os.path.getmtime(entry)


# ---------------------------------------------------------------------------
# External substitution
# ---------------------------------------------------------------------------


class TestExternalSubstitution:
    def test_substitutes_fields_of_target(self, write_spec: WriteSpec, cache: SchemaCache) -> None:
        write_spec("file.yaml", """
            components:
              schemas:
                User:
                  type: object
                  properties:
                    id: {type: integer}
        """)
        entry = write_spec("openapi.yaml", """
            openapi: 3.0.3
            user:
              $ref: ./file.yaml#/components/schemas/User
        """)

        document = SpecResolver(str(entry), cache).resolve()

        assert document is not None
        assert document["user"] == {"type": "object", "properties": {"id": {"type": "integer"}}}

    def test_sibling_keys_are_kept(self, write_spec: WriteSpec, cache: SchemaCache) -> None:
        write_spec("shared.yaml", "Error: {type: object}\n")
        entry = write_spec("openapi.yaml", """
            error:
              description: Something failed
              $ref: ./shared.yaml#/Error
        """)
        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        assert document["error"] == {"description": "Something failed", "type": "object"}

    def test_rewrite_rules_redirect_paths(self, write_spec: WriteSpec, cache: SchemaCache) -> None:
        write_spec("vendor/shared/errors.yaml", "Error: {type: object}\n")
        entry = write_spec("api/openapi.yaml", """
            error:
              $ref: "@shared/errors.yaml#/Error"
        """)

        document = SpecResolver(
            str(entry), cache, {"^@shared/": "../vendor/shared/"}
        ).resolve()

        assert document is not None
        assert document["error"] == {"type": "object"}

    def test_internal_refs_of_target_are_expanded(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        write_spec("shared.yaml", """
            components:
              schemas:
                Pet:
                  type: object
                  properties:
                    owner:
                      $ref: "#/components/schemas/Owner"
                Owner: {type: string}
        """)
        entry = write_spec("openapi.yaml", """
            pet:
              $ref: ./shared.yaml#/components/schemas/Pet
        """)
        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        assert document["pet"]["properties"]["owner"] == {"type": "string"}

    def test_internal_ref_to_node_with_external_ref(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        write_spec("shared.yaml", "Error: {type: object}\n")
        entry = write_spec("openapi.yaml", """
            responses:
              default:
                $ref: "#/components/responses/Problem"
            components:
              responses:
                Problem:
                  schema:
                    $ref: ./shared.yaml#/Error
        """)
        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        assert document["responses"]["default"] == {"schema": {"type": "object"}}
        assert document["components"]["responses"]["Problem"] == {"schema": {"type": "object"}}

    def test_missing_fragment_leaves_marker(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("shared.yaml", "Error: {type: object}\n")
        entry = write_spec("openapi.yaml", "thing:\n  $ref: ./shared.yaml#/Missing\n")
        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        assert document["thing"] == {"$ref": f"{tmp_path / 'shared.yaml'}#/Missing"}

    def test_whole_document_reference(self, write_spec: WriteSpec, cache: SchemaCache) -> None:
        write_spec("pet.yaml", "type: object\nrequired: [name]\n")
        entry = write_spec("openapi.yaml", "pet:\n  $ref: ./pet.yaml#/\n")
        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        assert document["pet"] == {"type": "object", "required": ["name"]}

    def test_substituted_subtree_is_not_shared_with_target(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("shared.yaml", "Error:\n  properties:\n    code: {type: integer}\n")
        entry = write_spec("openapi.yaml", "error:\n  $ref: ./shared.yaml#/Error\n")

        document = SpecResolver(str(entry), cache).resolve()
        assert document is not None
        shared = _document(cache, tmp_path / "shared.yaml")
        assert document["error"]["properties"] is not shared["Error"]["properties"]


# ---------------------------------------------------------------------------
# Graph shapes
# ---------------------------------------------------------------------------


class TestGraphTraversal:
    def test_cycle_terminates_and_parses_each_file_once(
        self,
        write_spec: WriteSpec,
        cache: SchemaCache,
        load_calls: list[str],
        tmp_path: Path,
    ) -> None:
        a = write_spec("A.yaml", """
            refs:
              $ref: ./B.yaml#/X
            Y: {type: string}
        """)
        b = write_spec("B.yaml", """
            X:
              type: object
              properties:
                back:
                  $ref: ./A.yaml#/Y
            refs:
              $ref: ./A.yaml#/Y
        """)

        SpecResolver(str(a), cache).parse()

        assert load_calls == ["A.yaml", "B.yaml"]
        # B is visited second: its link back to A is left as a marker.
        b_document = _document(cache, b)
        assert b_document["refs"] == {"$ref": f"{a}#/Y"}
        # A is finalized after B and receives B's content.
        a_document = _document(cache, a)
        assert a_document["refs"]["type"] == "object"
        assert a_document["refs"]["properties"]["back"] == {"$ref": f"{a}#/Y"}

    def test_diamond_parses_shared_dependency_once(
        self, write_spec: WriteSpec, cache: SchemaCache, load_calls: list[str]
    ) -> None:
        write_spec("d.yaml", "Leaf: {type: string}\n")
        write_spec("b.yaml", "B:\n  leaf:\n    $ref: ./d.yaml#/Leaf\n")
        write_spec("c.yaml", "C:\n  leaf:\n    $ref: ./d.yaml#/Leaf\n")
        a = write_spec("a.yaml", """
            b:
              $ref: ./b.yaml#/B
            c:
              $ref: ./c.yaml#/C
        """)

        document = SpecResolver(str(a), cache).resolve()

        assert load_calls == ["a.yaml", "b.yaml", "d.yaml", "c.yaml"]
        assert document == {
            "b": {"leaf": {"type": "string"}},
            "c": {"leaf": {"type": "string"}},
        }

    def test_records_dependencies(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("b.yaml", "B: {}\n")
        write_spec("c.yaml", "C: {}\n")
        a = write_spec("a.yaml", "x:\n  $ref: ./b.yaml#/B\ny:\n  $ref: ./c.yaml#/C\n")

        SpecResolver(str(a), cache).parse()

        entry = cache.get(hash_file_name(str(a)))
        assert entry is not None
        assert entry.dependencies == (
            hash_file_name(str(tmp_path / "b.yaml")),
            hash_file_name(str(tmp_path / "c.yaml")),
        )

    def test_fresh_dependency_is_not_reparsed(
        self, write_spec: WriteSpec, cache: SchemaCache, load_calls: list[str]
    ) -> None:
        shared = write_spec("shared.yaml", "Error: {type: object}\n")
        first = write_spec("first.yaml", "e:\n  $ref: ./shared.yaml#/Error\n")
        second = write_spec("second.yaml", "e:\n  $ref: ./shared.yaml#/Error\n")

        SpecResolver(str(first), cache).parse()
        document = SpecResolver(str(second), cache).resolve()

        assert load_calls == ["first.yaml", "shared.yaml", "second.yaml"]
        assert document == {"e": {"type": "object"}}
        assert cache.has(hash_file_name(str(shared)))


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


class TestFailureIsolation:
    def test_broken_dependency_leaves_marker(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("broken.yaml", "key: [unclosed\n  other: {")
        write_spec("good.yaml", "Good: {type: boolean}\n")
        a = write_spec("a.yaml", """
            bad:
              $ref: ./broken.yaml#/Thing
            good:
              $ref: ./good.yaml#/Good
        """)

        document = SpecResolver(str(a), cache).resolve()

        assert document is not None
        assert document["bad"] == {"$ref": f"{tmp_path / 'broken.yaml'}#/Thing"}
        assert document["good"] == {"type": "boolean"}
        assert not cache.has(hash_file_name(str(tmp_path / "broken.yaml")))

    def test_missing_dependency_leaves_marker(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        a = write_spec("a.yaml", "x:\n  $ref: ./nowhere.yaml#/X\n")
        document = SpecResolver(str(a), cache).resolve()
        assert document == {"x": {"$ref": f"{tmp_path / 'nowhere.yaml'}#/X"}}

    def test_dependency_with_bad_internal_ref_is_not_cached(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("b.yaml", "B:\n  $ref: '#/does/not/exist'\n")
        a = write_spec("a.yaml", "x:\n  $ref: ./b.yaml#/B\n")

        document = SpecResolver(str(a), cache).resolve()

        assert document == {"x": {"$ref": f"{tmp_path / 'b.yaml'}#/B"}}
        assert not cache.has(hash_file_name(str(tmp_path / "b.yaml")))

    def test_entry_parse_failure_still_returns_handle(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        a = write_spec("a.json", "{not json")
        resolver = SpecResolver(str(a), cache)
        handle = resolver.parse()
        assert handle.basename == "a.json"
        assert not cache.has(handle.hash)
        assert resolver.resolve() is None

    def test_unexpected_error_does_not_escape(
        self, write_spec: WriteSpec, cache: SchemaCache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        a = write_spec("a.yaml", "x: 1\n")

        def _boom(document):  # noqa: ANN001, ANN202
            raise RuntimeError("boom")

        monkeypatch.setattr("specview.parser.resolver.dereference_internal", _boom)
        handle = SpecResolver(str(a), cache).parse()
        assert handle.basename == "a.yaml"
        assert not cache.has(handle.hash)

    def test_recursive_alias_dependency_is_isolated(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("loop.yaml", "Node: &n\n  child: *n\n")
        write_spec("good.yaml", "Good: {type: boolean}\n")
        a = write_spec("a.yaml", """
            good:
              $ref: ./good.yaml#/Good
            loop:
              $ref: ./loop.yaml#/Node
        """)

        handle = SpecResolver(str(a), cache).parse()

        document = _document(cache, a)
        assert handle.hash == hash_file_name(str(a))
        assert document["good"] == {"type": "boolean"}
        assert document["loop"] == {"$ref": f"{tmp_path / 'loop.yaml'}#/Node"}
        assert cache.has(hash_file_name(str(tmp_path / "good.yaml")))
        assert not cache.has(hash_file_name(str(tmp_path / "loop.yaml")))

    def test_integer_keyed_dependency_is_cached(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        codes = write_spec("codes.yaml", "200:\n  description: OK\n")
        write_spec("good.yaml", "Good: {type: boolean}\n")
        a = write_spec("a.yaml", """
            ok:
              $ref: ./codes.yaml#/200
            good:
              $ref: ./good.yaml#/Good
        """)

        SpecResolver(str(a), cache).parse()

        document = _document(cache, a)
        assert document["ok"] == {"description": "OK"}
        assert document["good"] == {"type": "boolean"}
        assert _document(cache, codes) == {200: {"description": "OK"}}

    def test_entry_with_non_string_keys_is_cached(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        a = write_spec("workflow.yaml", """
            on: push
            responses:
              404: {description: Not Found}
        """)

        document = SpecResolver(str(a), cache).resolve()

        assert document == {True: "push", "responses": {404: {"description": "Not Found"}}}

    def test_dependency_failing_to_store_does_not_stop_entry(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        write_spec("b.yaml", "B: {type: string}\n")
        a = write_spec("a.yaml", "x:\n  $ref: ./b.yaml#/B\n")
        b_hash = hash_file_name(str(tmp_path / "b.yaml"))
        real_set = cache.set

        def _failing_set(file_hash, entry):  # noqa: ANN001, ANN202
            if file_hash == b_hash:
                raise ValueError("unstorable document")
            return real_set(file_hash, entry)

        monkeypatch.setattr(cache, "set", _failing_set)

        document = SpecResolver(str(a), cache).resolve()

        assert document == {"x": {"$ref": f"{tmp_path / 'b.yaml'}#/B"}}
        assert not cache.has(b_hash)

    def test_require_spec_header_rejects_fragments(
        self, write_spec: WriteSpec, cache: SchemaCache, tmp_path: Path
    ) -> None:
        write_spec("fragment.yaml", "Error: {type: object}\n")
        a = write_spec("a.yaml", "openapi: 3.0.3\ne:\n  $ref: ./fragment.yaml#/Error\n")

        document = SpecResolver(str(a), cache, require_spec_header=True).resolve()

        assert document is not None
        assert document["e"] == {"$ref": f"{tmp_path / 'fragment.yaml'}#/Error"}

    def test_invalid_rewrite_rule_raises_at_construction(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        a = write_spec("a.yaml", "x: 1\n")
        with pytest.raises(ConfigError):
            SpecResolver(str(a), cache, {"([": "x"})


# ---------------------------------------------------------------------------
# Freshness
# ---------------------------------------------------------------------------


class TestFreshness:
    def test_parse_twice_is_idempotent(
        self, write_spec: WriteSpec, cache: SchemaCache, load_calls: list[str]
    ) -> None:
        a = write_spec("a.yaml", "x: 1\n")
        resolver = SpecResolver(str(a), cache)

        first = resolver.parse()
        second = resolver.parse()

        assert first == second
        assert load_calls == ["a.yaml"]

    def test_invalidated_entry_is_reresolved(
        self, write_spec: WriteSpec, cache: SchemaCache, load_calls: list[str]
    ) -> None:
        a = write_spec("a.yaml", "x: 1\n")
        resolver = SpecResolver(str(a), cache)
        handle = resolver.parse()

        a.write_text("x: 2\n", encoding="utf-8")
        cache.set_validation_state(handle.hash, True)
        assert cache.must_revalidate(handle.hash)

        assert resolver.resolve() == {"x": 2}
        assert load_calls == ["a.yaml", "a.yaml"]
        assert not cache.must_revalidate(handle.hash)

    def test_failed_reresolution_keeps_last_good_document(
        self, write_spec: WriteSpec, cache: SchemaCache
    ) -> None:
        a = write_spec("a.yaml", "x: 1\n")
        resolver = SpecResolver(str(a), cache)
        handle = resolver.parse()

        a.write_text("x: [unclosed\n  y: {", encoding="utf-8")
        cache.set_validation_state(handle.hash, True)
        resolver.parse()

        entry = cache.get(handle.hash)
        assert entry is not None
        assert entry.document == {"x": 1}
        assert entry.must_revalidate is True
