"""
Tests for descriptor YAML — anchors, aliases, merge keys and the two readers.
"""

import copy
import datetime
import logging
import textwrap

import pytest
import yaml

from src.core.references.codec import canonicalize, structurally_equal
from src.core.serialization.yaml_document import (
    DanglingReferenceError,
    DocumentSerializationError,
    dump_document,
    load_document,
    parse_document,
    round_trip,
)


class TestDumpDocument:
    def test_anchors_and_aliases(self, descriptor):
        text = dump_document(descriptor)
        assert "gpt_a: &gpt_a" in text
        assert "model: *gpt_a" in text
        assert "- *search_docs" in text
        assert "__REF__" not in text

    def test_merge_key(self, descriptor):
        text = dump_document(descriptor)
        assert "find_customer: &find_customer" in text
        assert "<<: *find_customer" in text
        assert "__MERGE__" not in text

    def test_unreferenced_component_has_no_anchor(self, descriptor):
        text = dump_document(descriptor)
        assert "&wh" not in text
        assert "&hr" not in text

    def test_sections_in_dependency_order(self):
        doc = {
            "app": {"agents": ["__REF__analyst"]},
            "agents": {"analyst": {"model": "__REF__gpt_a"}},
            "resources": {"llms": {"gpt_a": {"name": "e"}}},
        }
        text = dump_document(doc)
        assert text.index("resources:") < text.index("agents:\n") < text.index("app:")
        assert parse_document(text)["app"]["agents"] == [{"model": {"name": "e"}}]

    def test_unknown_sections_kept_last(self):
        text = dump_document({"custom": {"x": 1}, "schemas": {"s": {}}})
        assert text.index("schemas:") < text.index("custom:")

    def test_expanded_copy_becomes_alias(self):
        doc = {
            "resources": {"llms": {"gpt_a": {"name": "e", "temperature": 0.1}}},
            "agents": {"analyst": {"model": {"temperature": 0.1, "name": "e"}}},
        }
        text = dump_document(doc)
        assert "gpt_a: &gpt_a" in text
        assert "model: *gpt_a" in text
        assert parse_document(text) == doc

    def test_does_not_modify_input(self, descriptor):
        before = copy.deepcopy(descriptor)
        dump_document(descriptor)
        assert descriptor == before

    def test_anchor_collision_warns(self, caplog):
        doc = {
            "prompts": {"shared": {"default_template": "hi"}},
            "tools": {"shared": {"name": "shared"}},
            "agents": {"a": {"prompt": "__REF__shared"}},
        }
        with caplog.at_level(logging.WARNING, logger="src.core.serialization.yaml_document"):
            text = dump_document(doc)
        assert text.count("&shared") == 1
        assert "ambiguous" in caplog.text
        assert "aliases point at prompts.shared" in caplog.text

    def test_rejects_non_mapping(self):
        with pytest.raises(DocumentSerializationError, match="Expected a descriptor mapping"):
            dump_document(["not", "a", "descriptor"])

    def test_rejects_unsupported_value(self):
        with pytest.raises(DocumentSerializationError, match="tools.t.tags"):
            dump_document({"tools": {"t": {"tags": {"a", "b"}}}})

    def test_empty_document(self):
        assert parse_document(dump_document({})) == {}

    def test_dates_round_trip(self):
        doc = {
            "prompts": {
                "p": {
                    "released": datetime.date(2024, 1, 1),
                    "reviewed": datetime.datetime(2024, 3, 5, 12, 30),
                },
            },
        }
        text = dump_document(doc)
        assert "released: 2024-01-01" in text
        assert parse_document(text) == doc

    def test_reference_to_later_entry_in_same_section(self):
        doc = {
            "prompts": {
                "a": {"default_template": "__REF__b"},
                "b": {"default_template": "hello"},
            },
        }
        text = dump_document(doc)
        assert text.index("b: &b") < text.index("default_template: *b")
        assert parse_document(text)["prompts"]["a"] == {"default_template": {"default_template": "hello"}}
        assert round_trip(doc) == canonicalize(doc)

    def test_reference_to_later_section(self):
        doc = {
            "schemas": {"s": {"owner": "__REF__analyst"}},
            "agents": {"analyst": {"name": "x"}},
        }
        text = dump_document(doc)
        assert text.index("agents:") < text.index("schemas:")
        assert round_trip(doc) == canonicalize(doc)

    def test_circular_reference_rejected(self):
        doc = {
            "prompts": {
                "a": {"next": "__REF__b"},
                "b": {"next": "__REF__a"},
            },
        }
        with pytest.raises(DocumentSerializationError, match="circular reference"):
            dump_document(doc)

    def test_key_that_is_not_an_anchor_name(self):
        doc = {
            "resources": {"llms": {"gpt.4": {"name": "e"}}},
            "agents": {"a": {"model": "__REF__gpt.4"}},
        }
        text = dump_document(doc)
        assert "gpt.4: &gpt_4" in text
        assert "model: *gpt_4" in text
        assert round_trip(doc) == doc

    def test_sanitized_anchor_names_stay_unique(self):
        doc = {
            "resources": {"llms": {"gpt.4": {"name": "e"}, "gpt_4": {"name": "f"}}},
            "agents": {"a": {"model": "__REF__gpt.4"}, "b": {"model": "__REF__gpt_4"}},
        }
        text = dump_document(doc)
        assert "gpt.4: &gpt_4_2" in text
        assert "gpt_4: &gpt_4\n" in text
        assert round_trip(doc) == canonicalize(doc)

    def test_missing_key_that_is_not_an_anchor_name(self):
        with pytest.raises(DanglingReferenceError) as excinfo:
            dump_document({"agents": {"a": {"model": "__REF__gpt.4"}}})
        assert excinfo.value.key == "gpt.4"
        assert "agents.a.model" in str(excinfo.value)

    def test_merge_of_several_components(self):
        doc = {
            "tools": {
                "base": {"type": "python"},
                "extra": {"name": "y"},
                "t": {"function": {"__MERGE__": ["__REF__base", "extra"], "args": {}}},
            },
        }
        text = dump_document(doc)
        assert "<<: [*base, *extra]" in text
        assert parse_document(text)["tools"]["t"]["function"] == {
            "type": "python",
            "name": "y",
            "args": {},
        }
        assert round_trip(doc) == canonicalize(doc)


class TestParseDocument:
    def test_plain_document_round_trips(self):
        doc = {
            "variables": {
                "flag": "true",
                "count": "123",
                "empty": "",
                "none": None,
                "real": 1.5,
                "on": True,
                "glob": "*.csv",
                "multi": "first line\nsecond line",
                "unicode": "café",
            },
            "tools": {"t": {"list": [1, "two", [3]], "nested": {"deep": {"x": -4}}}},
        }
        assert parse_document(dump_document(doc)) == doc

    def test_undefined_alias_fails(self):
        text = dump_document({"agents": {"a": {"tools": ["__REF__gone"]}}})
        with pytest.raises(yaml.YAMLError, match="undefined alias"):
            parse_document(text)

    def test_expands_merge(self, descriptor_yaml):
        data = parse_document(descriptor_yaml)
        assert data["tools"]["lookup"]["function"] == {
            "schema": {"catalog_name": "retail", "schema_name": "sales"},
            "name": "find_customer",
            "type": "unity_catalog",
        }

    def test_empty_text(self):
        assert parse_document("") == {}


class TestLoadDocument:
    def test_keeps_aliases_as_markers(self, descriptor_yaml):
        data = load_document(descriptor_yaml)
        assert data["agents"]["analyst"]["model"] == "*gpt_a"
        assert data["agents"]["analyst"]["tools"] == ["*lookup"]
        assert data["resources"]["functions"]["find_customer"]["schema"] == "*sales"

    def test_keeps_merge_as_marker(self, descriptor_yaml):
        data = load_document(descriptor_yaml)
        assert data["tools"]["lookup"]["function"] == {
            "__MERGE__": "find_customer",
            "type": "unity_catalog",
        }

    def test_undefined_alias_fails(self):
        with pytest.raises(yaml.YAMLError, match="undefined alias"):
            load_document("agents:\n  a:\n    model: *nope\n")

    def test_load_then_dump_is_stable(self, descriptor_yaml):
        once = dump_document(load_document(descriptor_yaml))
        twice = dump_document(load_document(once))
        assert once == twice

    def test_merge_of_mapping_literal(self):
        text = textwrap.dedent("""\
            tools:
              t:
                function:
                  <<: {type: python}
                  name: x
        """)
        assert load_document(text)["tools"]["t"]["function"] == {"type": "python", "name": "x"}

    def test_alias_names_the_component_key(self):
        text = textwrap.dedent("""\
            resources:
              llms:
                default_llm: &llm
                  name: e
            agents:
              a:
                model: *llm
        """)
        data = load_document(text)
        assert data["agents"]["a"]["model"] == "*default_llm"
        assert parse_document(dump_document(data)) == parse_document(text)

    def test_anchor_outside_a_component_expands(self):
        text = textwrap.dedent("""\
            variables:
              common:
                tags: &tags [a, b]
            agents:
              a:
                tags: *tags
        """)
        assert load_document(text)["agents"]["a"]["tags"] == ["a", "b"]

    def test_merge_list_keeps_markers(self):
        text = textwrap.dedent("""\
            tools:
              base: &base {type: python}
              extra: &extra {name: y}
              t:
                function:
                  <<: [*base, *extra]
                  args: 1
        """)
        assert load_document(text)["tools"]["t"]["function"] == {
            "__MERGE__": ["base", "extra"],
            "args": 1,
        }

    def test_merge_list_with_literal_expands(self):
        text = textwrap.dedent("""\
            tools:
              base: &base {type: python}
              t:
                function:
                  <<: [*base, {name: y}]
                  args: 1
        """)
        assert load_document(text)["tools"]["t"]["function"] == {
            "type": "python",
            "name": "y",
            "args": 1,
        }


class TestRoundTrip:
    def test_markers_come_back_as_aliases(self, descriptor):
        assert round_trip(descriptor) == canonicalize(descriptor)

    def test_structurally_stable_without_deletion(self, descriptor):
        clone = copy.deepcopy(descriptor)
        assert structurally_equal(round_trip(clone), canonicalize(descriptor))

    def test_expanded_view_resolves_every_alias(self, descriptor):
        data = parse_document(dump_document(descriptor))
        assert data["agents"]["analyst"]["model"] == {"name": "shared-endpoint", "temperature": 0.1}
        assert data["tools"]["lookup"]["function"]["name"] == "find_customer"
