"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def descriptor() -> dict:
    """A descriptor using wrapped markers for every reference.

    Covers one component of most categories and at least one edge of
    every mode of the reference-field table.
    """
    return {
        "variables": {
            "client_secret": {"env": "CLIENT_SECRET"},
        },
        "service_principals": {
            "app_sp": {"client_id": "abc-123", "client_secret": "__REF__client_secret"},
        },
        "schemas": {
            "sales": {"catalog_name": "retail", "schema_name": "sales"},
            "hr": {"catalog_name": "retail", "schema_name": "hr"},
        },
        "resources": {
            "llms": {
                "gpt_a": {"name": "shared-endpoint", "temperature": 0.1},
                "gpt_b": {"name": "shared-endpoint", "temperature": 0.7},
                "embedder": {"name": "gte-large"},
            },
            "tables": {
                "orders": {"schema": "__REF__sales", "name": "orders"},
            },
            "functions": {
                "find_customer": {"schema": "__REF__sales", "name": "find_customer"},
            },
            "warehouses": {
                "wh": {"warehouse_id": "w-001"},
            },
            "databases": {
                "lakebase": {"instance_name": "lb-prod", "client_id": "__REF__app_sp"},
            },
            "genie_rooms": {
                "sales_room": {"space_id": "01ef"},
            },
            "vector_stores": {
                "docs_index": {
                    "source_table": {"schema": "__REF__sales", "name": "docs"},
                    "embedding_model": "__REF__embedder",
                },
            },
        },
        "retrievers": {
            "docs_retriever": {"vector_store": "__REF__docs_index", "num_results": 5},
        },
        "prompts": {
            "analyst_prompt": {"name": "analyst", "default_template": "You are a sales analyst."},
        },
        "tools": {
            "lookup": {
                "name": "lookup",
                "function": {"type": "unity_catalog", "__MERGE__": "find_customer"},
            },
            "search_docs": {
                "name": "search_docs",
                "function": {
                    "type": "factory",
                    "name": "tools.create_vector_search_tool",
                    "args": {"retriever": "__REF__docs_retriever"},
                },
            },
            "ask_genie": {
                "name": "ask_genie",
                "function": {
                    "type": "factory",
                    "name": "tools.create_genie_tool",
                    "args": {"genie_room": "__REF__sales_room"},
                },
            },
        },
        "guardrails": {
            "tone": {"model": "__REF__gpt_b", "prompt": "Stay polite."},
        },
        "middleware": {
            "limit_calls": {
                "name": "middleware.create_tool_call_limit_middleware",
                "args": {"tool": "__REF__search_docs", "run_limit": 3},
            },
        },
        "memory": {
            "checkpointer": {"name": "default", "database": "__REF__lakebase"},
        },
        "agents": {
            "analyst": {
                "name": "analyst",
                "model": "__REF__gpt_a",
                "tools": ["__REF__lookup", "__REF__search_docs", "__REF__ask_genie"],
                "guardrails": ["__REF__tone"],
                "middleware": ["__REF__limit_calls"],
                "prompt": "__REF__analyst_prompt",
            },
        },
        "app": {
            "name": "sales_app",
            "registered_model": {"schema": "__REF__sales", "name": "sales_agent"},
            "agents": ["__REF__analyst"],
            "orchestration": {"supervisor": {"model": "__REF__gpt_a"}},
            "environment_vars": {"SECRET": "__REF__client_secret"},
        },
    }


@pytest.fixture
def descriptor_yaml() -> str:
    """A hand-written descriptor using anchors, aliases and a merge key."""
    return textwrap.dedent("""\
        schemas:
          sales: &sales
            catalog_name: retail
            schema_name: sales
        resources:
          llms:
            gpt_a: &gpt_a
              name: shared-endpoint
              temperature: 0.1
            gpt_b: &gpt_b
              name: shared-endpoint
              temperature: 0.7
          functions:
            find_customer: &find_customer
              schema: *sales
              name: find_customer
        tools:
          lookup: &lookup
            name: lookup
            function:
              <<: *find_customer
              type: unity_catalog
          unused:
            name: unused
            function:
              type: python
              name: tools.noop
        agents:
          analyst: &analyst
            name: analyst
            model: *gpt_a
            tools:
              - *lookup
        app:
          name: sales_app
          agents:
            - *analyst
    """)


@pytest.fixture
def descriptor_file(tmp_path: Path, descriptor_yaml: str) -> Path:
    """Write ``descriptor_yaml`` to agent_config.yaml in a temp directory."""
    path = tmp_path / "agent_config.yaml"
    path.write_text(descriptor_yaml)
    return path
