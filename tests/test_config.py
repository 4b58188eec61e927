"""
Tests for settings resolution and the resource loader.
"""

import os

import pytest

from vapi_gitops.core.config.loader import (
    DEFAULT_BASE_URL,
    ConfigError,
    load_settings,
    parse_env_file,
    validate_environment,
)
from vapi_gitops.core.config.resource_loader import (
    attach_system_prompt,
    load_all_resources,
    load_resource_file,
    load_resources,
    parse_markdown,
)
from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceType


# ── Settings ────────────────────────────────────────────────────────


class TestEnvironment:
    @pytest.mark.parametrize("env", ["dev", "staging", "prod"])
    def test_valid(self, env):
        assert validate_environment(env) == env

    def test_missing(self):
        with pytest.raises(ConfigError, match="required"):
            validate_environment(None)

    def test_invalid(self):
        with pytest.raises(ConfigError, match="Invalid environment: qa"):
            validate_environment("qa")


class TestParseEnvFile:
    def test_formats(self, tmp_path):
        path = tmp_path / ".env.dev"
        path.write_text(
            "# comment\n"
            "\n"
            "VAPI_TOKEN=plain\n"
            'DOUBLE="quoted value"\n'
            "SINGLE='single'\n"
            "export EXPORTED=yes\n"
            "not a pair\n"
            "EMPTY=\n"
        )
        assert parse_env_file(path) == {
            "VAPI_TOKEN": "plain",
            "DOUBLE": "quoted value",
            "SINGLE": "single",
            "EXPORTED": "yes",
            "EMPTY": "",
        }

    def test_missing_file(self, tmp_path):
        assert parse_env_file(tmp_path / ".env.nope") == {}


class TestLoadSettings:
    """Tests for load_settings."""

    def test_token_from_env_file(self, project):
        (project / ".env.dev").write_text("VAPI_TOKEN=from-file\n")

        settings = load_settings("dev", project)

        assert settings.token == "from-file"
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.env_files_loaded == [".env.dev"]
        assert settings.resources_dir == project.resolve() / "resources"
        assert settings.state_path.name == ".vapi-state.dev.json"
        assert settings.audit_path.name == ".vapi-audit.dev.ndjson"

    def test_process_env_wins(self, project, monkeypatch):
        monkeypatch.setenv("VAPI_TOKEN", "from-process")
        (project / ".env.dev").write_text("VAPI_TOKEN=from-file\n")

        assert load_settings("dev", project).token == "from-process"

    def test_first_file_wins(self, project):
        (project / ".env.dev").write_text("VAPI_TOKEN=env-file\n")
        (project / ".env.dev.local").write_text("VAPI_TOKEN=env-local\nVAPI_BASE_URL=http://localhost:9\n")
        (project / ".env.local").write_text("VAPI_TOKEN=local\n")

        settings = load_settings("dev", project)

        assert settings.token == "env-file"
        assert settings.base_url == "http://localhost:9"
        assert settings.env_files_loaded == [".env.dev", ".env.dev.local", ".env.local"]

    def test_other_environment_files_ignored(self, project):
        (project / ".env.prod").write_text("VAPI_TOKEN=prod-token\n")
        with pytest.raises(ConfigError, match="VAPI_TOKEN"):
            load_settings("dev", project)

    def test_token_optional(self, project):
        settings = load_settings("staging", project, require_token=False)
        assert settings.token == ""
        assert "VAPI_TOKEN" not in os.environ

    def test_invalid_environment_checked_first(self, project):
        with pytest.raises(ConfigError, match="Invalid environment"):
            load_settings("qa", project, require_token=False)


# ── Resource files ──────────────────────────────────────────────────


class TestMarkdown:
    def test_frontmatter_and_body(self):
        data, body = parse_markdown("---\nname: Booking\n---\n\nYou book appointments.\n")
        assert data == {"name": "Booking"}
        assert body == "You book appointments."

    def test_no_frontmatter(self):
        assert parse_markdown("just a prompt\n") == ({}, "just a prompt")

    def test_frontmatter_not_mapping(self):
        with pytest.raises(ValueError):
            parse_markdown("---\n- a\n- b\n---\nbody")

    def test_attach_system_prompt_replaces_existing(self):
        data = {
            "model": {
                "provider": "openai",
                "messages": [
                    {"role": "system", "content": "old"},
                    {"role": "assistant", "content": "hi"},
                ],
            }
        }
        result = attach_system_prompt(data, "new")
        assert result["model"]["provider"] == "openai"
        assert result["model"]["messages"] == [
            {"role": "system", "content": "new"},
            {"role": "assistant", "content": "hi"},
        ]

    def test_attach_empty_prompt_is_noop(self):
        assert attach_system_prompt({"name": "x"}, "") == {"name": "x"}


class TestLoadResources:
    def test_yaml_and_markdown(self, project, write_resource):
        write_resource("tools", "transfer-call.yml", "type: transferCall\n")
        write_resource(
            "assistants",
            "booking.md",
            """\
            ---
            name: Booking
            model:
              provider: openai
            ---
            You book appointments.
            """,
        )

        tools = load_resources(project / "resources", ResourceType.TOOLS)
        assistants = load_resources(project / "resources", ResourceType.ASSISTANTS)

        assert tools[0].resource_id == "transfer-call"
        assert tools[0].payload == {"type": "transferCall"}
        assert assistants[0].payload["model"]["messages"] == [
            {"role": "system", "content": "You book appointments."}
        ]

    def test_nested_ids_sorted(self, project, write_resource):
        write_resource("assistants", "zeta.yml", "name: z\n")
        write_resource("assistants", "healthcare/booking.yaml", "name: b\n")
        write_resource("assistants", "notes.txt", "ignored")

        records = load_resources(project / "resources", ResourceType.ASSISTANTS)

        assert [r.resource_id for r in records] == ["healthcare/booking", "zeta"]

    def test_simulation_folders(self, project, write_resource):
        write_resource("simulations/personalities", "calm.yml", "name: calm\n")
        write_resource("simulations/suites", "smoke.yml", "name: smoke\n")

        loaded = load_all_resources(project / "resources")

        assert list(loaded) == list(APPLY_ORDER)
        assert [r.resource_id for r in loaded[ResourceType.PERSONALITIES]] == ["calm"]
        assert [r.resource_id for r in loaded[ResourceType.SIMULATION_SUITES]] == ["smoke"]
        assert loaded[ResourceType.SIMULATIONS] == []

    def test_duplicate_id(self, project, write_resource):
        write_resource("tools", "t1.yml", "a: 1\n")
        write_resource("tools", "t1.yaml", "a: 2\n")
        with pytest.raises(ConfigError, match="Duplicate tool id 't1'"):
            load_resources(project / "resources", ResourceType.TOOLS)

    def test_empty_file(self, project, write_resource):
        path = write_resource("tools", "empty.yml", "")
        assert load_resource_file(path) == {}

    def test_non_mapping(self, project, write_resource):
        path = write_resource("tools", "list.yml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_resource_file(path)

    def test_invalid_yaml(self, project, write_resource):
        path = write_resource("tools", "bad.yml", "key: [unclosed\n")
        with pytest.raises(ConfigError, match="Cannot load resource file"):
            load_resource_file(path)

    def test_missing_type_dir(self, project):
        assert load_resources(project / "resources", ResourceType.SQUADS) == []
