"""Tests for declaration file loading."""

from pathlib import Path

import pytest

from boxprovider.models import CloudIPDeclaration
from boxprovider.spec_loader import (
    MAX_DECLARATION_FILE_SIZE_BYTES,
    SpecLoadError,
    load_declarations,
    parse_declarations,
)

VALID_FILE = """\
resources:
  - kind: cloud_ip
    name: web
    spec:
      name: web-ip
      target: srv-abc12
      portTranslators:
        - incoming: 443
          outgoing: 8443
          protocol: tcp
  - kind: api_client
    name: deploy
    spec:
      name: deploy
      permissionsGroup: storage
"""


class TestLoadDeclarations:
    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "resources.yaml"
        path.write_text(VALID_FILE)

        declarations = load_declarations(path)

        assert [(d.kind, d.name) for d in declarations] == [
            ("cloud_ip", "web"),
            ("api_client", "deploy"),
        ]
        assert isinstance(declarations[0].spec, CloudIPDeclaration)
        assert declarations[0].to_config()["target"] == "srv-abc12"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="not found"):
            load_declarations(tmp_path / "missing.yaml")

    def test_oversized_file(self, tmp_path: Path) -> None:
        path = tmp_path / "huge.yaml"
        path.write_text("#" * (MAX_DECLARATION_FILE_SIZE_BYTES + 1))

        with pytest.raises(SpecLoadError, match="maximum size"):
            load_declarations(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("resources: [unclosed")

        with pytest.raises(SpecLoadError, match="Invalid YAML"):
            load_declarations(path)

    def test_unsafe_yaml_tags_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "unsafe.yaml"
        path.write_text("resources: !!python/object/apply:os.system ['true']\n")

        with pytest.raises(SpecLoadError, match="Invalid YAML"):
            load_declarations(path)


class TestParseDeclarations:
    def test_top_level_must_be_mapping(self) -> None:
        with pytest.raises(SpecLoadError, match="YAML mapping"):
            parse_declarations(["not", "a", "mapping"])

    def test_resources_must_be_list(self) -> None:
        with pytest.raises(SpecLoadError, match="'resources' must be a list"):
            parse_declarations({"resources": {"kind": "cloud_ip"}})

    def test_all_invalid_entries_reported(self) -> None:
        raw = {
            "resources": [
                {"kind": "cloud_ip", "name": "web", "spec": {"mode": "bridge"}},
                {"kind": "server", "name": "app"},
                {"kind": "cloud_ip", "name": "web"},
                {"kind": "api_client"},
                "junk",
            ]
        }

        with pytest.raises(SpecLoadError) as exc_info:
            parse_declarations(raw, "resources.yaml")

        message = str(exc_info.value)
        assert message.startswith("Validation failed for resources.yaml:")
        assert "resources.0.spec.mode" in message
        assert "resources.1.kind: Unknown resource kind 'server'" in message
        assert "resources.2: duplicate declaration cloud_ip.web" in message
        assert "resources.3: 'kind' and 'name' are required strings" in message
        assert "resources.4: must be a mapping" in message

    def test_spec_may_be_omitted(self) -> None:
        declarations = parse_declarations({"resources": [{"kind": "cloud_ip", "name": "spare"}]})
        assert declarations[0].to_config() == {}
