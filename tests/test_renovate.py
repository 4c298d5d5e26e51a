"""Tests for reading repositories' Renovate configuration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from nugsentinel.engines.reference_scanner import (
    LocalWorkspace,
    RenovateOverrides,
    filter_renovate_exclusions,
    merge_reviewers,
    parse_renovate_config,
    read_renovate_config,
)
from nugsentinel.models import PackageReference

RENOVATE = {
    "extends": ["config:recommended"],
    "ignoreDeps": ["Newtonsoft.Json"],
    "reviewers": ["alice", "Bob"],
    "packageRules": [
        {"matchPackageNames": ["Serilog", "Serilog.Sinks.Console"], "enabled": False},
        {"matchPackageNames": ["Dapper"], "reviewers": ["carol"]},
        {"matchPackagePatterns": ["^Microsoft\\."], "enabled": False},
    ],
}


def _ref(name: str) -> PackageReference:
    return PackageReference(
        name=name,
        declared_version="1.0.0",
        project_path="/App.csproj",
        repository_name="shop",
        project_name="App",
    )


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


# ── parsing ──────────────────────────────────────────────────────────────


class TestParseRenovateConfig:
    def test_ignored_and_disabled(self):
        overrides = parse_renovate_config(json.dumps(RENOVATE))
        assert overrides.ignored_packages == {"newtonsoft.json"}
        assert overrides.disabled_packages == {"serilog", "serilog.sinks.console"}

    def test_exclusion_is_case_insensitive(self):
        overrides = parse_renovate_config(json.dumps(RENOVATE))
        assert overrides.excludes("NEWTONSOFT.JSON")
        assert overrides.excludes("serilog")
        assert not overrides.excludes("Dapper")

    def test_pattern_rules_are_not_honoured(self):
        overrides = parse_renovate_config(json.dumps(RENOVATE))
        assert not overrides.excludes("Microsoft.Extensions.Logging")

    def test_reviewers(self):
        overrides = parse_renovate_config(json.dumps(RENOVATE))
        assert overrides.reviewers == ["alice", "Bob"]
        assert overrides.package_reviewers == {"dapper": ["carol"]}
        assert overrides.reviewers_for(["Dapper", "Polly"]) == ["alice", "Bob", "carol"]
        assert overrides.reviewers_for([]) == ["alice", "Bob"]

    @pytest.mark.parametrize("text", ["{not json", "[]", '{"ignoreDeps": "Serilog"}'])
    def test_invalid_content_overrides_nothing(self, text):
        assert parse_renovate_config(text, "shop") == RenovateOverrides()

    def test_empty_object(self):
        assert parse_renovate_config("{}") == RenovateOverrides()


class TestMergeReviewers:
    def test_case_insensitive_duplicates_dropped(self):
        assert merge_reviewers(["alice", " Bob "], ["bob", "carol", ""]) == [
            "alice",
            "Bob",
            "carol",
        ]


# ── repository access ────────────────────────────────────────────────────


class TestReadRenovateConfig:
    def test_root_file(self, tmp_path):
        _write(tmp_path, "shop/App.csproj", "<Project />")
        _write(tmp_path, "shop/renovate.json", json.dumps({"ignoreDeps": ["Serilog"]}))

        overrides = read_renovate_config(LocalWorkspace(tmp_path), "shop")
        assert overrides is not None
        assert overrides.excludes("Serilog")

    def test_github_directory(self, tmp_path):
        _write(tmp_path, "shop/App.csproj", "<Project />")
        _write(tmp_path, "shop/.github/renovate.json", json.dumps({"reviewers": ["alice"]}))

        overrides = read_renovate_config(LocalWorkspace(tmp_path), "shop")
        assert overrides.reviewers == ["alice"]

    def test_first_known_path_wins(self, tmp_path):
        _write(tmp_path, "shop/App.csproj", "<Project />")
        _write(tmp_path, "shop/renovate.json", json.dumps({"ignoreDeps": ["Serilog"]}))
        _write(tmp_path, "shop/.renovaterc", json.dumps({"ignoreDeps": ["Dapper"]}))

        overrides = read_renovate_config(LocalWorkspace(tmp_path), "shop")
        assert overrides.ignored_packages == {"serilog"}

    def test_blank_file_is_skipped(self, tmp_path):
        _write(tmp_path, "shop/App.csproj", "<Project />")
        _write(tmp_path, "shop/renovate.json", "  \n")
        _write(tmp_path, "shop/.renovaterc.json", json.dumps({"ignoreDeps": ["Dapper"]}))

        overrides = read_renovate_config(LocalWorkspace(tmp_path), "shop")
        assert overrides.ignored_packages == {"dapper"}

    def test_no_file(self, tmp_path):
        _write(tmp_path, "shop/App.csproj", "<Project />")
        assert read_renovate_config(LocalWorkspace(tmp_path), "shop") is None


class TestFilterRenovateExclusions:
    def test_excluded_references_dropped(self):
        overrides = parse_renovate_config(json.dumps(RENOVATE))
        refs = [_ref("Serilog"), _ref("Dapper"), _ref("newtonsoft.json")]
        assert [r.name for r in filter_renovate_exclusions(refs, overrides)] == ["Dapper"]

    def test_no_overrides(self):
        refs = [_ref("Serilog")]
        assert filter_renovate_exclusions(refs, None) == refs
