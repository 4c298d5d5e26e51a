"""Tests for the central package management migration planner."""

from __future__ import annotations

import pytest

from nugsentinel.engines.cpm_migration import (
    generate_central_props,
    migrate,
    migrate_by_repository,
    per_project_props_path,
    remove_version_attributes,
)
from nugsentinel.models import PackageReference, SourceKind


def _ref(
    name: str,
    version: str | None,
    project_path: str,
    repo: str = "repo",
    kind: SourceKind = SourceKind.PROJECT_FILE,
) -> PackageReference:
    return PackageReference(
        name=name,
        declared_version=version,
        project_path=project_path,
        repository_name=repo,
        project_name=project_path.rsplit("/", 1)[-1].split(".")[0],
        source_kind=kind,
    )


def _project(*packages: tuple[str, str]) -> str:
    items = "\n".join(
        f'    <PackageReference Include="{name}" Version="{version}" />'
        for name, version in packages
    )
    return (
        '<Project Sdk="Microsoft.NET.Sdk">\n'
        "  <ItemGroup>\n"
        f"{items}\n"
        "  </ItemGroup>\n"
        "</Project>\n"
    )


APP1 = "/src/App1/App1.csproj"
APP2 = "/src/App2/App2.csproj"


# ── props rendering ──────────────────────────────────────────────────────


class TestGenerateCentralProps:
    def test_layout(self):
        assert generate_central_props({"Serilog": "3.1.1"}) == (
            "<Project>\n"
            "  <PropertyGroup>\n"
            "    <ManagePackageVersionsCentrally>true</ManagePackageVersionsCentrally>\n"
            "  </PropertyGroup>\n"
            "  <ItemGroup>\n"
            '    <PackageVersion Include="Serilog" Version="3.1.1" />\n'
            "  </ItemGroup>\n"
            "</Project>\n"
        )

    def test_sorted_case_insensitively(self):
        out = generate_central_props({"serilog": "1.0.0", "Dapper": "2.0.0", "AutoMapper": "1"})
        assert out.index("AutoMapper") < out.index("Dapper") < out.index("serilog")

    def test_none(self):
        with pytest.raises(TypeError):
            generate_central_props(None)


class TestRemoveVersionAttributes:
    def test_strips_version(self):
        out = remove_version_attributes(_project(("Serilog", "3.1.1")), {})
        assert '<PackageReference Include="Serilog" />' in out
        assert "Version=" not in out

    def test_version_first(self):
        content = '<PackageReference Version="1.0.0" Include="Serilog" />'
        assert remove_version_attributes(content, {}) == '<PackageReference Include="Serilog" />'

    def test_override(self):
        content = '<PackageReference Include="Serilog" Version="2.0.0" />'
        out = remove_version_attributes(content, {"serilog": "2.0.0"})
        assert out == '<PackageReference Include="Serilog" VersionOverride="2.0.0" />'

    def test_open_element(self):
        content = (
            '<PackageReference Include="Serilog" Version="1.0.0">\n'
            "  <PrivateAssets>all</PrivateAssets>\n"
            "</PackageReference>"
        )
        out = remove_version_attributes(content, {})
        assert out.startswith('<PackageReference Include="Serilog">\n')

    def test_existing_override_untouched(self):
        content = '<PackageReference Include="Serilog" VersionOverride="1.0.0" />'
        assert remove_version_attributes(content, {}) == content

    def test_child_version_removed(self):
        content = (
            '<PackageReference Include="Serilog">\n'
            "  <Version>3.1.1</Version>\n"
            "</PackageReference>"
        )
        assert remove_version_attributes(content, {}) == '<PackageReference Include="Serilog" />'

    def test_child_version_beside_other_children(self):
        content = (
            '<PackageReference Include="Serilog">\n'
            "  <Version>3.1.1</Version>\n"
            "  <PrivateAssets>all</PrivateAssets>\n"
            "</PackageReference>"
        )
        assert remove_version_attributes(content, {}) == (
            '<PackageReference Include="Serilog">\n'
            "  <PrivateAssets>all</PrivateAssets>\n"
            "</PackageReference>"
        )

    def test_child_version_becomes_override(self):
        content = (
            '<PackageReference Include="Serilog">\n'
            "  <Version>2.0.0</Version>\n"
            "</PackageReference>"
        )
        out = remove_version_attributes(content, {"Serilog": "2.0.0"})
        assert "<VersionOverride>2.0.0</VersionOverride>" in out
        assert "<Version>" not in out

    def test_unmanaged_reference_untouched(self):
        content = _project(("Serilog", "3.1.1"), ("Internal.Lib", "1.2.0"))
        out = remove_version_attributes(content, {}, managed={"serilog"})
        assert '<PackageReference Include="Serilog" />' in out
        assert '<PackageReference Include="Internal.Lib" Version="1.2.0" />' in out

    def test_none(self):
        with pytest.raises(TypeError):
            remove_version_attributes(None, {})
        with pytest.raises(TypeError):
            remove_version_attributes("", None)


class TestPerProjectPropsPath:
    def test_beside_project(self):
        assert per_project_props_path(APP1) == "/src/App1/Directory.Packages.props"

    def test_bare_file_name(self):
        assert per_project_props_path("App.csproj") == "Directory.Packages.props"

    def test_backslashes(self):
        assert per_project_props_path("src\\App\\App.csproj") == "src/App/Directory.Packages.props"


# ── migration ────────────────────────────────────────────────────────────


class TestMigratePerRepository:
    def _newtonsoft(self):
        refs = [
            _ref("Newtonsoft.Json", "13.0.3", APP1),
            _ref("Newtonsoft.Json", "12.0.0", APP2),
        ]
        contents = {
            APP1: _project(("Newtonsoft.Json", "13.0.3")),
            APP2: _project(("Newtonsoft.Json", "12.0.0")),
        }
        return refs, contents

    def test_highest_version_becomes_central(self):
        refs, contents = self._newtonsoft()
        result = migrate(refs, contents)

        props, app1, app2 = result.file_changes
        assert props.path == "/Directory.Packages.props"
        assert props.is_new_file
        assert '<PackageVersion Include="Newtonsoft.Json" Version="13.0.3" />' in props.content

        assert app1.path == APP1 and not app1.is_new_file
        assert '<PackageReference Include="Newtonsoft.Json" />' in app1.content

        assert app2.path == APP2
        assert (
            '<PackageReference Include="Newtonsoft.Json" VersionOverride="12.0.0" />'
            in app2.content
        )

    def test_conflict_reported(self):
        refs, contents = self._newtonsoft()
        result = migrate(refs, contents)

        assert result.has_conflicts
        [conflict] = result.conflicts
        assert conflict.package_name == "Newtonsoft.Json"
        assert conflict.project_path == APP2
        assert conflict.override_version == "12.0.0"
        assert conflict.central_version == "13.0.3"

    def test_central_version_is_semantic_maximum(self):
        refs = [
            _ref("Serilog", "1.0.0", "/a/A.csproj"),
            _ref("Serilog", "1.10.0", "/b/B.csproj"),
            _ref("Serilog", "1.9.0", "/c/C.csproj"),
        ]
        result = migrate(refs, {})
        assert 'Version="1.10.0"' in result.file_changes[0].content
        assert [c.override_version for c in result.conflicts] == ["1.0.0", "1.9.0"]

    def test_same_version_everywhere_has_no_conflict(self):
        refs = [_ref("Serilog", "3.1.1", APP1), _ref("serilog", "3.1.1", APP2)]
        result = migrate(refs, {})
        assert not result.has_conflicts
        assert 'Include="Serilog"' in result.file_changes[0].content

    def test_references_not_being_migrated_keep_their_version(self):
        # Internal.Lib was filtered out before migration (excluded prefix).
        refs = [_ref("Serilog", "3.1.1", APP1)]
        contents = {APP1: _project(("Serilog", "3.1.1"), ("Internal.Lib", "1.2.0"))}

        props, app1 = migrate(refs, contents).file_changes
        assert "Internal.Lib" not in props.content
        assert '<PackageReference Include="Serilog" />' in app1.content
        assert '<PackageReference Include="Internal.Lib" Version="1.2.0" />' in app1.content

    def test_child_version_elements_are_migrated(self):
        refs = [_ref("Serilog", "3.1.1", APP1), _ref("Serilog", "3.0.0", APP2)]
        child = (
            '<Project Sdk="Microsoft.NET.Sdk">\n'
            "  <ItemGroup>\n"
            '    <PackageReference Include="Serilog">\n'
            "      <Version>{}</Version>\n"
            "    </PackageReference>\n"
            "  </ItemGroup>\n"
            "</Project>\n"
        )
        contents = {APP1: child.format("3.1.1"), APP2: child.format("3.0.0")}

        _, app1, app2 = migrate(refs, contents).file_changes
        assert '<PackageReference Include="Serilog" />' in app1.content
        assert "<Version>" not in app1.content
        assert "<VersionOverride>3.0.0</VersionOverride>" in app2.content
        assert "<Version>" not in app2.content

    def test_relative_paths_give_relative_props(self):
        result = migrate([_ref("Serilog", "3.1.1", "src/App/App.csproj")], {})
        assert result.file_changes[0].path == "Directory.Packages.props"

    def test_missing_project_content_is_skipped(self):
        refs, contents = self._newtonsoft()
        del contents[APP2]
        result = migrate(refs, contents)
        assert [c.path for c in result.file_changes] == ["/Directory.Packages.props", APP1]

    def test_content_lookup_ignores_case(self):
        refs = [_ref("Serilog", "3.1.1", APP1)]
        result = migrate(refs, {APP1.upper(): _project(("Serilog", "3.1.1"))})
        assert len(result.file_changes) == 2

    def test_ignores_ineligible_references(self):
        refs = [
            _ref("Serilog", "3.1.1", APP1, kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT),
            _ref("EntityFramework", "6.4.4", APP1, kind=SourceKind.PACKAGES_CONFIG),
            _ref("Dapper", None, APP1),
        ]
        result = migrate(refs, {APP1: _project()})
        assert result.file_changes == []
        assert result.conflicts == []

    def test_none_inputs(self):
        with pytest.raises(TypeError):
            migrate(None, {})
        with pytest.raises(TypeError):
            migrate([], None)


class TestMigratePerProject:
    def test_props_beside_each_project(self):
        refs = [
            _ref("Newtonsoft.Json", "13.0.3", APP1),
            _ref("Newtonsoft.Json", "12.0.0", APP2),
        ]
        contents = {
            APP1: _project(("Newtonsoft.Json", "13.0.3")),
            APP2: _project(("Newtonsoft.Json", "12.0.0")),
        }
        result = migrate(refs, contents, per_project=True)

        assert result.conflicts == []
        paths = [c.path for c in result.file_changes]
        assert paths == [
            "/src/App1/Directory.Packages.props",
            APP1,
            "/src/App2/Directory.Packages.props",
            APP2,
        ]
        assert 'Version="12.0.0"' in result.file_changes[2].content
        assert "VersionOverride" not in result.file_changes[3].content


class TestMigrateByRepository:
    def test_sorted_and_empty_repositories_omitted(self):
        refs = [
            _ref("Serilog", "3.1.1", APP1, repo="zeta"),
            _ref("Serilog", "3.1.1", APP1, repo="alpha"),
            _ref("Serilog", "3.1.1", APP1, repo="cpm", kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT),
        ]
        contents = {
            "alpha": {APP1: _project(("Serilog", "3.1.1"))},
            "zeta": {APP1: _project(("Serilog", "3.1.1"))},
        }
        results = migrate_by_repository(refs, contents)
        assert list(results) == ["alpha", "zeta"]
        assert len(results["alpha"].file_changes) == 2
