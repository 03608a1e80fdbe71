import asyncio
import json
from pathlib import Path

import pytest

from autofix_api.agents.generator import FixSynthesizer
from autofix_api.agents.strategist import fallback_strategy
from autofix_api.models.remediation import FixProposal, ProposedFile
from autofix_api.services.manifest import bump_dependency, read_manifest, render_manifest

from fakes import INITIAL_MANIFEST, FakeReasoning

@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    (tmp_path / "package.json").write_text(json.dumps(INITIAL_MANIFEST, indent=2) + "\n")
    return tmp_path

def synthesize(synthesizer: FixSynthesizer, vuln, strategy=None):
    return asyncio.run(synthesizer.synthesize(vuln, strategy or fallback_strategy()))

class TestManifest:
    def test_missing_manifest_reads_as_empty(self, tmp_path: Path):
        assert read_manifest(str(tmp_path), "package.json") == {}

    def test_unparsable_manifest_reads_as_empty(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("{ not json")
        assert read_manifest(str(tmp_path), "package.json") == {}

    def test_non_object_manifest_reads_as_empty(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("[1, 2]")
        assert read_manifest(str(tmp_path), "package.json") == {}

    def test_bump_updates_both_sections_without_mutating_input(self):
        manifest = {"dependencies": {"lodash": "4.17.20"}, "devDependencies": {"lodash": "~4.17.0"}}
        updated, touched = bump_dependency(manifest, "lodash", "4.17.21")

        assert touched == ["dependencies", "devDependencies"]
        assert updated["dependencies"]["lodash"] == "^4.17.21"
        assert updated["devDependencies"]["lodash"] == "^4.17.21"
        assert manifest["dependencies"]["lodash"] == "4.17.20"

    def test_bump_ignores_undeclared_package(self):
        updated, touched = bump_dependency({"dependencies": {"express": "^4.0.0"}}, "lodash", "4.17.21")
        assert touched == []
        assert updated == {"dependencies": {"express": "^4.0.0"}}

    def test_render_is_pretty_printed_with_trailing_newline(self):
        assert render_manifest({"a": {"b": "1"}}) == '{\n  "a": {\n    "b": "1"\n  }\n}\n'

class TestFallbackSynthesis:
    def test_happy_path_bumps_manifest(self, repo_dir: Path, make_vuln):
        change = synthesize(FixSynthesizer(None), make_vuln(repository_path=str(repo_dir)))

        assert "CVE-2024-1597" in change.title
        assert "postgresql" in change.title
        assert change.branch_name == "security-fix-cve-2024-1597"
        assert change.tests == []
        assert len(change.files) == 1

        entry = change.files[0]
        assert entry.path == "package.json"
        assert entry.operation == "update"
        assert entry.content.endswith("}\n")

        manifest = json.loads(entry.content)
        assert manifest["dependencies"]["postgresql"] == "^16.2"
        # Only the affected package changes
        expected = json.loads(json.dumps(INITIAL_MANIFEST))
        expected["dependencies"]["postgresql"] = "^16.2"
        assert manifest == expected

    def test_dev_dependency_is_bumped(self, repo_dir: Path, make_vuln):
        vuln = make_vuln(repository_path=str(repo_dir), package_name="jest", fixed_version="29.7.0")
        manifest = json.loads(synthesize(FixSynthesizer(None), vuln).files[0].content)
        assert manifest["devDependencies"]["jest"] == "^29.7.0"

    def test_body_summarises_vulnerability_and_strategy(self, repo_dir: Path, make_vuln):
        change = synthesize(FixSynthesizer(None), make_vuln(repository_path=str(repo_dir)))

        assert "high severity" in change.body
        assert "postgresql@16.1" in change.body
        assert "version_update" in change.body
        assert fallback_strategy().rollback_plan in change.body

    def test_missing_manifest_is_treated_as_empty(self, tmp_path: Path, make_vuln):
        change = synthesize(FixSynthesizer(None), make_vuln(repository_path=str(tmp_path)))
        assert change.files[0].content == "{}\n"

    def test_service_error_uses_fallback(self, repo_dir: Path, make_vuln):
        reasoning = FakeReasoning(error=RuntimeError("rate limited"))
        vuln = make_vuln(repository_path=str(repo_dir))

        assert synthesize(FixSynthesizer(reasoning), vuln) == synthesize(FixSynthesizer(None), vuln)

class TestServiceSynthesis:
    def test_complete_proposal_is_used(self, repo_dir: Path, make_vuln):
        proposal = FixProposal(
            title="Upgrade postgresql driver",
            body="Details",
            branch_name="security/Fix-CVE-2024-1597",
            files=[
                ProposedFile(path="src/db.js", content="module.exports = {};\n", operation="update"),
                ProposedFile(path="legacy/query.js", operation="delete"),
            ],
            tests=[ProposedFile(path="test/db.test.js", content="test('x', () => {});\n")],
        )
        reasoning = FakeReasoning(proposal=proposal)
        change = synthesize(FixSynthesizer(reasoning), make_vuln(repository_path=str(repo_dir)))

        assert change.title == "Upgrade postgresql driver"
        assert change.body == "Details"
        assert change.branch_name == "security-fix-cve-2024-1597"
        assert [(f.path, f.operation) for f in change.files] == [("src/db.js", "update"), ("legacy/query.js", "delete")]
        assert [t.path for t in change.tests] == ["test/db.test.js"]
        assert reasoning.manifests == [INITIAL_MANIFEST]

    def test_partial_proposal_defaults_each_field(self, repo_dir: Path, make_vuln):
        reasoning = FakeReasoning(proposal=FixProposal(title="Only a title"))
        change = synthesize(FixSynthesizer(reasoning), make_vuln(repository_path=str(repo_dir)))

        assert change.title == "Only a title"
        assert "## Security Fix: CVE-2024-1597" in change.body
        assert change.branch_name == "security-fix-cve-2024-1597"
        assert json.loads(change.files[0].content)["dependencies"]["postgresql"] == "^16.2"
        assert change.tests == []

    def test_traversal_in_proposed_files_falls_back_to_manifest(self, repo_dir: Path, make_vuln):
        proposal = FixProposal(
            title="Sneaky",
            files=[ProposedFile(path="../../etc/cron.d/job", content="* * * * * root true\n", operation="create")],
            tests=[ProposedFile(path="../x.test.js", content="")],
        )
        change = synthesize(FixSynthesizer(FakeReasoning(proposal=proposal)), make_vuln(repository_path=str(repo_dir)))

        assert change.title == "Sneaky"
        assert [f.path for f in change.files] == ["package.json"]
        assert change.tests == []

    def test_unknown_operation_falls_back_to_manifest(self, repo_dir: Path, make_vuln):
        proposal = FixProposal(files=[ProposedFile(path="a.js", content="x", operation="rename")])
        change = synthesize(FixSynthesizer(FakeReasoning(proposal=proposal)), make_vuln(repository_path=str(repo_dir)))
        assert [f.path for f in change.files] == ["package.json"]
