import asyncio

from autofix_api.agents.strategist import fallback_strategy
from autofix_api.models.remediation import FixStrategy, FixType
from autofix_api.pipeline.annotator import ChangeRequestAnnotator, build_comment, build_labels

from fakes import FakeGitHubAPI

RISKY = FixStrategy(
    type=FixType.DEPENDENCY_REPLACEMENT,
    confidence=61,
    impact="high",
    breaking_changes=True,
    test_required=True,
    rollback_plan="Restore the previous dependency",
)


class TestLabels:
    def test_default_label_set(self, make_vuln):
        assert build_labels(make_vuln(severity="CRITICAL"), fallback_strategy()) == [
            "security", "automated-fix", "severity-critical", "impact-medium",
        ]

    def test_breaking_change_label(self, make_vuln):
        assert build_labels(make_vuln(), RISKY) == [
            "security", "automated-fix", "breaking-change", "severity-high", "impact-high",
        ]


class TestComment:
    def test_contains_confidence_and_checklist(self, make_vuln):
        comment = build_comment(make_vuln(), RISKY)

        assert "Confidence Score: 61%" in comment
        for item in (
            "Review dependency changes",
            "Verify no breaking changes",
            "Run full test suite",
            "Check for any custom configurations",
            "Consider staging deployment",
        ):
            assert f"- [ ] {item}" in comment
        assert "Monitoring Recommendations" in comment

    def test_reference_links(self, make_vuln):
        comment = build_comment(make_vuln(), RISKY)
        assert "https://cve.mitre.org/cgi-bin/cvename.cgi?name=CVE-2024-1597" in comment
        assert "https://www.npmjs.com/package/postgresql" in comment

    def test_ghsa_links_to_github_advisory(self, make_vuln):
        comment = build_comment(make_vuln(cve_id="GHSA-24rp-q3w6-vc56"), RISKY)
        assert "https://github.com/advisories/GHSA-24rp-q3w6-vc56" in comment


class TestAnnotate:
    def test_applies_labels_then_comment(self, make_vuln):
        api = FakeGitHubAPI()
        done = asyncio.run(ChangeRequestAnnotator(api.service()).annotate(42, make_vuln(), RISKY))

        assert done is True
        assert [r[1] for r in api.requests] == [
            "/repos/acme/shop/issues/42/labels",
            "/repos/acme/shop/issues/42/comments",
        ]
        assert "breaking-change" in api.requests[0][2]["labels"]

    def test_failures_are_swallowed(self, make_vuln):
        api = FakeGitHubAPI(fail={("POST", "/labels"): 403})
        done = asyncio.run(ChangeRequestAnnotator(api.service()).annotate(42, make_vuln(), RISKY))

        assert done is False
        assert api.calls("POST", "/comments") == []

    def test_bad_url_is_swallowed(self, make_vuln):
        api = FakeGitHubAPI()
        done = asyncio.run(ChangeRequestAnnotator(api.service()).annotate(42, make_vuln(repository_url="nope"), RISKY))
        assert done is False
