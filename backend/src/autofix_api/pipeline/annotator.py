from typing import List
from ..models.remediation import FixStrategy
from ..models.vulnerability import VulnerabilityFix
from ..services.github import GitHubService, parse_repo_url
from ..logger import get_logger

logger = get_logger(__name__)


def build_labels(vuln: VulnerabilityFix, strategy: FixStrategy) -> List[str]:
    labels = ["security", "automated-fix"]
    if strategy.breaking_changes:
        labels.append("breaking-change")
    labels.append(f"severity-{vuln.severity.value}")
    labels.append(f"impact-{strategy.impact}")
    return labels


def advisory_link(advisory_id: str) -> str:
    if advisory_id.upper().startswith("GHSA-"):
        return f"[Advisory Details](https://github.com/advisories/{advisory_id})"
    return f"[CVE Details](https://cve.mitre.org/cgi-bin/cvename.cgi?name={advisory_id})"


def build_comment(vuln: VulnerabilityFix, strategy: FixStrategy) -> str:
    return f"""## Automated Security Fix Analysis

This PR was generated by automated vulnerability analysis and fix generation.

### Confidence Score: {strategy.confidence}%

### Pre-merge Checklist:
- [ ] Review dependency changes
- [ ] Verify no breaking changes in your application
- [ ] Run full test suite
- [ ] Check for any custom configurations that might be affected
- [ ] Consider staging deployment before production

### Monitoring Recommendations:
- Monitor application logs for any unexpected behavior
- Verify all integrations continue to work as expected
- Consider rolling back if any issues are detected

### Additional Resources:
- {advisory_link(vuln.cve_id)}
- [Package Security Advisory](https://www.npmjs.com/package/{vuln.package_name})

*For questions about this automated fix, please contact the security team.*"""


class ChangeRequestAnnotator:
    def __init__(self, github: GitHubService):
        self.github = github

    async def annotate(self, pr_number: int, vuln: VulnerabilityFix, strategy: FixStrategy) -> bool:
        """
        Labels the pull request and posts the analysis comment. Failures are logged, never raised.

        Returns:
            bool: True when both the labels and the comment were applied.
        """
        try:
            owner, repo = parse_repo_url(vuln.repository_url)
            await self.github.add_labels(owner, repo, pr_number, build_labels(vuln, strategy))
            await self.github.create_comment(owner, repo, pr_number, build_comment(vuln, strategy))
        except Exception as e:
            logger.error(f"Error configuring PR #{pr_number} for {vuln.cve_id}: {e}")
            return False
        return True
