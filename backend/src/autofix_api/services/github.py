import re
from typing import Any, Dict, List, Optional
import httpx
from ..errors import HostingAPIError, InvalidRepositoryUrlError
from ..models.remediation import ChangeRequest
from ..config import settings
from ..logger import get_logger

logger = get_logger(__name__)

_SCP_URL = re.compile(r"^[\w.-]+@[\w.-]+:(?P<path>.+)$")


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """
    Extracts owner and repo name from a GitHub URL.

    Handles https://github.com/owner/repo, trailing slashes, a trailing .git
    and the scp-like git@github.com:owner/repo.git form.

    Args:
        repo_url (str): The repository URL.

    Returns:
        tuple[str, str]: (owner, repo_name)

    Raises:
        InvalidRepositoryUrlError: If the URL does not contain an owner and a repository.
    """
    url = (repo_url or "").strip()
    scp = _SCP_URL.match(url)
    if scp:
        path = scp.group("path")
    else:
        path = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", "", url)
        # Drop the host
        path = path.split("/", 1)[1] if "/" in path else ""

    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) != 2:
        raise InvalidRepositoryUrlError(f"Cannot parse owner/repository from '{repo_url}'")

    owner, repo = parts
    if repo.endswith(".git"):
        repo = repo[:-len(".git")]
    if not owner or not repo:
        raise InvalidRepositoryUrlError(f"Cannot parse owner/repository from '{repo_url}'")
    return owner, repo


class GitHubService:
    def __init__(self, token: Optional[str] = None, api_url: Optional[str] = None, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token if token is not None else settings.GITHUB_TOKEN
        self.api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GITHUB_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "Security-Autofix"
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=True
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with self._client() as client:
            try:
                resp = await client.request(method, path, **kwargs)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                message = _error_message(e.response)
                raise HostingAPIError(f"{method} {path} failed with {e.response.status_code}: {message}", e.response.status_code) from e
            except httpx.HTTPError as e:
                raise HostingAPIError(f"{method} {path} failed: {e!r}") from e
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise HostingAPIError(f"{method} {path} returned a non-JSON body", resp.status_code) from e

    async def create_pull_request(self, owner: str, repo: str, title: str, body: str, head: str, base: str) -> ChangeRequest:
        logger.info(f"Opening pull request {owner}/{repo} {head} -> {base}")
        data = await self._request("POST", f"/repos/{owner}/{repo}/pulls", json={
            "title": title,
            "body": body,
            "head": head,
            "base": base,
            "maintainer_can_modify": True
        })
        try:
            return ChangeRequest(url=data["html_url"], number=data["number"])
        except (KeyError, TypeError, ValueError) as e:
            raise HostingAPIError(f"Malformed pull request response for {owner}/{repo}: {e!r}") from e

    async def add_labels(self, owner: str, repo: str, number: int, labels: List[str]):
        await self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/labels", json={"labels": labels})

    async def create_comment(self, owner: str, repo: str, number: int, body: str):
        await self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    async def get_default_branch(self, owner: str, repo: str) -> str:
        data = await self._request("GET", f"/repos/{owner}/{repo}")
        return (data or {}).get("default_branch") or "main"

    async def list_pull_requests(self, owner: str, repo: str, state: str = "open") -> List[Dict[str, Any]]:
        return await self._request("GET", f"/repos/{owner}/{repo}/pulls", params={"state": state, "per_page": 100})


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return response.text
