import asyncio
from typing import Optional
from ..errors import GitCommandError
from ..config import settings
from ..logger import get_logger

logger = get_logger(__name__)

class GitWorkingCopy:
    """Thin async wrapper around the git CLI for one local working copy."""

    def __init__(self, path: str, timeout: Optional[float] = None):
        self.path = path
        self.timeout = timeout if timeout is not None else settings.GIT_TIMEOUT_SECONDS

    async def _run(self, *args: str, check: bool = True) -> tuple[int, str]:
        """
        Executes a git command inside the working copy.

        Args:
            *args (str): Arguments after `git`.
            check (bool): Raise GitCommandError on a non-zero exit code.

        Returns:
            tuple[int, str]: (return code, stripped stdout)
        """
        logger.debug(f"Running git {' '.join(args)} in {self.path}")
        try:
            process = await asyncio.create_subprocess_exec(
                "git", *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.path
            )
        except OSError as e:
            # Missing working copy or missing git binary
            raise GitCommandError(list(args), -1, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"git {' '.join(args)} timed out after {self.timeout}s")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise GitCommandError(list(args), None)

        if check and process.returncode != 0:
            raise GitCommandError(list(args), process.returncode, stderr.decode(errors="replace"))
        return process.returncode, stdout.decode(errors="replace").strip()

    async def branch_exists(self, name: str) -> bool:
        code, _ = await self._run("rev-parse", "--verify", "--quiet", f"refs/heads/{name}", check=False)
        return code == 0

    async def ref_exists(self, ref: str) -> bool:
        code, _ = await self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        return code == 0

    async def current_ref(self) -> str:
        """The checked-out branch name, or the commit SHA when HEAD is detached."""
        code, branch = await self._run("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if code == 0 and branch:
            return branch
        _, sha = await self._run("rev-parse", "HEAD")
        return sha

    async def create_branch(self, name: str, start_point: Optional[str] = None):
        if start_point:
            await self._run("checkout", "-b", name, start_point)
        else:
            await self._run("checkout", "-b", name)

    async def checkout(self, name: str):
        await self._run("checkout", name)

    async def reset_hard(self):
        await self._run("reset", "--hard")

    async def clean(self):
        await self._run("clean", "-fd")

    async def add_all(self):
        await self._run("add", "-A")

    async def commit(self, message: str, author_name: str, author_email: str):
        await self._run(
            "-c", f"user.name={author_name}",
            "-c", f"user.email={author_email}",
            "commit",
            "--author", f"{author_name} <{author_email}>",
            "-m", message
        )

    async def head_commit(self) -> str:
        _, sha = await self._run("rev-parse", "HEAD")
        return sha

    async def push(self, branch: str, remote: str):
        await self._run("push", "--set-upstream", remote, branch)
