"""The VCS (GitHub) backend adapter

This talks to the GitHub REST API with `requests`. HTTP statuses are translated into the BackendError kinds here and nowhere else:
    - 404 -> NotFound
    - 409 and 422 -> Conflict (stale blob SHA, non-fast-forward ref update, ...)
    - 429 and 5xx (or connection problems) -> Transient, which is retried a few times
    - anything else that isn't a 2xx -> Fatal

:Module: configmirror.backends.github
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import base64
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from retry import retry

from configmirror.backends.errors import BackendError, ConflictError, FatalBackendError, NotFoundError, TransientBackendError
from configmirror.utils.logging import LOGGER


GITHUB_API_VERSION = "2022-11-28"
BLOB_FILE_MODE = "100644"


class VcsFile:
    """A file read out of the repository at a given ref: the decoded content and the blob SHA."""

    def __init__(self, path: str, content: bytes, sha: str):
        self.path = path
        self.content = content
        self.sha = sha


class TreeChange:
    """One entry of a batch commit. A `content` of None means the path is removed from the tree."""

    def __init__(self, path: str, content: Optional[bytes] = None):
        self.path = path
        self.content = content

    @property
    def is_delete(self) -> bool:
        """True if this removes the path."""
        return self.content is None


def translate_status(status_code: int, text: str, what: str) -> BackendError:
    """Maps a non-2xx HTTP status onto the backend error kinds."""
    if status_code == 404:
        return NotFoundError(f"{what} does not exist", status=status_code)

    if status_code in (409, 422):
        return ConflictError(f"{what} was rejected: {text}", status=status_code)

    if status_code == 429 or status_code >= 500:
        return TransientBackendError(f"{what} failed: {text}", status=status_code)

    return FatalBackendError(f"{what} failed: {text}", status=status_code)


class GitHubBackend:
    """Adapter for a single GitHub repository."""

    def __init__(self, owner: str, repo: str, token: str, api_url: str = "https://api.github.com"):
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    @property
    def repo_url(self) -> str:
        """The base URL for the repository endpoints."""
        return f"{self.api_url}/repos/{self.owner}/{self.repo}"

    @retry(TransientBackendError, tries=3, jitter=(0, 3), delay=1, backoff=2, max_delay=3, logger=LOGGER)
    def _request(self, method: str, path: str, what: str, **kwargs) -> Dict[str, Any]:
        """Makes the API call and returns the decoded JSON. Raises a translated BackendError for anything that isn't a 2xx."""
        try:
            response = requests.request(method, f"{self.repo_url}/{path}", headers=self._headers, timeout=20, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientBackendError(f"{what}: {exc}") from exc

        if response.status_code >= 300:
            raise translate_status(response.status_code, response.text, what)

        return response.json() if response.text else {}

    # Contents API:
    def get_file(self, path: str, ref: str) -> VcsFile:
        """Fetches the file at the given ref. Raises NotFoundError if it's not there."""
        LOGGER.debug(f"[🐙] Fetching {path} at ref: {ref}...")
        result = self._request("GET", f"contents/{quote(path)}", f"{path}@{ref}", params={"ref": ref})
        if isinstance(result, list):
            raise FatalBackendError(f"{path}@{ref} is a directory, not a file")

        return VcsFile(path, base64.b64decode(result.get("content", "")), result["sha"])

    def path_exists(self, path: str, ref: str) -> bool:
        """Probes a file or directory path. A 404 means it doesn't exist. Any other error is raised."""
        try:
            self._request("GET", f"contents/{quote(path)}", f"{path}@{ref}", params={"ref": ref})
            return True

        except NotFoundError:
            return False

    def put_file(self, path: str, content: bytes, message: str, branch: str, sha: Optional[str] = None) -> str:
        """Creates (no sha) or updates (sha of the blob being replaced) the file. Returns the new blob SHA.

        GitHub rejects the write if the sha doesn't match what is on the branch, which comes back as a ConflictError.
        """
        body = {"message": message, "content": base64.b64encode(content).decode("utf-8"), "branch": branch}
        if sha:
            body["sha"] = sha

        LOGGER.debug(f"[🐙] {'Updating' if sha else 'Creating'} {path} on branch: {branch}...")
        result = self._request("PUT", f"contents/{quote(path)}", f"write of {path}", json=body)
        return result["content"]["sha"]

    def delete_file(self, path: str, message: str, branch: str, sha: str) -> None:
        """Deletes the file with the given blob SHA from the branch."""
        LOGGER.debug(f"[🐙] Deleting {path} on branch: {branch}...")
        self._request("DELETE", f"contents/{quote(path)}", f"delete of {path}", json={"message": message, "sha": sha, "branch": branch})

    # Git data API (batch commits):
    def get_ref(self, branch: str) -> str:
        """Returns the commit SHA that the branch points at."""
        return self._request("GET", f"git/ref/heads/{quote(branch)}", f"ref heads/{branch}")["object"]["sha"]

    def get_commit_tree(self, commit_sha: str) -> str:
        """Returns the tree SHA of the commit."""
        return self._request("GET", f"git/commits/{commit_sha}", f"commit {commit_sha}")["tree"]["sha"]

    def create_blob(self, content: bytes) -> str:
        """Uploads the blob and returns its SHA."""
        body = {"content": base64.b64encode(content).decode("utf-8"), "encoding": "base64"}
        return self._request("POST", "git/blobs", "blob creation", json=body)["sha"]

    def create_tree(self, base_tree: str, changes: List[TreeChange]) -> str:
        """Creates a tree on top of `base_tree` with the changes applied and returns the new tree SHA."""
        items = []
        for change in changes:
            sha = None if change.is_delete else self.create_blob(change.content)
            items.append({"path": change.path, "mode": BLOB_FILE_MODE, "type": "blob", "sha": sha})

        return self._request("POST", "git/trees", "tree creation", json={"base_tree": base_tree, "tree": items})["sha"]

    def create_commit(self, message: str, tree_sha: str, parents: List[str]) -> str:
        """Creates the commit object and returns its SHA. This does not move any branch."""
        return self._request("POST", "git/commits", "commit creation", json={"message": message, "tree": tree_sha, "parents": parents})["sha"]

    def update_ref(self, branch: str, commit_sha: str, force: bool = False) -> None:
        """Moves the branch to the commit. Without `force`, a non-fast-forward update is rejected as a ConflictError."""
        self._request("PATCH", f"git/refs/heads/{quote(branch)}", f"ref update of heads/{branch}", json={"sha": commit_sha, "force": force})

    def commit_changes(self, branch: str, changes: List[TreeChange], message: str, base_commit: Optional[str] = None) -> str:
        """Commits all the changes as one commit on the branch (build tree, create commit, update ref).

        The commit is parented on `base_commit`, which should be the commit the changes were planned against. If it is not given,
        the branch is read first. If the branch has moved past the parent, the ref update fails and nothing is visible on the branch.
        """
        base_commit = base_commit or self.get_ref(branch)
        base_tree = self.get_commit_tree(base_commit)
        tree_sha = self.create_tree(base_tree, changes)
        commit_sha = self.create_commit(message, tree_sha, [base_commit])
        self.update_ref(branch, commit_sha)
        LOGGER.info(f"[🐙] Committed {len(changes)} change(s) to {branch} as {commit_sha}.")
        return commit_sha
