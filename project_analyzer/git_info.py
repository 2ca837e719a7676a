"""Git history signals for completion detection.

The completion analyzer only talks to :class:`GitInfoProvider`. The CLI
implementation shells out to ``git``; when git is missing or the root is not
a repository every query degrades to an empty result instead of raising.
"""

from __future__ import annotations

import logging
import re
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from .models import GitCommit, GitEvidence, GitFileInfo, GitRepoInfo

logger = logging.getLogger("project_analyzer.git")

GIT_TIMEOUT = 30
STALE_AFTER_DAYS = 90

_NOISE_WORDS = re.compile(r"\b(todo|fixme|bug|hack|note|implement|add|create|fix|update)\b", re.IGNORECASE)
_SEARCH_WORD = re.compile(r"\b[a-z]{4,}\b", re.IGNORECASE)


class GitInfoProvider:
    """Interface for the git queries the analyzers need.

    The base implementation answers as if the root were not a repository.
    """

    def is_git_repository(self) -> bool:
        return False

    def get_repo_info(self) -> GitRepoInfo:
        return GitRepoInfo()

    def get_file_info(self, relative_path: str) -> GitFileInfo:
        return GitFileInfo()

    def search_history(self, search_term: str, max_results: int = 10) -> List[GitCommit]:
        return []

    def check_feature_exists(self, feature_name: str) -> List[str]:
        """Evidence lines showing a name appears in files, commits or code."""
        return []

    def get_stale_files(self, days_old: int = 180) -> List[str]:
        return []


class NullGitInfoProvider(GitInfoProvider):
    """Provider for roots without git; every answer is empty."""


class CliGitInfoProvider(GitInfoProvider):
    """Provider that runs the ``git`` executable inside the repository root."""

    def __init__(self, repo_path: str | Path, timeout: int = GIT_TIMEOUT):
        self.repo_path = Path(repo_path)
        self.timeout = timeout
        self._is_repo: Optional[bool] = None

    def run(self, args: List[str]) -> Optional[str]:
        """Run a git command; return stripped stdout, or None on any failure."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"git {' '.join(args)} failed: {e}")
            return None
        if result.returncode != 0:
            logger.debug(f"git {' '.join(args)} exited with {result.returncode}")
            return None
        return result.stdout.strip()

    def is_git_repository(self) -> bool:
        if self._is_repo is None:
            self._is_repo = self.run(["rev-parse", "--git-dir"]) is not None
        return self._is_repo

    def get_repo_info(self) -> GitRepoInfo:
        if not self.is_git_repository():
            return GitRepoInfo()
        branch = self.run(["rev-parse", "--abbrev-ref", "HEAD"]) or ""
        remotes = self.run(["remote"]) or ""
        return GitRepoInfo(is_git_repo=True, current_branch=branch, has_remote=bool(remotes))

    def get_file_info(self, relative_path: str) -> GitFileInfo:
        if not self.is_git_repository():
            return GitFileInfo()
        if not (self.repo_path / relative_path).exists():
            return GitFileInfo()

        if self.run(["ls-files", "--error-unmatch", "--", relative_path]) is None:
            return GitFileInfo(exists=True)

        last_modified_str = self.run(["log", "-1", "--format=%aI", "--", relative_path])
        commits = self.run(["log", "--format=%h", "--", relative_path])

        last_modified = None
        if last_modified_str:
            try:
                last_modified = datetime.fromisoformat(last_modified_str)
            except ValueError:
                logger.debug(f"Unparseable commit date for {relative_path}: {last_modified_str}")

        return GitFileInfo(
            exists=True,
            last_modified=last_modified,
            commit_count=len(commits.splitlines()) if commits else 0,
            is_tracked=True,
        )

    def search_history(self, search_term: str, max_results: int = 10) -> List[GitCommit]:
        if not self.is_git_repository():
            return []
        output = self.run([
            "log", "--all", "-i", f"--grep={search_term}",
            "--format=%h|%aI|%s", "-n", str(max_results),
        ])
        if not output:
            return []

        commits = []
        for line in output.splitlines():
            commit, date, *message = line.split("|")
            commits.append(GitCommit(commit=commit, date=date, message="|".join(message)))
        return commits

    def check_feature_exists(self, feature_name: str) -> List[str]:
        if not self.is_git_repository():
            return []

        evidence: List[str] = []
        needle = feature_name.lower()

        tracked = self.run(["ls-files"]) or ""
        matching_files = [path for path in tracked.splitlines() if needle in path.lower()][:5]
        if matching_files:
            evidence.append(f"Files found: {len(matching_files)}")

        commits = self.run(["log", "--all", "--oneline", "-i", f"--grep={feature_name}"])
        if commits:
            evidence.append(f"Commits mentioning feature: {len(commits.splitlines())}")

        # git grep exits 1 when nothing matches
        mentions = self.run(["grep", "-i", "-I", "--fixed-strings", feature_name])
        if mentions:
            evidence.append(f"Code mentions: {len(mentions.splitlines())}")

        return evidence

    def get_stale_files(self, days_old: int = 180) -> List[str]:
        if not self.is_git_repository():
            return []
        cutoff = (datetime.now() - timedelta(days=days_old)).strftime("%Y-%m-%d")
        output = self.run(["log", "--all", "--name-only", f"--before={cutoff}", "--format="])
        if not output:
            return []
        return sorted({line.strip() for line in output.splitlines() if line.strip()})


def get_git_provider(repo_path: str | Path) -> GitInfoProvider:
    """CLI provider for git repositories, null provider for everything else."""
    provider = CliGitInfoProvider(repo_path)
    if provider.is_git_repository():
        return provider
    return NullGitInfoProvider()


def extract_search_keywords(todo_text: str) -> List[str]:
    """Up to five distinct words worth searching history for."""
    cleaned = _NOISE_WORDS.sub("", todo_text.lower())
    keywords: List[str] = []
    for word in _SEARCH_WORD.findall(cleaned):
        if word not in keywords:
            keywords.append(word)
    return keywords[:5]


def check_git_evidence(
    provider: GitInfoProvider,
    todo_text: str,
    file_path: str,
    now: Optional[datetime] = None,
) -> GitEvidence:
    """Gather history signals suggesting a TODO has been dealt with."""
    evidence: List[str] = []
    confidence = 0
    now = now or datetime.now(timezone.utc)

    file_info = provider.get_file_info(file_path)
    if file_info.is_tracked and file_info.last_modified:
        modified = file_info.last_modified
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        days_since = (now - modified).total_seconds() / 86400
        if days_since > STALE_AFTER_DAYS:
            evidence.append(f"File not modified in {round(days_since)} days")
            confidence += 20

    for keyword in extract_search_keywords(todo_text):
        commits = provider.search_history(keyword, 3)
        if commits:
            evidence.append(f'Found {len(commits)} commits mentioning "{keyword}"')
            confidence += min(len(commits) * 15, 30)

        feature_evidence = provider.check_feature_exists(keyword)
        if feature_evidence:
            evidence.extend(feature_evidence)
            confidence += 25

    return GitEvidence(
        has_evidence=bool(evidence),
        confidence=min(confidence, 100),
        evidence=evidence,
    )
