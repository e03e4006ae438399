"""Parsing of git branch, log and rev-list output."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from .repository_info import CommitInfo

# for-each-ref record: refname NUL objectname NUL HEAD-marker NUL symref
REF_FORMAT = "%(refname)%00%(objectname)%00%(HEAD)%00%(symref)"

# log record: fields split by US (0x1f), records terminated by RS (0x1e)
FIELD_SEPARATOR = "\x1f"
RECORD_SEPARATOR = "\x1e"
LOG_FORMAT = "%H%x1f%aI%x1f%an%x1f%ae%x1f%D%x1f%s%x1e"

LOCAL_PREFIX = "refs/heads/"
REMOTE_PREFIX = "refs/remotes/"


@dataclass(frozen=True)
class BranchRef:
    """One line of ``git for-each-ref`` output."""
    refname: str
    commit_sha: str
    is_head: bool = False
    symref: str = ""

    @property
    def is_symbolic(self) -> bool:
        return bool(self.symref)

    @property
    def short_name(self) -> str:
        """Name with the ``refs/heads/`` or ``refs/`` prefix removed."""
        if self.refname.startswith(LOCAL_PREFIX):
            return self.refname[len(LOCAL_PREFIX):]
        if self.refname.startswith("refs/"):
            return self.refname[len("refs/"):]
        return self.refname


def parse_ref_listing(output: str) -> List[BranchRef]:
    """Parse ``git for-each-ref --format=REF_FORMAT`` output."""
    refs = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\x00")
        if len(parts) < 2:
            continue
        refname, commit_sha = parts[0], parts[1]
        is_head = len(parts) > 2 and parts[2].strip() == "*"
        symref = parts[3].strip() if len(parts) > 3 else ""
        refs.append(BranchRef(refname=refname, commit_sha=commit_sha, is_head=is_head, symref=symref))
    return refs


def remote_display_name(name: str) -> str:
    """Strip the ``remotes/`` segment used for remote-tracking refs."""
    if name.startswith("refs/"):
        name = name[len("refs/"):]
    if name.startswith("remotes/"):
        name = name[len("remotes/"):]
    return name


def remote_head_target(refs: List[BranchRef]) -> Optional[str]:
    """Return the branch ``<remote>/HEAD`` points at, as a display name."""
    for ref in refs:
        if ref.is_symbolic and ref.refname.endswith("/HEAD"):
            return remote_display_name(ref.symref)
    return None


def parse_iso_date(value: str) -> datetime:
    value = value.strip()
    # git prints "Z" for UTC in strict ISO mode
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def parse_commit_log(output: str) -> List[CommitInfo]:
    """Parse ``git log --format=LOG_FORMAT`` output into commits in source order."""
    commits = []
    for record in output.split(RECORD_SEPARATOR):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(FIELD_SEPARATOR)
        if len(fields) < 6:
            continue
        commit_hash, date, author, email, refs = fields[:5]
        # The subject is last so a stray separator in it cannot shift fields
        message = FIELD_SEPARATOR.join(fields[5:])
        commits.append(CommitInfo(
            hash=commit_hash,
            date=parse_iso_date(date),
            message=message,
            author=author,
            author_email=email,
            refs=refs,
        ))
    return commits


def sort_commits(commits: List[CommitInfo]) -> List[CommitInfo]:
    """Order commits newest first; commits with equal dates keep their order."""
    return sorted(commits, key=lambda commit: commit.date, reverse=True)


def parse_ahead_behind(output: str) -> Tuple[int, int]:
    """Parse ``git rev-list --left-right --count A...B`` output."""
    parts = output.split()
    if len(parts) != 2:
        raise ValueError(f"Unexpected rev-list output: {output!r}")
    return int(parts[0]), int(parts[1])
