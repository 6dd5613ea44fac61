# AGPL-3.0 License

"""
Submission data: the change set a gate run evaluates.

A Submission is built once by the VCS adapter and shared read-only by every
rule in the run.
"""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)

DEV_NULL = "/dev/null"


class EditType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass(frozen=True)
class DiffHunk:
    """
    One hunk of a unified diff.

    ``lines`` keeps the raw hunk body, each line still prefixed by
    ``' '``, ``'+'``, ``'-'`` or ``'\\'``.
    """
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[str, ...] = ()
    section: str = ""

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def header(self) -> str:
        header = f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"
        return f"{header} {self.section}" if self.section else header

    def added_lines(self) -> Iterator[tuple[int, str]]:
        """Yield (head line number, text) for every added line."""
        new_lineno = self.new_start
        for line in self.lines:
            if line.startswith("+"):
                yield new_lineno, line[1:]
                new_lineno += 1
            elif line.startswith(" ") or line == "":
                new_lineno += 1

    def removed_lines(self) -> Iterator[tuple[int, str]]:
        """Yield (base line number, text) for every removed line."""
        old_lineno = self.old_start
        for line in self.lines:
            if line.startswith("-"):
                yield old_lineno, line[1:]
                old_lineno += 1
            elif line.startswith(" ") or line == "":
                old_lineno += 1


@dataclass(frozen=True)
class FileChange:
    """A changed file and its hunks."""
    path: str
    edit_type: EditType = EditType.MODIFIED
    hunks: tuple[DiffHunk, ...] = ()
    old_path: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "hunks", tuple(self.hunks))

    @property
    def patch(self) -> str:
        """Hunks rendered back as unified diff text."""
        parts = []
        for hunk in self.hunks:
            parts.append(hunk.header)
            parts.extend(hunk.lines)
        return "\n".join(parts)

    @property
    def num_plus_lines(self) -> int:
        return sum(1 for hunk in self.hunks for _ in hunk.added_lines())

    @property
    def num_minus_lines(self) -> int:
        return sum(1 for hunk in self.hunks for _ in hunk.removed_lines())

    def added_lines(self) -> Iterator[tuple[int, str]]:
        for hunk in self.hunks:
            yield from hunk.added_lines()


@dataclass(frozen=True)
class Submission:
    """
    Immutable description of the change being gated.

    Attributes:
        identifier: Stable id of the submission (e.g. "owner/repo#123")
        files: Changed files with their diff hunks
        base_revision: Revision the change is based on
        head_revision: Revision under review
        author: Author login
        branch: Source branch name
        metadata: Extra adapter-supplied data (labels, title, ...)
    """
    identifier: str
    files: tuple[FileChange, ...] = ()
    base_revision: str = ""
    head_revision: str = ""
    author: str = ""
    branch: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "files", tuple(self.files))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))

    @property
    def files_changed(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def fingerprint(self) -> str:
        """Stable hash of the revisions and the diff content."""
        digest = hashlib.sha256()
        digest.update(f"{self.identifier}\0{self.base_revision}\0{self.head_revision}".encode())
        for file_change in self.files:
            digest.update(f"\0{file_change.path}\0{file_change.edit_type.value}\0".encode())
            digest.update(file_change.patch.encode())
        return digest.hexdigest()[:16]

    def get_file(self, path: str) -> Optional[FileChange]:
        for file_change in self.files:
            if file_change.path == path:
                return file_change
        return None

    @classmethod
    def from_unified_diff(cls, identifier: str, diff_text: str, **kwargs) -> "Submission":
        """
        Build a Submission from ``git diff`` style unified diff text.

        Args:
            identifier: Submission identifier
            diff_text: Unified diff covering one or more files
            **kwargs: Remaining Submission fields (revisions, author, branch, metadata)

        Returns:
            Submission holding one FileChange per file in the diff
        """
        return cls(identifier=identifier, files=tuple(parse_unified_diff(diff_text)), **kwargs)


def parse_unified_diff(diff_text: str) -> list[FileChange]:
    """Parse unified diff text into FileChange objects."""
    files: list[FileChange] = []
    old_path: Optional[str] = None
    new_path: Optional[str] = None
    hunks: list[DiffHunk] = []
    hunk_header: Optional[re.Match] = None
    hunk_lines: list[str] = []
    old_remaining = new_remaining = 0
    in_file = False

    def flush_hunk():
        nonlocal hunk_header, hunk_lines
        if hunk_header is not None:
            hunks.append(_build_hunk(hunk_header, hunk_lines))
        hunk_header = None
        hunk_lines = []

    def flush_file():
        nonlocal old_path, new_path, hunks, in_file
        flush_hunk()
        if in_file:
            files.append(_build_file_change(old_path, new_path, hunks))
        old_path = new_path = None
        hunks = []
        in_file = False

    for raw_line in diff_text.splitlines():
        if raw_line.startswith("diff --git "):
            flush_file()
            in_file = True
            parts = raw_line.split(maxsplit=3)
            old_path = _strip_ab_prefix(parts[2]) if len(parts) > 2 else None
            new_path = _strip_ab_prefix(parts[3]) if len(parts) > 3 else None
            continue

        if hunk_header is None and raw_line.startswith("--- "):
            if hunks:
                # a new file section without a "diff --git" line
                flush_file()
            in_file = True
            old_path = _parse_path(raw_line[4:])
            continue

        if hunk_header is None and raw_line.startswith("+++ "):
            in_file = True
            new_path = _parse_path(raw_line[4:])
            continue

        if raw_line.startswith("@@ "):
            flush_hunk()
            in_file = True
            hunk_header = HUNK_HEADER_RE.match(raw_line)
            if hunk_header is None:
                raise ValueError(f"Invalid hunk header: {raw_line}")
            hunk = _build_hunk(hunk_header, [])
            old_remaining, new_remaining = hunk.old_count, hunk.new_count
            continue

        if hunk_header is not None:
            if raw_line.startswith("\\"):
                hunk_lines.append(raw_line)
                continue
            if raw_line.startswith("+"):
                new_remaining -= 1
            elif raw_line.startswith("-"):
                old_remaining -= 1
            elif raw_line.startswith(" ") or raw_line == "":
                old_remaining -= 1
                new_remaining -= 1
            else:
                flush_hunk()
                continue
            hunk_lines.append(raw_line)
            if old_remaining <= 0 and new_remaining <= 0:
                flush_hunk()
            continue

        if hunks and raw_line.startswith("\\"):
            # "\ No newline at end of file" trailing a completed hunk
            last = hunks.pop()
            hunks.append(DiffHunk(
                old_start=last.old_start, old_count=last.old_count,
                new_start=last.new_start, new_count=last.new_count,
                lines=last.lines + (raw_line,), section=last.section,
            ))

    flush_file()
    return files


def _build_hunk(match: re.Match, lines: list[str]) -> DiffHunk:
    return DiffHunk(
        old_start=int(match.group("old_start")),
        old_count=int(match.group("old_count")) if match.group("old_count") else 1,
        new_start=int(match.group("new_start")),
        new_count=int(match.group("new_count")) if match.group("new_count") else 1,
        lines=tuple(lines),
        section=match.group("section").strip(),
    )


def _build_file_change(old_path: Optional[str], new_path: Optional[str], hunks: list[DiffHunk]) -> FileChange:
    if old_path == DEV_NULL:
        return FileChange(path=new_path or "<unknown>", edit_type=EditType.ADDED, hunks=tuple(hunks))
    if new_path == DEV_NULL:
        return FileChange(path=old_path or "<unknown>", edit_type=EditType.DELETED, hunks=tuple(hunks))
    if old_path and new_path and old_path != new_path:
        return FileChange(path=new_path, edit_type=EditType.RENAMED, hunks=tuple(hunks), old_path=old_path)
    return FileChange(path=new_path or old_path or "<unknown>", edit_type=EditType.MODIFIED, hunks=tuple(hunks))


def _parse_path(value: str) -> str:
    token = value.strip().split("\t", 1)[0]
    return _strip_ab_prefix(token)


def _strip_ab_prefix(path: str) -> str:
    if path.startswith("a/") or path.startswith("b/"):
        return path[2:]
    return path
