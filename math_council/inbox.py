"""Problem files for the council: inbox scanning, frontmatter validation, archiving.

A problem file is Markdown whose body is the problem statement, with
optional YAML frontmatter overriding the session settings::

    ---
    difficulty: hard
    members: 5
    ---
    Does every even number greater than 2 split into two primes?
"""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import frontmatter
import yaml

logger = logging.getLogger(__name__)

_KNOWN_KEYS = frozenset({"difficulty", "members"})


class ProblemFileError(ValueError):
    """A problem file with no statement or unusable frontmatter."""


@dataclass(frozen=True)
class ProblemFile:
    path: Path
    problem: str
    difficulty: str | None = None    # None: use the CLI flag or config default
    members: int | None = None


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Problem files waiting in the inbox, oldest first. Dotfiles are skipped."""
    files = [p for p in inbox_dir.glob("*.md") if p.is_file() and not p.name.startswith(".")]
    return sorted(files, key=lambda p: (p.stat().st_mtime, p.name))


def _coerce_members(value: object, source: str) -> int:
    # bool is an int subclass; "members: yes" is not a count
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ProblemFileError(f"{source}: members must be a whole number, got {value!r}")
    try:
        return int(value)
    except ValueError:
        raise ProblemFileError(f"{source}: members must be a whole number, got {value!r}") from None


def parse_file(file_path: Path) -> ProblemFile:
    """Read a problem file and validate its frontmatter.

    Difficulty is normalised to a lower-case label; whether the label is
    allowed is left to the caller, which knows the configured set.

    Raises:
        ProblemFileError: Malformed YAML, an empty statement, or a
            non-numeric ``members`` value.
    """
    try:
        post = frontmatter.load(str(file_path))
    except yaml.YAMLError as exc:
        raise ProblemFileError(f"{file_path.name}: invalid frontmatter: {exc}") from exc

    problem = post.content.strip()
    if not problem:
        raise ProblemFileError(f"{file_path.name}: no problem statement")

    unknown = set(post.metadata) - _KNOWN_KEYS
    if unknown:
        logger.debug("Ignoring frontmatter keys in %s: %s", file_path.name, ", ".join(sorted(unknown)))

    difficulty = post.metadata.get("difficulty")
    members = post.metadata.get("members")
    return ProblemFile(
        path=file_path,
        problem=problem,
        difficulty=str(difficulty).strip().lower() if difficulty is not None else None,
        members=_coerce_members(members, file_path.name) if members is not None else None,
    )


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move a processed problem file into the archive.

    The archived name is ``[FAILED_]<YYYY-MM-DDTHHMM>_<name>``; a numeric
    suffix is added when a file of that name was already archived in the
    same minute.
    """
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    stem = f"{'FAILED_' if failed else ''}{timestamp}_{file_path.stem}"
    dest = archive_dir / f"{stem}{file_path.suffix}"
    counter = 1
    while dest.exists():
        dest = archive_dir / f"{stem}-{counter}{file_path.suffix}"
        counter += 1
    shutil.move(str(file_path), str(dest))
    logger.debug("Archived %s as %s", file_path.name, dest.name)
    return dest
