"""
Replace duplicate files with symlinks to the canonical copy.

Features:
- Safety checks before each replacement (still a regular file, same size,
  same content, canonical still present)
- Atomic swap: the symlink is created under a temporary name, verified,
  then renamed over the duplicate. The duplicate is never removed
  without its replacement already in place.
- Permission bits of the duplicate are restored on the new link
- Members already linked to the canonical file are left alone, so a
  second run over a deduplicated tree is a no-op
- Errors are recorded per member, other members and groups proceed
"""

from __future__ import annotations

import os
import stat
import uuid
from pathlib import Path
from typing import Callable, Optional

import structlog

from symdedup.config.exceptions import HashError, ReplacementError
from symdedup.fingerprint import DEFAULT_ALGORITHM, DEFAULT_CHUNK_SIZE, hash_file
from symdedup.models import (
    DuplicateGroup,
    ErrorKind,
    ReplacementOutcome,
    ReplacementResult,
    RunError,
)
from symdedup.report_generator import ReportGenerator

logger = structlog.get_logger(__name__)

TEMP_SUFFIX = ".symdedup-tmp"


def restore_mode(path: Path, mode: int) -> None:
    """
    chmod a freshly created link.

    Where the platform has lchmod the link itself gets the bits; elsewhere
    chmod follows the link and applies to its target.
    """
    if os.chmod in os.supports_follow_symlinks:
        try:
            os.chmod(path, mode, follow_symlinks=False)
            return
        except NotImplementedError:
            pass
    os.chmod(path, mode)


class SymlinkReplacer:
    """
    Swap every non-canonical member of a duplicate group for a symlink.

    The first member of a group is canonical. Groups are processed in
    order, synchronously, once traversal is over.
    """

    def __init__(
        self,
        dry_run: bool = False,
        verify: bool = True,
        algorithm: str = DEFAULT_ALGORITHM,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        report: Optional[ReportGenerator] = None,
        progress_callback: Optional[Callable[[ReplacementResult], None]] = None,
    ):
        """
        Initialize replacer.

        Args:
            dry_run: Only report, never touch the filesystem
            verify: Re-hash the canonical and each duplicate before replacing
            algorithm: Digest algorithm used by the scan
            chunk_size: For re-hashing verification
            report: Receives one report line per group
            progress_callback: Called after each member
        """
        self.dry_run = dry_run
        self.verify = verify
        self.algorithm = algorithm
        self.chunk_size = chunk_size
        self.report = report
        self.progress_callback = progress_callback
        self._cancelled = False

    def cancel(self) -> None:
        """Stop after the member being processed."""
        self._cancelled = True

    def replace_groups(self, groups: list[DuplicateGroup]) -> ReplacementResult:
        """
        Report and (unless dry-run) replace every actionable group.

        Args:
            groups: Duplicate groups; single-member groups are ignored

        Returns:
            ReplacementResult with counts and details
        """
        result = ReplacementResult()

        actionable = [g for g in groups if g.is_actionable]
        logger.info(
            "dedup_replacement_started",
            groups=len(actionable),
            dry_run=self.dry_run,
        )

        for group in actionable:
            if self._cancelled:
                logger.info("dedup_replacement_cancelled")
                break
            self.replace_group(group, result)

        logger.info(
            "dedup_replacement_completed",
            replaced=result.replaced,
            already_linked=result.already_linked,
            skipped=result.skipped,
            failed=result.failed,
            bytes_saved=result.bytes_saved,
        )
        return result

    def replace_group(self, group: DuplicateGroup, result: ReplacementResult) -> None:
        result.groups_processed += 1
        if self.report is not None:
            self.report.write_group_line(group)

        if self.dry_run:
            return

        canonical = group.canonical
        try:
            canonical_st = self._check_canonical(group)
        except ReplacementError as e:
            for member in group.duplicates:
                self._skip(result, member, f"canonical unusable: {e.message}")
                result.record(ReplacementOutcome.skipped)
            logger.warning(
                "dedup_group_skipped",
                canonical=str(canonical),
                reason=e.message,
            )
            return

        canonical_abs = Path(os.path.abspath(canonical))

        for member in group.duplicates:
            if self._cancelled:
                break
            outcome = self._replace_member(group, canonical_abs, canonical_st, member, result)
            result.record(outcome)
            if self.progress_callback:
                self.progress_callback(result)

    def _check_canonical(self, group: DuplicateGroup) -> os.stat_result:
        """
        The canonical member must still be a regular file of the group size.

        With verify, its content is re-hashed once per group: every duplicate
        is about to point at it.
        """
        canonical = group.canonical
        try:
            st = os.lstat(canonical)
        except OSError as e:
            raise ReplacementError(canonical, e.strerror or str(e)) from e

        if not stat.S_ISREG(st.st_mode):
            raise ReplacementError(canonical, "no longer a regular file")
        if st.st_size != group.size:
            raise ReplacementError(canonical, "size changed since scan")
        if self.verify:
            try:
                digest = hash_file(canonical, self.algorithm, self.chunk_size)
            except HashError as e:
                raise ReplacementError(canonical, e.message) from e
            if digest != group.fingerprint.digest:
                raise ReplacementError(canonical, "content changed since scan")
        return st

    def _safety_check(
        self,
        group: DuplicateGroup,
        canonical_st: os.stat_result,
        member: Path,
    ) -> tuple[Optional[ReplacementOutcome], str, Optional[os.stat_result]]:
        """
        Decide whether member may be replaced.

        Returns:
            (outcome_if_not_replaceable, reason, member_lstat)
        """
        try:
            st = os.lstat(member)
        except FileNotFoundError:
            return ReplacementOutcome.skipped, "File no longer exists", None

        if stat.S_ISLNK(st.st_mode):
            try:
                target = os.stat(member)
            except OSError:
                return ReplacementOutcome.skipped, "Dangling symlink", None
            if (target.st_dev, target.st_ino) == (canonical_st.st_dev, canonical_st.st_ino):
                return ReplacementOutcome.already_linked, "", None
            return ReplacementOutcome.skipped, "Symlink to another file", None

        if not stat.S_ISREG(st.st_mode):
            return ReplacementOutcome.skipped, "Not a regular file", None

        if (st.st_dev, st.st_ino) == (canonical_st.st_dev, canonical_st.st_ino):
            return ReplacementOutcome.skipped, "Hard link to canonical file", None

        if st.st_size != group.size:
            return ReplacementOutcome.skipped, "Size changed since scan", None

        if self.verify:
            digest = hash_file(member, self.algorithm, self.chunk_size)
            if digest != group.fingerprint.digest:
                return ReplacementOutcome.skipped, "Hash mismatch (file modified since scan)", None

        return None, "", st

    def _replace_member(
        self,
        group: DuplicateGroup,
        canonical_abs: Path,
        canonical_st: os.stat_result,
        member: Path,
        result: ReplacementResult,
    ) -> ReplacementOutcome:
        try:
            outcome, reason, member_st = self._safety_check(group, canonical_st, member)
        except (OSError, HashError) as e:
            return self._fail(result, member, str(e))

        if outcome is ReplacementOutcome.already_linked:
            logger.debug("dedup_already_linked", file_path=str(member))
            return outcome
        if outcome is ReplacementOutcome.skipped:
            self._skip(result, member, reason)
            return outcome

        mode = stat.S_IMODE(member_st.st_mode)
        temp_link = member.with_name(f".symdedup-{uuid.uuid4().hex}{TEMP_SUFFIX}")

        try:
            os.symlink(canonical_abs, temp_link)
            try:
                linked = os.stat(temp_link)
            except OSError as e:
                raise ReplacementError(temp_link, f"temporary link unresolvable: {e}") from e
            if (linked.st_dev, linked.st_ino) != (canonical_st.st_dev, canonical_st.st_ino):
                raise ReplacementError(temp_link, "temporary link does not resolve to canonical file")
            os.replace(temp_link, member)
        except (OSError, ReplacementError) as e:
            self._discard_temp(temp_link)
            return self._fail(result, member, str(e))

        try:
            restore_mode(member, mode)
        except OSError as e:
            result.mode_not_preserved.append((str(member), str(e)))
            logger.warning(
                "dedup_mode_not_restored",
                file_path=str(member),
                mode=oct(mode),
                error=str(e),
            )

        result.bytes_saved += group.size
        result.replaced_files.append(str(member))
        logger.info(
            "dedup_file_linked",
            file_path=str(member),
            target=str(canonical_abs),
            size_bytes=group.size,
        )
        return ReplacementOutcome.replaced

    @staticmethod
    def _discard_temp(temp_link: Path) -> None:
        try:
            os.unlink(temp_link)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(
                "dedup_temp_link_cleanup_failed",
                temp_link=str(temp_link),
                error=str(e),
            )

    @staticmethod
    def _skip(result: ReplacementResult, member: Path, reason: str) -> None:
        result.skip_reasons.append((str(member), reason))
        logger.debug("dedup_file_skipped", file_path=str(member), reason=reason)

    @staticmethod
    def _fail(result: ReplacementResult, member: Path, message: str) -> ReplacementOutcome:
        result.errors.append(RunError(kind=ErrorKind.replacement, path=member, message=message))
        logger.error("dedup_replacement_failed", file_path=str(member), error=message)
        return ReplacementOutcome.failed
