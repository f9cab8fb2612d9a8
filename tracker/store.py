"""
Storage for per-model record sets, archived reports and the run lock.
"""
import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .diff import diff_urls, render_diff
from .models import DiffResult, ListingRecord, ModelKey, ModelRecordSet, Snapshot
from .snapshot import parse_snapshot, render_snapshot
from .utils import file_timestamp

logger = logging.getLogger(__name__)

REPORT_PREFIX = "report_"
DIFF_SUFFIX = "_new.txt"
_NOTE_SEPARATOR_RE = re.compile(r"^={5,}")
_REPORT_TS_RE = re.compile(r"^report_(.+)\.txt$")


class StateFileError(ValueError):
    """A persisted record set exists but cannot be read."""


class LockHeldError(RuntimeError):
    """Another run holds the lock."""


def _default_mode() -> int:
    """Permission bits a plain ``open(path, "w")`` would give under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _write_atomic(path: Path, text: str):
    """Write ``text`` to ``path`` through a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        # mkstemp creates the file owner-only
        os.chmod(tmp, _default_mode())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class RecordStore:
    """One JSON file per model holding every record ever seen for it."""

    def __init__(self, output_dir):
        self.output_dir = Path(output_dir)

    def path_for(self, key: ModelKey) -> Path:
        return self.output_dir / f"{key.slug}.json"

    def load(self, key: ModelKey) -> ModelRecordSet:
        """Load a model's records; a missing file means no history yet."""
        path = self.path_for(key)
        if not path.exists():
            logger.debug("No state for %s yet (%s)", key.label, path)
            return ModelRecordSet(key=key)

        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as e:
            raise StateFileError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, list):
            raise StateFileError(f"Expected a list of records in {path}")

        # Entries missing every timestamp date from the file's last write
        written_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        records: Dict[str, ListingRecord] = {}
        for item in data:
            if not isinstance(item, dict) or not item.get("link"):
                logger.warning("Skipping record without link in %s", path)
                continue
            try:
                record = ListingRecord.from_dict(item, default_time=written_at)
            except ValueError as e:
                raise StateFileError(f"Unreadable record {item.get('link')!r} in {path}: {e}") from e
            records[record.link] = record
        return ModelRecordSet(key=key, records=records)

    def load_many(self, keys: Iterable[ModelKey]) -> Dict[ModelKey, ModelRecordSet]:
        return {key: self.load(key) for key in keys}

    def save(self, record_set: ModelRecordSet) -> Path:
        """Rewrite the model's file with the full record set."""
        path = self.path_for(record_set.key)
        text = json.dumps(record_set.to_list(), ensure_ascii=False, indent=2)
        _write_atomic(path, text + "\n")
        logger.debug("Saved %d record(s) to %s", len(record_set), path)
        return path


class RunLock:
    """
    Exclusive-access scope around read-modify-write of the record store.

    The lock is a file created with O_EXCL holding the owner's pid. A lock
    left behind by a process that no longer exists is taken over.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._held = False

    def _owner_alive(self) -> bool:
        try:
            pid = int(self.path.read_text().strip())
        except (OSError, ValueError):
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def acquire(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._owner_alive():
                    raise LockHeldError(f"Another run holds {self.path}")
                logger.warning("Removing stale lock %s", self.path)
                self.path.unlink(missing_ok=True)
                continue
            with os.fdopen(fd, "w") as fh:
                fh.write(str(os.getpid()))
            self._held = True
            return self
        raise LockHeldError(f"Could not acquire {self.path}")

    def release(self):
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()


@dataclass
class ArchivedReport:
    name: str
    text: str

    @property
    def snapshot(self) -> Snapshot:
        return parse_snapshot(self.text)

    @property
    def timestamp(self) -> str:
        m = _REPORT_TS_RE.match(self.name)
        return m.group(1) if m else self.name


class ReportArchive:
    """Directory of report, diff, summary and picks text files."""

    def __init__(self, reports_dir):
        self.reports_dir = Path(reports_dir)

    def report_name(self, captured_at: datetime) -> str:
        return f"{REPORT_PREFIX}{file_timestamp(captured_at)}.txt"

    def write_snapshot(self, snapshot: Snapshot, captured_at: Optional[datetime] = None) -> Path:
        stamp = captured_at or snapshot.captured_at
        if stamp is None:
            raise ValueError("snapshot has no capture time to name it by")
        path = self.reports_dir / self.report_name(stamp)
        _write_atomic(path, render_snapshot(snapshot))
        logger.info("Report saved to %s", path)
        return path

    def list_reports(self) -> List[str]:
        """Report filenames, oldest first."""
        if not self.reports_dir.exists():
            return []
        return sorted(p.name for p in self.reports_dir.iterdir()
                      if p.name.startswith(REPORT_PREFIX) and p.name.endswith(".txt"))

    def read(self, name: str) -> ArchivedReport:
        return ArchivedReport(name=name, text=(self.reports_dir / name).read_text(encoding="utf-8"))

    def latest_pair(self) -> Tuple[Optional[ArchivedReport], Optional[ArchivedReport]]:
        """The newest report and the one before it (either may be None)."""
        names = self.list_reports()
        latest = self.read(names[-1]) if names else None
        previous = self.read(names[-2]) if len(names) >= 2 else None
        return latest, previous

    def diff_name(self, result: DiffResult) -> str:
        prev_ts = _REPORT_TS_RE.sub(r"\1", result.previous_name or "")
        latest_ts = _REPORT_TS_RE.sub(r"\1", result.latest_name)
        return f"{prev_ts}_{latest_ts}{DIFF_SUFFIX}"

    def write_diff(self, result: DiffResult) -> Path:
        path = self.reports_dir / self.diff_name(result)
        _write_atomic(path, render_diff(result))
        return path

    def latest_diff_urls(self) -> Set[str]:
        if not self.reports_dir.exists():
            return set()
        names = sorted(p.name for p in self.reports_dir.iterdir() if p.name.endswith(DIFF_SUFFIX))
        if not names:
            return set()
        return diff_urls((self.reports_dir / names[-1]).read_text(encoding="utf-8"))

    def write_note(self, prefix: str, date: str, text: str) -> Path:
        """Write a ``<prefix>_<date>.txt`` note such as an LLM summary."""
        path = self.reports_dir / f"{prefix}_{date}.txt"
        _write_atomic(path, text)
        return path

    def latest_note(self, prefix: str) -> Optional[str]:
        """Body of the newest ``<prefix>_*.txt`` note, without its header block."""
        if not self.reports_dir.exists():
            return None
        names = sorted(p.name for p in self.reports_dir.iterdir()
                       if p.name.startswith(f"{prefix}_") and p.name.endswith(".txt"))
        if not names:
            return None
        raw = (self.reports_dir / names[-1]).read_text(encoding="utf-8")
        lines = raw.split("\n")
        for idx, line in enumerate(lines):
            if _NOTE_SEPARATOR_RE.match(line):
                return "\n".join(lines[idx + 1:]).strip()
        return raw.strip()
