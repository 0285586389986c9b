"""
Engine Probe Module

Finds an installed LibreOffice (soffice) binary and remembers the answer.

Candidate locations per operating system are plain data held by
PlatformPathResolver; PlatformEngineProbe tries each one with a version
query and memoizes the first that answers. The memoized value is never
invalidated: an engine installed while the process runs is only picked up
by a new probe instance.
"""

import os
import shutil
import platform
import subprocess
import logging
from threading import Lock
from typing import Optional, Dict, List, Callable, Sequence

from .models import EnginePresence

logger = logging.getLogger(__name__)


DEFAULT_CANDIDATES: Dict[str, List[str]] = {
    'Linux': [
        'libreoffice',
        'soffice',
        '/usr/bin/soffice',
        '/usr/lib/libreoffice/program/soffice',
        '/opt/libreoffice/program/soffice',
        '/snap/bin/libreoffice',
    ],
    'Darwin': [
        '/Applications/LibreOffice.app/Contents/MacOS/soffice',
        'soffice',
        'libreoffice',
    ],
    'Windows': [
        r"C:\Program Files\LibreOffice\program\soffice.exe",
        r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
        'soffice.exe',
        'soffice',
    ],
}


class PlatformPathResolver:
    """
    Turns the per-OS candidate list into concrete executable paths.

    Bare names are looked up on PATH; absolute paths must exist.
    """

    def __init__(
        self,
        candidates: Optional[Dict[str, List[str]]] = None,
        explicit_path: Optional[str] = None,
        system: Optional[str] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
        isfile: Callable[[str], bool] = os.path.isfile,
    ):
        self.candidates = dict(DEFAULT_CANDIDATES)
        if candidates:
            self.candidates.update(candidates)
        self.explicit_path = explicit_path
        self.system = system or platform.system()
        self._which = which
        self._isfile = isfile

    def candidate_names(self) -> List[str]:
        """Ordered raw candidates for the current OS (explicit path first)."""
        names = list(self.candidates.get(self.system, self.candidates['Linux']))
        if self.explicit_path:
            names.insert(0, self.explicit_path)
        return names

    def resolve(self) -> List[str]:
        """Ordered, de-duplicated executable paths that exist on this machine."""
        resolved = []
        for name in self.candidate_names():
            if os.path.isabs(name) or os.sep in name:
                path = name if self._isfile(name) else None
            else:
                path = self._which(name)
            if path and path not in resolved:
                resolved.append(path)
        return resolved


class PlatformEngineProbe:
    """
    Memoized engine discovery.

    Owned by a long-lived service object; tests build a fresh one per case.
    """

    def __init__(
        self,
        resolver: Optional[PlatformPathResolver] = None,
        timeout: float = 5.0,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        """
        Initialize the probe.

        Args:
            resolver: Source of candidate executable paths
            timeout: Seconds allowed for each version query
            runner: subprocess.run compatible callable
        """
        self.resolver = resolver or PlatformPathResolver()
        self.timeout = timeout
        self._runner = runner
        self._presence: Optional[EnginePresence] = None
        self._lock = Lock()

    @property
    def probed(self) -> bool:
        return self._presence is not None

    def probe(self) -> EnginePresence:
        """Return the cached presence, probing on first use only."""
        if self._presence is not None:
            return self._presence

        with self._lock:
            if self._presence is None:
                self._presence = self._discover(self.resolver.resolve())
        return self._presence

    def _discover(self, candidates: Sequence[str]) -> EnginePresence:
        for candidate in candidates:
            version = self._query_version(candidate)
            if version is not None:
                logger.info(f"LibreOffice found at: {candidate} ({version or 'unknown version'})")
                return EnginePresence(available=True, resolved_path=candidate, version=version)

        logger.warning("LibreOffice not found. Documents will use fallback rendering.")
        return EnginePresence(available=False)

    def _query_version(self, candidate: str) -> Optional[str]:
        """Run `<candidate> --version`; the first output line on success, else None."""
        try:
            result = self._runner(
                [candidate, '--version'],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Version query timed out for {candidate}")
            return None
        except OSError as e:
            logger.debug(f"Could not run {candidate}: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"{candidate} --version exited with code {result.returncode}")
            return None

        lines = (result.stdout or '').strip().splitlines()
        return lines[0].strip() if lines else ''
