"""Pressure stall information (PSI) reader for cgroup v2 hosts."""

import logging
from pathlib import Path
from typing import NamedTuple, Optional

from dockmetrics.models.snapshot import PressureMetrics

logger = logging.getLogger(__name__)

PRESSURE_FILES = ("cpu.pressure", "memory.pressure", "io.pressure")


class ContainerPressure(NamedTuple):
    """Pressure for the three resources of one container."""

    cpu: Optional[PressureMetrics]
    memory: Optional[PressureMetrics]
    io: Optional[PressureMetrics]


NO_PRESSURE = ContainerPressure(None, None, None)


def parse_pressure(content: str) -> Optional[PressureMetrics]:
    """Parse the contents of a ``*.pressure`` file.

    Expected format::

        some avg10=0.00 avg60=0.00 avg300=0.00 total=0
        full avg10=0.00 avg60=0.00 avg300=0.00 total=0

    Returns None when the ``some`` line is missing or any line carries a
    malformed average. A missing ``full`` line leaves the ``full*`` fields
    unset.
    """
    values: dict[str, tuple[float, float, float]] = {}

    for line in content.splitlines():
        parts = line.split()
        if not parts:
            continue
        kind = parts[0]
        if kind not in ("some", "full"):
            return None

        averages: dict[str, float] = {}
        for field in parts[1:]:
            key, sep, raw = field.partition("=")
            if not sep:
                return None
            if key in ("avg10", "avg60", "avg300"):
                try:
                    averages[key] = float(raw)
                except ValueError:
                    return None

        if len(averages) != 3:
            return None
        values[kind] = (averages["avg10"], averages["avg60"], averages["avg300"])

    some = values.get("some")
    if some is None:
        return None

    full = values.get("full", (None, None, None))
    return PressureMetrics(
        some10=some[0],
        some60=some[1],
        some300=some[2],
        full10=full[0],
        full60=full[1],
        full300=full[2],
    )


class PressureReader:
    """Reads per-container PSI from the cgroup v2 filesystem.

    Support is detected once per process. When no candidate cgroup
    directory exposes the pressure files, every later call returns
    ``NO_PRESSURE`` without touching the filesystem.
    """

    def __init__(self, cgroup_root: Path | str = "/sys/fs/cgroup") -> None:
        self.cgroup_root = Path(cgroup_root)
        self._supported: Optional[bool] = None
        self._base_path: Optional[Path] = None

    @property
    def is_supported(self) -> bool:
        if self._supported is None:
            self._detect_support()
        return bool(self._supported)

    def _base_candidates(self) -> list[Path]:
        return [
            self.cgroup_root / "system.slice",
            self.cgroup_root / "docker",
            self.cgroup_root,
        ]

    def _has_pressure_files(self, path: Path) -> bool:
        try:
            return all((path / name).is_file() for name in PRESSURE_FILES)
        except OSError:
            return False

    def _detect_support(self) -> None:
        for path in self._base_candidates():
            if self._has_pressure_files(path):
                self._supported = True
                self._base_path = path
                logger.info(f"PSI support found at {path}")
                return

        self._supported = False
        logger.warning(
            f"PSI not supported - no cgroup v2 pressure files under {self.cgroup_root}"
        )

    def find_container_cgroup(self, container_id: str) -> Optional[Path]:
        """Locate the cgroup directory for a container.

        Probe order: systemd scope, cgroupfs directory, prefix matches in
        both layouts, then the root cgroup as a last resort.
        """
        system_slice = self.cgroup_root / "system.slice"
        docker_dir = self.cgroup_root / "docker"

        candidates = [
            system_slice / f"docker-{container_id}.scope",
            docker_dir / container_id,
        ]
        for parent, pattern in (
            (system_slice, f"docker-{container_id}*.scope"),
            (docker_dir, f"{container_id}*"),
        ):
            try:
                if parent.is_dir():
                    candidates.extend(sorted(parent.glob(pattern)))
            except OSError as e:
                logger.debug(f"Cannot scan {parent} for {container_id}: {e}")
        candidates.append(self.cgroup_root)

        for path in candidates:
            if self._has_pressure_files(path):
                return path
        return None

    def _read_file(self, path: Path) -> Optional[PressureMetrics]:
        try:
            content = path.read_text()
        except FileNotFoundError:
            return None
        except (PermissionError, OSError) as e:
            logger.debug(f"Cannot read {path}: {e}")
            return None
        return parse_pressure(content)

    def read_container(self, container_id: str) -> ContainerPressure:
        """Read CPU, memory and I/O pressure for a container."""
        if not self.is_supported:
            return NO_PRESSURE

        cgroup = self.find_container_cgroup(container_id)
        if cgroup is None:
            return NO_PRESSURE

        return ContainerPressure(
            cpu=self._read_file(cgroup / "cpu.pressure"),
            memory=self._read_file(cgroup / "memory.pressure"),
            io=self._read_file(cgroup / "io.pressure"),
        )
