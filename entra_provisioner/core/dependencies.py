"""Client library presence checks run before any remote call.

Each dependency moves MISSING → INSTALLED → IMPORTED. Installation is only
attempted when an installer is configured; otherwise a missing library fails
the run with ``DependencyUnavailableError`` and a pip hint.
"""
from __future__ import annotations
import enum
import importlib
import importlib.util
import logging
import subprocess
import sys
from dataclasses import dataclass
from types import ModuleType
from typing import Callable, Optional, Sequence

from .exceptions import DependencyUnavailableError

logger = logging.getLogger(__name__)


class DependencyState(enum.Enum):
    MISSING = "missing"
    INSTALLED = "installed"
    IMPORTED = "imported"


@dataclass
class Dependency:
    """A client library, by import name and by its name on the package index."""

    module: str
    distribution: str
    state: DependencyState = DependencyState.MISSING
    loaded: Optional[ModuleType] = None


RUNTIME_DEPENDENCIES = (
    ("requests", "requests"),
    ("msal", "msal"),
    ("jwt", "PyJWT"),
)

Installer = Callable[[str], None]


def pip_install(distribution: str) -> None:
    """Install a distribution into the running interpreter's environment."""
    subprocess.run([sys.executable, "-m", "pip", "install", "--quiet", distribution], check=True)


class DependencyCheck:
    """Install-then-import strategy over a fixed dependency list."""

    def __init__(
        self,
        dependencies: Sequence[tuple[str, str]] = RUNTIME_DEPENDENCIES,
        installer: Optional[Installer] = None,
        find_spec: Callable = importlib.util.find_spec,
        import_module: Callable[[str], ModuleType] = importlib.import_module,
    ):
        self.dependencies = [Dependency(module, distribution) for module, distribution in dependencies]
        self.installer = installer
        self._find_spec = find_spec
        self._import_module = import_module

    def ensure(self) -> None:
        """Make sure every dependency is installed.

        Raises:
            DependencyUnavailableError: If a library is missing and cannot be installed
        """
        for dep in self.dependencies:
            if dep.state is not DependencyState.MISSING:
                continue
            if self._find_spec(dep.module) is not None:
                dep.state = DependencyState.INSTALLED
                continue
            if self.installer is None:
                raise DependencyUnavailableError(
                    f"Python package '{dep.distribution}' is not installed (pip install {dep.distribution})"
                )
            logger.info("Installing missing dependency %s", dep.distribution)
            try:
                self.installer(dep.distribution)
            except (OSError, subprocess.CalledProcessError) as e:
                raise DependencyUnavailableError(f"Failed to install '{dep.distribution}': {e}") from e
            importlib.invalidate_caches()
            if self._find_spec(dep.module) is None:
                raise DependencyUnavailableError(f"'{dep.distribution}' still not importable after install")
            dep.state = DependencyState.INSTALLED

    def import_all(self) -> None:
        """Import every installed dependency once.

        Raises:
            DependencyUnavailableError: If ``ensure()`` did not run first or an import fails
        """
        for dep in self.dependencies:
            if dep.state is DependencyState.IMPORTED:
                continue
            if dep.state is DependencyState.MISSING:
                raise DependencyUnavailableError(f"'{dep.distribution}' has not been checked for installation")
            try:
                dep.loaded = self._import_module(dep.module)
            except ImportError as e:
                raise DependencyUnavailableError(f"Failed to import '{dep.module}': {e}") from e
            dep.state = DependencyState.IMPORTED
            logger.debug("Imported %s", dep.module)

    def states(self) -> dict[str, DependencyState]:
        return {dep.module: dep.state for dep in self.dependencies}
