"""Load tracelink configuration from pyproject.toml."""

import warnings
from dataclasses import dataclass
from pathlib import Path

try:
    import tomllib  # type: ignore[import-not-found]
except ImportError:
    import tomli as tomllib

from tracelink.core.models import DEFAULT_USER
from tracelink.errors import ParseError
from tracelink.storage.repository import DEFAULT_LINKS_FILE

RECOGNIZED_KEYS = {
    "project_root",
    "links_file",
    "default_user",
    "lock_timeout",
    "recover_corrupt_store",
    "max_trace_depth",
    "rtm_sort_by",
    "rtm_show_descriptions",
    "rtm_show_coverage",
    "rtm_show_verification_details",
}


@dataclass
class TracelinkConfig:
    """Configuration schema for tracelink.

    Attributes:
        project_root (str): Directory holding ``trace/``, ``risks/`` and
            ``documents/``, relative to the directory of pyproject.toml.
        links_file (str): Link store path relative to ``project_root``.
        default_user (str): Recorded as ``created_by`` / ``verified_by``
            when the command line does not name a user.
        lock_timeout (float): Seconds to wait for the link store lock.
        recover_corrupt_store (bool): Move a corrupted link store aside and
            start empty instead of failing.
        max_trace_depth (int | None): Depth cap for ``trace`` commands.
        rtm_sort_by (str): Default RTM sort key.
        rtm_show_descriptions (bool): Include the Description column.
        rtm_show_coverage (bool): Include the Coverage % column.
        rtm_show_verification_details (bool): Include the Last Verified and
            Notes columns.

    Examples:
        Construct a config with custom settings::

            >>> config = TracelinkConfig(default_user="alice", max_trace_depth=5)
            >>> config.links_file
            'trace/links.json'
    """

    project_root: str = "."
    links_file: str = DEFAULT_LINKS_FILE.as_posix()
    default_user: str = DEFAULT_USER
    lock_timeout: float = 10.0
    recover_corrupt_store: bool = False
    max_trace_depth: int | None = None
    rtm_sort_by: str = "id"
    rtm_show_descriptions: bool = False
    rtm_show_coverage: bool = True
    rtm_show_verification_details: bool = False
    config_dir: Path | None = None

    @property
    def root_path(self) -> Path:
        """Absolute project root, resolved against the config file's directory."""
        base = self.config_dir if self.config_dir is not None else Path.cwd()
        return (base / self.project_root).resolve()

    @property
    def links_path(self) -> Path:
        return self.root_path / self.links_file

    @property
    def verification_path(self) -> Path:
        """Evidence ledger stored beside the link store."""
        return self.links_path.with_name("verification.yml")


def load_config(config_path: Path | None = None) -> TracelinkConfig:
    """
    Load tracelink configuration from pyproject.toml.

    Looks for the [tool.tracelink] section. A missing file or section gives
    the defaults.

    Args:
        config_path: Optional path to pyproject.toml. If None, uses cwd.

    Returns:
        TracelinkConfig with loaded values or defaults.

    Raises:
        ParseError: If pyproject.toml is not valid TOML.
    """
    if config_path is None:
        config_path = Path.cwd() / "pyproject.toml"

    if not config_path.exists():
        return TracelinkConfig(config_dir=config_path.parent)

    try:
        with open(config_path, "rb") as f:
            pyproject = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ParseError(f"Invalid TOML in {config_path}: {e}") from e

    tracelink_config = pyproject.get("tool", {}).get("tracelink", {})

    unknown = set(tracelink_config.keys()) - RECOGNIZED_KEYS
    if unknown:
        warnings.warn(
            f"Unrecognized keys in [tool.tracelink]: {', '.join(sorted(unknown))}",
            stacklevel=2,
        )

    max_depth = tracelink_config.get("max_trace_depth")
    return TracelinkConfig(
        project_root=tracelink_config.get("project_root", "."),
        links_file=tracelink_config.get("links_file", DEFAULT_LINKS_FILE.as_posix()),
        default_user=tracelink_config.get("default_user", DEFAULT_USER),
        lock_timeout=float(tracelink_config.get("lock_timeout", 10.0)),
        recover_corrupt_store=tracelink_config.get("recover_corrupt_store", False),
        max_trace_depth=int(max_depth) if max_depth is not None else None,
        rtm_sort_by=tracelink_config.get("rtm_sort_by", "id"),
        rtm_show_descriptions=tracelink_config.get("rtm_show_descriptions", False),
        rtm_show_coverage=tracelink_config.get("rtm_show_coverage", True),
        rtm_show_verification_details=tracelink_config.get("rtm_show_verification_details", False),
        config_dir=config_path.parent,
    )
