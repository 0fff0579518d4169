"""Project configuration loader for esrpack.

Reads ``esrpack.toml`` from the project root and exposes every setting as
a plain attribute of :class:`PackagerConfig`.  The config object is passed
explicitly to the pipeline; there is no module-level instance.

Usage::

    from esrpack.config import load_config

    cfg = load_config()
    cfg.download_url        # str
    cfg.output_root         # Path
    cfg.toolkit_layout      # bool

Relative paths are resolved against the directory holding ``esrpack.toml``.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from esrpack.utils import resolve_path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import,no-redef]

CONFIG_FILENAME = "esrpack.toml"

DEFAULT_DOWNLOAD_URL = (
    "https://download.mozilla.org/?product=firefox-esr-latest-ssl&os=win64&lang=en-US"
)

EXTRACTORS = ("7z", "self")
USER_INTERACTION_MODES = ("Hidden", "Normal", "Minimized", "Maximized")

# Install / uninstall command lines for the two package layouts.
_PLAIN_INSTALL = "setup.exe -ms"
_PLAIN_UNINSTALL = '"%ProgramFiles%\\Mozilla Firefox\\uninstall\\helper.exe" -ms'
_TOOLKIT_INSTALL = 'Deploy-Application.exe -DeploymentType "Install" -DeployMode "Silent"'
_TOOLKIT_UNINSTALL = 'Deploy-Application.exe -DeploymentType "Uninstall" -DeployMode "Silent"'


@dataclass
class PackagerConfig:
    """Parsed packager configuration with resolved paths."""

    # Root directory (where esrpack.toml lives)
    root: Path

    # --- [project] ---
    family: str = "Firefox"
    manifest: Path = field(default_factory=lambda: Path("modifications.xml"))

    # --- [source] ---
    download_url: str = DEFAULT_DOWNLOAD_URL
    temp_root: Path = field(default_factory=lambda: Path("tmp"))
    extractor: str = "7z"  # "7z" or "self"
    sevenzip: str = "7z"
    extract_timeout: int = 600
    download_timeout: int = 300
    marker: str = "core/firefox.exe"

    # --- [output] ---
    output_root: Path = field(default_factory=lambda: Path("output"))
    toolkit_layout: bool = False
    toolkit_template: Path = field(default_factory=lambda: Path("toolkit"))
    content_store: Optional[Path] = None

    # --- [deployment] ---
    deploy_enabled: bool = False
    site_code: str = ""
    site_server: str = ""
    app_name: str = "{family} {version} ESR"
    publisher: str = "Mozilla"
    install_command: str = _PLAIN_INSTALL
    uninstall_command: str = _PLAIN_UNINSTALL
    user_interaction: str = "Hidden"
    estimated_runtime: int = 10  # minutes
    max_runtime: int = 30  # minutes
    install_dir: str = "%ProgramFiles%\\Mozilla Firefox"
    powershell: str = "powershell.exe"
    register_timeout: int = 600

    def app_title(self, version: str) -> str:
        """Render the application title for *version*."""
        return self.app_name.format(family=self.family, version=version)


def _find_root(start: Optional[Path] = None) -> Path:
    """Walk up from *start* (or cwd) to find esrpack.toml."""
    if start is not None:
        return start
    candidate = Path.cwd().resolve()
    while candidate != candidate.parent:
        if (candidate / CONFIG_FILENAME).exists():
            return candidate
        candidate = candidate.parent
    raise FileNotFoundError(
        f"Could not find {CONFIG_FILENAME} in any parent of the current directory. "
        "Run 'esrpack init' to create one."
    )


def _check_choice(name: str, value: str, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValueError(f"Invalid {name} {value!r} (expected one of: {', '.join(choices)})")
    return value


def _check_app_name(template: str) -> str:
    try:
        template.format(family="", version="")
    except (AttributeError, KeyError, IndexError, ValueError) as e:
        raise ValueError(
            f"Invalid app_name {template!r}: only {{family}} and {{version}} may be used ({e})"
        ) from e
    return template


def config_from_dict(root: Path, raw: Dict[str, Any]) -> PackagerConfig:
    """Build a :class:`PackagerConfig` from already-parsed TOML data."""
    project = raw.get("project", {})
    source = raw.get("source", {})
    output = raw.get("output", {})
    deploy = raw.get("deployment", {})

    toolkit_layout = bool(output.get("toolkit_layout", False))
    default_install = _TOOLKIT_INSTALL if toolkit_layout else _PLAIN_INSTALL
    default_uninstall = _TOOLKIT_UNINSTALL if toolkit_layout else _PLAIN_UNINSTALL

    content_store = output.get("content_store") or None

    return PackagerConfig(
        root=root,
        # project
        family=project.get("family", "Firefox"),
        manifest=resolve_path(root, project.get("manifest", "modifications.xml")),
        # source
        download_url=source.get("url", DEFAULT_DOWNLOAD_URL),
        temp_root=resolve_path(root, source.get("temp_root", "tmp")),
        extractor=_check_choice("extractor", source.get("extractor", "7z"), EXTRACTORS),
        sevenzip=source.get("sevenzip", "7z"),
        extract_timeout=int(source.get("extract_timeout", 600)),
        download_timeout=int(source.get("download_timeout", 300)),
        marker=source.get("marker", "core/firefox.exe"),
        # output
        output_root=resolve_path(root, output.get("root", "output")),
        toolkit_layout=toolkit_layout,
        toolkit_template=resolve_path(root, output.get("toolkit_template", "toolkit")),
        content_store=resolve_path(root, content_store),
        # deployment
        deploy_enabled=bool(deploy.get("enabled", False)),
        site_code=deploy.get("site_code", ""),
        site_server=deploy.get("site_server", ""),
        app_name=_check_app_name(deploy.get("app_name", "{family} {version} ESR")),
        publisher=deploy.get("publisher", "Mozilla"),
        install_command=deploy.get("install_command", default_install),
        uninstall_command=deploy.get("uninstall_command", default_uninstall),
        user_interaction=_check_choice(
            "user_interaction", deploy.get("user_interaction", "Hidden"), USER_INTERACTION_MODES
        ),
        estimated_runtime=int(deploy.get("estimated_runtime", 10)),
        max_runtime=int(deploy.get("max_runtime", 30)),
        install_dir=deploy.get("install_dir", "%ProgramFiles%\\Mozilla Firefox"),
        powershell=deploy.get("powershell", "powershell.exe"),
        register_timeout=int(deploy.get("timeout", 600)),
    )


def load_config(root: Optional[Path] = None) -> PackagerConfig:
    """Load esrpack.toml.

    Args:
        root: Project root directory.  Auto-detected if ``None``.
    """
    root = _find_root(root)
    toml_path = root / CONFIG_FILENAME
    if not toml_path.exists():
        raise FileNotFoundError(f"Config not found: {toml_path}")

    with open(toml_path, "rb") as f:
        raw = tomllib.load(f)

    return config_from_dict(root, raw)
