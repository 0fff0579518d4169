"""Register a built package as a Configuration Manager application.

Generates a PowerShell script that uses the ConfigurationManager module to
create an Application with one script Deployment Type, then runs it with a
single blocking ``powershell.exe`` call.  Detection is a PowerShell script
that prints ``Installed`` when the installed ``firefox.exe`` reports the
packaged product version.

Usage:
    esrpack register \\\\server\\packages\\Firefox_115.3.1esr_231019 --version 115.3.1
    esrpack register output/Firefox_115.3.1esr_231019 --version 115.3.1 --script-only
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

import typer

from esrpack.cli import ConfigOption, error_exit, get_config
from esrpack.config import PackagerConfig
from esrpack.errors import RegistrarError

_CONFIGMGR_MODULE = (
    "Import-Module (Join-Path (Split-Path $env:SMS_ADMIN_UI_PATH -Parent) "
    "'ConfigurationManager.psd1')"
)


@dataclass(frozen=True)
class DeploymentRequest:
    """Everything needed to create one application record."""

    title: str
    version: str
    publisher: str
    install_command: str
    uninstall_command: str
    content_location: str
    detection_script: str
    site_code: str
    site_server: str = ""
    user_interaction: str = "Hidden"
    estimated_runtime: int = 10
    max_runtime: int = 30


def ps_quote(value: str) -> str:
    """Quote *value* as a PowerShell single-quoted literal."""
    return "'" + value.replace("'", "''") + "'"


def render_detection_script(version: str, install_dir: str) -> str:
    """Script that writes ``Installed`` when firefox.exe matches *version*."""
    return (
        "$dir = [Environment]::ExpandEnvironmentVariables("
        f"{ps_quote(install_dir)})\n"
        "$exe = Join-Path $dir 'firefox.exe'\n"
        "if (Test-Path $exe) {\n"
        "    $version = (Get-Item $exe).VersionInfo.ProductVersion\n"
        f"    if ($version -eq {ps_quote(version)}) {{ Write-Host 'Installed' }}\n"
        "}\n"
    )


def render_registration_script(request: DeploymentRequest) -> str:
    """Build the ConfigurationManager script for *request*."""
    if not request.site_code:
        raise RegistrarError("No site code configured ([deployment] site_code)")

    site = ps_quote(request.site_code)
    lines = [
        "$ErrorActionPreference = 'Stop'",
        _CONFIGMGR_MODULE,
    ]
    if request.site_server:
        lines += [
            f"if (-not (Get-PSDrive -Name {site} -PSProvider CMSite -ErrorAction SilentlyContinue)) {{",
            f"    New-PSDrive -Name {site} -PSProvider CMSite -Root {ps_quote(request.site_server)} | Out-Null",
            "}",
        ]
    lines += [
        f"Set-Location ({site} + ':')",
        "$detection = @'",
        request.detection_script.rstrip("\n"),
        "'@",
        "New-CMApplication"
        f" -Name {ps_quote(request.title)}"
        f" -SoftwareVersion {ps_quote(request.version)}"
        f" -Publisher {ps_quote(request.publisher)}"
        " | Out-Null",
        "Add-CMScriptDeploymentType"
        f" -ApplicationName {ps_quote(request.title)}"
        f" -DeploymentTypeName {ps_quote(request.title + ' Install')}"
        f" -InstallCommand {ps_quote(request.install_command)}"
        f" -UninstallCommand {ps_quote(request.uninstall_command)}"
        f" -ContentLocation {ps_quote(request.content_location)}"
        " -ScriptLanguage PowerShell -ScriptText $detection"
        " -InstallationBehaviorType InstallForSystem"
        " -LogonRequirementType WhetherOrNotUserLoggedOn"
        f" -UserInteractionMode {request.user_interaction}"
        f" -EstimatedRuntimeMins {request.estimated_runtime}"
        f" -MaximumRuntimeMins {request.max_runtime}"
        " | Out-Null",
    ]
    return "\n".join(lines) + "\n"


def register_application(
    request: DeploymentRequest,
    *,
    powershell: str = "powershell.exe",
    timeout: int = 600,
) -> None:
    """Run the registration script for *request*.

    Raises:
        RegistrarError: PowerShell could not be started, timed out, or failed.
    """
    script = render_registration_script(request)
    cmd = [powershell, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", "-"]
    try:
        r = subprocess.run(cmd, input=script.encode("utf-8"), capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise RegistrarError(f"Registration of {request.title!r} timed out after {timeout}s") from e
    except OSError as e:
        raise RegistrarError(f"Failed to run {powershell}: {e}") from e

    if r.returncode != 0:
        err = (r.stdout + r.stderr).decode("utf-8", errors="replace").strip()[:400]
        raise RegistrarError(f"Registration of {request.title!r} failed (exit {r.returncode}): {err}")


def request_from_config(cfg: PackagerConfig, version: str, content_location: str) -> DeploymentRequest:
    """Assemble a :class:`DeploymentRequest` from a ``PackagerConfig``."""
    return DeploymentRequest(
        title=cfg.app_title(version),
        version=version,
        publisher=cfg.publisher,
        install_command=cfg.install_command,
        uninstall_command=cfg.uninstall_command,
        content_location=content_location,
        detection_script=render_detection_script(version, cfg.install_dir),
        site_code=cfg.site_code,
        site_server=cfg.site_server,
        user_interaction=cfg.user_interaction,
        estimated_runtime=cfg.estimated_runtime,
        max_runtime=cfg.max_runtime,
    )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="Register a built package as a Configuration Manager application.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Examples:[/bold]

esrpack register output/Firefox_115.3.1esr_231019 --version 115.3.1 --script-only

[dim]Reads site code, commands and runtimes from the \\[deployment] section
of esrpack.toml.[/dim]""",
)


@app.command()
def main(
    content_location: str = typer.Argument(..., help="Package directory (usually a UNC path)"),
    version: str = typer.Option(..., "--version", help="Product version of the package"),
    script_only: bool = typer.Option(
        False, "--script-only", help="Print the PowerShell script instead of running it"
    ),
    config: Path | None = ConfigOption,
) -> None:
    """Create an application record for CONTENT_LOCATION."""
    cfg = get_config(config)
    request = request_from_config(cfg, version, content_location)
    try:
        if script_only:
            print(render_registration_script(request), end="")
            return
        register_application(request, powershell=cfg.powershell, timeout=cfg.register_timeout)
    except RegistrarError as e:
        error_exit(str(e))
    print(f"Registered {request.title}")


def main_entry() -> None:
    app()


if __name__ == "__main__":
    main_entry()
