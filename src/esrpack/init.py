"""Initialize a new esrpack project directory.

Usage:
    esrpack init [--family NAME] [--toolkit] [--site-code ABC]
"""

from pathlib import Path

import typer

from esrpack.cli import error_exit
from esrpack.config import CONFIG_FILENAME, DEFAULT_DOWNLOAD_URL

app = typer.Typer(
    help="Initialize a new esrpack project directory.",
    rich_markup_mode="rich",
    epilog="""\
[bold]Examples:[/bold]

esrpack init                          Defaults (plain setup.exe layout)

esrpack init --toolkit                Wrap the installer in a deployment toolkit

esrpack init --site-code ABC          Enable application registration

[bold]What it creates:[/bold]

esrpack.toml           Packager configuration

modifications.xml      Manifest of file modifications

files/                 Replacement files referenced by the manifest

[dim]Run this once in an empty directory, then edit the manifest.[/dim]""",
)

DEFAULT_ESRPACK_TOML = """# esrpack project configuration

[project]
family = "{family}"
manifest = "modifications.xml"

[source]
url = "{url}"
temp_root = "tmp"
extractor = "7z"                      # 7z | self
sevenzip = "7z"
extract_timeout = 600                 # seconds
download_timeout = 300                # seconds
marker = "core/firefox.exe"           # must exist after extraction

[output]
root = "output"
toolkit_layout = {toolkit}
toolkit_template = "toolkit"          # copied first when toolkit_layout = true
# content_store = "//server/packages/firefox"

[deployment]
enabled = {deploy_enabled}
site_code = "{site_code}"
# site_server = "sccm.example.org"
app_name = "{{family}} {{version}} ESR"
publisher = "Mozilla"
user_interaction = "Hidden"           # Hidden | Normal | Minimized | Maximized
estimated_runtime = 10                # minutes
max_runtime = 30                      # minutes
# install_command = "setup.exe -ms"
# uninstall_command = '"%ProgramFiles%\\Mozilla Firefox\\uninstall\\helper.exe" -ms'
"""

DEFAULT_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<modifications>
  <!-- Copy files/<name> from beside this manifest over the installer tree:
  <replaceFile>
    <source>files/mozilla.cfg</source>
    <target>core/mozilla.cfg</target>
  </replaceFile>
  -->
  <!-- Replace text inside an installer file; #Version# is the product version:
  <replaceString>
    <file>core/defaults/pref/local-settings.js</file>
    <source>@VERSION@</source>
    <target>#Version#</target>
  </replaceString>
  -->
</modifications>
"""


@app.command()
def main(
    family: str = typer.Option("Firefox", "--family", help="Product family used in names"),
    toolkit: bool = typer.Option(False, "--toolkit", help="Use the toolkit wrapper layout"),
    site_code: str = typer.Option("", "--site-code", help="Configuration Manager site code"),
    directory: Path = typer.Option(Path("."), "--dir", help="Project directory"),
) -> None:
    """Create esrpack.toml and a starter manifest."""
    toml_path = directory / CONFIG_FILENAME
    if toml_path.exists():
        error_exit(f"{toml_path} already exists")

    directory.mkdir(parents=True, exist_ok=True)
    toml_path.write_text(
        DEFAULT_ESRPACK_TOML.format(
            family=family,
            url=DEFAULT_DOWNLOAD_URL,
            toolkit="true" if toolkit else "false",
            deploy_enabled="true" if site_code else "false",
            site_code=site_code,
        ),
        encoding="utf-8",
    )

    manifest_path = directory / "modifications.xml"
    if not manifest_path.exists():
        manifest_path.write_text(DEFAULT_MANIFEST, encoding="utf-8")
    (directory / "files").mkdir(exist_ok=True)
    if toolkit:
        (directory / "toolkit").mkdir(exist_ok=True)

    print(f"Created {toml_path}")
    print(f"Created {manifest_path}")
