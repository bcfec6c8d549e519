"""Thin CLI wrapper for gt_installer.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gt_installer import __version__
from gt_installer.config import Settings, get_settings, print_settings_json
from gt_installer.errors import InstallerError, format_error_chain
from gt_installer.log import configure_logging
from gt_installer.types import Loader, SetupTarget, VersionBump
from gt_installer.workspace.descriptor import WorkspaceDescriptor

app = typer.Typer(
    name="gt-installer",
    help="Glamorous Toolkit installer - build, set up and package GT images",
    no_args_is_help=True,
)
console = Console()


@dataclass
class CliState:
    """Global options shared by every command."""

    settings: Settings
    workspace: Path
    verbose: bool = False
    app_cli_binary: Path | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"gt-installer version {__version__}")
        raise typer.Exit()


@contextmanager
def reported_errors() -> Iterator[None]:
    """Print installer errors with their causes and exit non-zero."""
    try:
        yield
    except InstallerError as e:
        messages = format_error_chain(e)
        console.print(
            f"Error: {messages[0]}",
            style="red",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
        for cause in messages[1:]:
            console.print(
                f"  caused by: {cause}", markup=False, highlight=False, soft_wrap=True
            )
        raise typer.Exit(code=1) from None


def _state(ctx: typer.Context) -> CliState:
    state: CliState = ctx.obj
    return state


def _descriptor(state: CliState, provision: bool = True) -> WorkspaceDescriptor:
    """Load the workspace state, provisioning a new one when allowed."""
    from gt_installer.tools.maintenance import use_app_cli_binary
    from gt_installer.workspace.versions import GitHubReleases

    if provision:
        descriptor = WorkspaceDescriptor.for_workspace(
            state.workspace,
            GitHubReleases(settings=state.settings),
            seed_url=state.settings.default_seed_url,
        )
    else:
        descriptor = WorkspaceDescriptor.load(state.workspace)
    descriptor.verbose = state.verbose
    if state.app_cli_binary is not None:
        use_app_cli_binary(descriptor, state.app_cli_binary, console=console)
    return descriptor


@app.callback()
def main(
    ctx: typer.Context,
    workspace: Annotated[
        Path | None,
        typer.Option(
            "--workspace",
            "-w",
            help="Workspace directory (defaults to ./glamoroustoolkit)",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show interpreter output and debug logs"),
    ] = False,
    app_cli_binary: Annotated[
        Path | None,
        typer.Option("--app-cli-binary", help="Explicit path to the runtime CLI binary"),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Glamorous Toolkit installer - build, set up and package GT images."""
    settings = get_settings()
    configure_logging(settings.log_level, verbose=verbose)
    ctx.obj = CliState(
        settings=settings,
        workspace=(workspace or settings.workspace).expanduser().absolute(),
        verbose=verbose,
        app_cli_binary=app_cli_binary,
    )


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True)
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Workspace:           {settings.workspace}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Seed image URL:      {settings.default_seed_url}")
        console.print()
        console.print("[bold]Concurrency:[/bold]")
        console.print(f"  Max downloads:       {settings.max_concurrent_downloads}")
        console.print(f"  Max unpacks:         {settings.max_concurrent_unpacks}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Probe timeout:       {settings.head_timeout}")
        console.print(f"  Download timeout:    {settings.download_timeout}")


# Building

OverwriteOption = Annotated[
    bool,
    typer.Option("--overwrite", help="Delete an existing installation first"),
]
ImageUrlOption = Annotated[
    str | None,
    typer.Option("--image-url", help="Seed image zip to download"),
]
ImageZipOption = Annotated[
    Path | None,
    typer.Option("--image-zip", help="Local seed image zip"),
]
ImageFileOption = Annotated[
    Path | None,
    typer.Option("--image-file", help="Existing .image file to build on"),
]
PublicKeyOption = Annotated[
    Path | None,
    typer.Option("--public-key", help="Public SSH key used to clone repositories"),
]
PrivateKeyOption = Annotated[
    Path | None,
    typer.Option("--private-key", help="Private SSH key used to clone repositories"),
]
NoGtWorldOption = Annotated[
    bool,
    typer.Option("--no-gt-world", help="Do not open a default GtWorld after setup"),
]
BumpOption = Annotated[
    VersionBump,
    typer.Option("--bump", help="Version component to bump for the release"),
]


def _run_build(
    state: CliState,
    overwrite: bool,
    loader: Loader,
    image_url: str | None,
    image_zip: Path | None,
    image_file: Path | None,
    public_key: Path | None,
    private_key: Path | None,
) -> WorkspaceDescriptor:
    from gt_installer.tools.build import BuildOptions, BuildPipeline
    from gt_installer.workspace.seed import SeedFromImage, SeedFromUrl, SeedFromZip

    seeds = [seed for seed in (image_url, image_zip, image_file) if seed is not None]
    if len(seeds) > 1:
        raise typer.BadParameter(
            "Only one of --image-url, --image-zip and --image-file can be given"
        )

    descriptor = _descriptor(state)
    if image_url is not None:
        descriptor.set_image_seed(SeedFromUrl(url=image_url))
    elif image_zip is not None:
        descriptor.set_image_seed(SeedFromZip(path=image_zip.expanduser().absolute()))
    elif image_file is not None:
        descriptor.set_image_seed(SeedFromImage(path=image_file.expanduser().absolute()))

    options = BuildOptions(
        overwrite=overwrite,
        loader=loader,
        public_key=public_key,
        private_key=private_key,
    )
    BuildPipeline(descriptor, options, settings=state.settings, console=console).run()
    return descriptor


def _run_setup(
    descriptor: WorkspaceDescriptor,
    target: SetupTarget,
    bump: VersionBump,
    no_gt_world: bool,
) -> None:
    from gt_installer.tools.image_setup import SetupOptions, setup_image

    setup_image(
        descriptor,
        SetupOptions(target=target, bump=bump, gt_world=not no_gt_world),
        console=console,
    )


@app.command()
def build(
    ctx: typer.Context,
    overwrite: OverwriteOption = False,
    loader: Annotated[
        Loader,
        typer.Option("--loader", help="How to load GToolkit code into the seed image"),
    ] = Loader.CLONER,
    image_url: ImageUrlOption = None,
    image_zip: ImageZipOption = None,
    image_file: ImageFileOption = None,
    public_key: PublicKeyOption = None,
    private_key: PrivateKeyOption = None,
) -> None:
    """Build a Glamorous Toolkit image in the workspace."""
    state = _state(ctx)
    with reported_errors():
        _run_build(
            state,
            overwrite,
            loader,
            image_url,
            image_zip,
            image_file,
            public_key,
            private_key,
        )


@app.command()
def setup(
    ctx: typer.Context,
    target: Annotated[
        SetupTarget,
        typer.Option("--target", help="What to set the image up for"),
    ] = SetupTarget.LOCAL_BUILD,
    bump: BumpOption = VersionBump.PATCH,
    no_gt_world: NoGtWorldOption = False,
) -> None:
    """Set up a built image for local development or a release."""
    state = _state(ctx)
    with reported_errors():
        _run_setup(_descriptor(state, provision=False), target, bump, no_gt_world)


@app.command("local-build")
def local_build(
    ctx: typer.Context,
    overwrite: OverwriteOption = False,
    loader: Annotated[
        Loader,
        typer.Option("--loader", help="How to load GToolkit code into the seed image"),
    ] = Loader.CLONER,
    image_url: ImageUrlOption = None,
    image_zip: ImageZipOption = None,
    image_file: ImageFileOption = None,
    public_key: PublicKeyOption = None,
    private_key: PrivateKeyOption = None,
    no_gt_world: NoGtWorldOption = False,
) -> None:
    """Build an image and set it up for local development."""
    state = _state(ctx)
    with reported_errors():
        descriptor = _run_build(
            state,
            overwrite,
            loader,
            image_url,
            image_zip,
            image_file,
            public_key,
            private_key,
        )
        _run_setup(descriptor, SetupTarget.LOCAL_BUILD, VersionBump.PATCH, no_gt_world)


@app.command("release-build")
def release_build(
    ctx: typer.Context,
    overwrite: OverwriteOption = False,
    loader: Annotated[
        Loader,
        typer.Option("--loader", help="How to load GToolkit code into the seed image"),
    ] = Loader.METACELLO,
    image_url: ImageUrlOption = None,
    image_zip: ImageZipOption = None,
    image_file: ImageFileOption = None,
    public_key: PublicKeyOption = None,
    private_key: PrivateKeyOption = None,
    bump: BumpOption = VersionBump.PATCH,
    no_gt_world: NoGtWorldOption = False,
) -> None:
    """Build an image and set it up for a release."""
    state = _state(ctx)
    with reported_errors():
        descriptor = _run_build(
            state,
            overwrite,
            loader,
            image_url,
            image_zip,
            image_file,
            public_key,
            private_key,
        )
        _run_setup(descriptor, SetupTarget.RELEASE, bump, no_gt_world)


# Working with a built image


@app.command()
def test(
    ctx: typer.Context,
    packages: Annotated[
        list[str] | None,
        typer.Option(
            "--packages",
            "-p",
            help="Package to test (can be repeated). Runs release checks when omitted",
        ),
    ] = None,
    disable_deprecation_rewrites: Annotated[
        bool,
        typer.Option(
            "--disable-deprecation-rewrites",
            help="Disable automatic deprecation rewrites while testing",
        ),
    ] = False,
    disable_tests: Annotated[
        bool,
        typer.Option("--disable-tests", help="Only run examples for the given packages"),
    ] = False,
    skip_packages: Annotated[
        list[str] | None,
        typer.Option("--skip-packages", help="Package to skip (can be repeated)"),
    ] = None,
) -> None:
    """Run examples and tests inside the image."""
    from gt_installer.smalltalk.gtoolkit import ExampleRunOptions
    from gt_installer.tools.tester import run_image_tests

    state = _state(ctx)
    options = ExampleRunOptions(
        disable_deprecation_rewrites=disable_deprecation_rewrites,
        disable_tests=disable_tests,
        skip_packages=skip_packages or [],
    )
    with reported_errors():
        run_image_tests(
            _descriptor(state, provision=False), packages, options, console=console
        )


@app.command("copy-to")
def copy_to_cmd(
    ctx: typer.Context,
    destination: Annotated[Path, typer.Argument(help="Directory to copy the image into")],
) -> None:
    """Copy the image, its state and the runtime into another directory."""
    from gt_installer.tools.maintenance import copy_to

    state = _state(ctx)
    with reported_errors():
        copy = copy_to(_descriptor(state, provision=False), destination.absolute())
        console.print(f"[green]✓ Copied to {copy.workspace}[/green]")


@app.command("rename-to")
def rename_to_cmd(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="New image name, without extension")],
) -> None:
    """Rename the image."""
    from gt_installer.tools.maintenance import rename_to

    state = _state(ctx)
    with reported_errors():
        image = rename_to(_descriptor(state, provision=False), name, console=console)
        console.print(f"[green]✓ Renamed to {image.name}[/green]")


@app.command("clean-up")
def clean_up_cmd(ctx: typer.Context) -> None:
    """Forget repository credentials and registered repositories."""
    from gt_installer.tools.maintenance import clean_up

    state = _state(ctx)
    with reported_errors():
        clean_up(_descriptor(state, provision=False), console=console)


@app.command()
def start(
    ctx: typer.Context,
    expression: Annotated[
        str,
        typer.Option("--expression", help="Expression that starts the application"),
    ] = "GtWorld openDefault",
    delay: Annotated[
        float,
        typer.Option("--delay", help="Seconds to wait before saving and quitting"),
    ] = 5.0,
) -> None:
    """Start the image once, then snapshot and quit."""
    from gt_installer.tools.maintenance import start as start_image

    state = _state(ctx)
    with reported_errors():
        start_image(
            _descriptor(state, provision=False),
            expression=expression,
            delay=delay,
            console=console,
        )


# Packaging

IgnoreAbsentOption = Annotated[
    bool,
    typer.Option("--ignore-absent", help="Do not fail when some entries are missing"),
]


@app.command("package-tentative")
def package_tentative_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Path to the tentative .zip")],
    ignore_absent: IgnoreAbsentOption = False,
) -> None:
    """Package the workspace into a tentative archive."""
    from gt_installer.tools.packaging import package_tentative

    state = _state(ctx)
    with reported_errors():
        path = package_tentative(
            _descriptor(state, provision=False), archive.absolute(), ignore_absent
        )
        console.print(f"[green]✓ Packaged {path}[/green]")


@app.command("unpackage-tentative")
def unpackage_tentative_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Path to the tentative .zip")],
) -> None:
    """Unpack a tentative archive and fetch the runtime for this machine."""
    from gt_installer.tools.packaging import unpackage_tentative

    state = _state(ctx)
    with reported_errors():
        descriptor = unpackage_tentative(
            state.workspace, archive.absolute(), settings=state.settings
        )
        console.print(f"[green]✓ Unpacked into {descriptor.workspace}[/green]")


@app.command("package-release")
def package_release_cmd(
    ctx: typer.Context,
    release: Annotated[
        Path,
        typer.Argument(
            help="Path to the release .zip; may contain {{version}}, {{os}} and {{arch}}"
        ),
    ],
) -> None:
    """Package a release archive named after the image version."""
    from gt_installer.tools.packaging import package_release

    state = _state(ctx)
    with reported_errors():
        path = package_release(
            _descriptor(state, provision=False), release.absolute(), console=console
        )
        console.print(f"[green]✓ Packaged {path}[/green]")


# Information


@app.command("print-image-version")
def print_image_version(ctx: typer.Context) -> None:
    """Print the pinned image version."""
    state = _state(ctx)
    with reported_errors():
        console.print(str(WorkspaceDescriptor.load(state.workspace).image_version))


@app.command("print-app-version")
def print_app_version(ctx: typer.Context) -> None:
    """Print the pinned runtime version."""
    state = _state(ctx)
    with reported_errors():
        console.print(str(_descriptor(state, provision=False).app_version))


@app.command("print-debug")
def print_debug(ctx: typer.Context) -> None:
    """Print what the installer knows about this machine and workspace."""
    from gt_installer.platform import paths_for, resolve_host

    state = _state(ctx)
    host = resolve_host()
    paths = paths_for(host)
    console.print(f"Host target:      {host.value}")
    console.print(f"Runtime CLI:      {paths.executable_path}")
    console.print(f"Runtime app:      {paths.app_entry_path}")
    console.print(f"Workspace:        {state.workspace}")

    if not WorkspaceDescriptor.exists_in(state.workspace):
        console.print("State file:       (none)")
        return
    with reported_errors():
        descriptor = WorkspaceDescriptor.load(state.workspace)
        console.print(f"State file:       {descriptor.state_file}")
        console.print(f"Image:            {descriptor.image}")
        console.print(f"Image version:    {descriptor.image_version}")
        console.print(f"Runtime version:  {descriptor.app_version}")
        console.print(f"Image seed:       {descriptor.image_seed!r}")


__all__ = ["app"]
