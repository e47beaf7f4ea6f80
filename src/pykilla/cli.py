"""CLI entry point for pykilla."""

from pathlib import Path

import click


@click.command()
@click.version_option(package_name="pykilla")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default ~/.config/pykilla/config.toml)",
)
@click.option("--poll-rate", type=float, default=None, help="Seconds between snapshots")
@click.option(
    "--min-phrase",
    type=click.IntRange(min=0),
    default=None,
    help="Shortest search phrase that allows signalling",
)
@click.option("--write-config", is_flag=True, help="Save the effective config and exit")
def main(
    config_path: Path | None,
    poll_rate: float | None,
    min_phrase: int | None,
    write_config: bool,
) -> None:
    """Live process table with search, freeze and batch signalling."""
    from pykilla.bridge import CollectorBridge, CollectorStartupError
    from pykilla.config import Config
    from pykilla.logging import configure

    try:
        config = Config.load(config_path)
        config.ui.sort_spec()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if poll_rate is not None:
        config.collector.poll_rate = poll_rate
    if min_phrase is not None:
        config.search.min_signal_phrase_length = min_phrase

    if write_config:
        path = config_path or config.config_path
        config.save(path)
        click.echo(f"Wrote {path}")
        return

    configure(config)

    bridge = CollectorBridge(poll_rate=config.collector.poll_rate)
    try:
        bridge.start()
    except CollectorStartupError as e:
        raise click.ClickException(str(e)) from e

    from pykilla.app import PykillaApp

    app = PykillaApp(config, bridge=bridge)
    try:
        app.run()
    finally:
        bridge.close(timeout=1.0)
    if app.return_code:
        raise SystemExit(app.return_code)


if __name__ == "__main__":
    main()
