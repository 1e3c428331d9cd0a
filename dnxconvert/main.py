import sys
import typer
from pathlib import Path
from typing import Optional, List

from pydantic import ValidationError
from dnxconvert.config.loader import load_config
from dnxconvert.config.models import AppConfig, JobConfig
from dnxconvert.config.inputs import normalize_input_paths, parse_uri_list, validate_input_files, dedupe_preserve_order
from dnxconvert.infrastructure.logging import setup_logging
from dnxconvert.infrastructure.event_bus import EventBus
from dnxconvert.infrastructure.binaries import BinaryResolver
from dnxconvert.pipeline.runner import JobRunner, resolve_output_dir
from dnxconvert.ui.state import RunState
from dnxconvert.ui.dashboard import Dashboard, PlainReporter

DEFAULT_CONFIG_PATH = Path("conf/dnxconvert.yaml")
EXIT_JOB_FAILED = 2

app = typer.Typer(help="dnxconvert - batch DNxHR transcoding with ffmpeg")


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load_app_config(config_path: Optional[Path]) -> AppConfig:
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return AppConfig()
        config_path = DEFAULT_CONFIG_PATH
    return load_config(config_path)


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ())) or "config"
    return f"{field}: {first.get('msg', 'invalid value')}"


@app.command()
def convert(
    files: Optional[List[str]] = typer.Argument(None, help="Input media files (paths or file:// URIs)"),
    uri_list: Optional[Path] = typer.Option(None, "--uri-list", help="Read inputs from a text/uri-list file"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Base folder; outputs go to <dir>/transcoded"),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="dnxhr_lb, dnxhr_sq, dnxhr_hq, dnxhr_hqx, dnxhr_444"),
    container: Optional[str] = typer.Option(None, "--container", help="mov or mxf"),
    audio_bits: Optional[int] = typer.Option(None, "--audio-bits", help="PCM bit depth (16 or 24)"),
    audio_channels: Optional[int] = typer.Option(None, "--audio-channels", help="Audio channel count (2, 4 or 8)"),
    fps: Optional[float] = typer.Option(None, "--fps", help="Force output frame rate (disables FPS preservation)"),
    preserve_fps: bool = typer.Option(False, "--preserve-fps", help="Keep the source frame rate (overrides config)"),
    timecode: Optional[str] = typer.Option(None, "--timecode", help="Start timecode HH:MM:SS:FF"),
    normalize: Optional[bool] = typer.Option(None, "--normalize/--no-normalize", help="Two-pass EBU R128 loudness normalization (-23 LUFS)"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    plain: bool = typer.Option(False, "--plain", help="Print progress lines instead of the live dashboard"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Transcode FILES to DNxHR, one after another."""
    try:
        config = _load_app_config(config_path)
    except (FileNotFoundError, ValidationError) as exc:
        message = _format_validation_error(exc) if isinstance(exc, ValidationError) else str(exc)
        _fail(message)

    inputs = normalize_input_paths(files or [])
    if uri_list is not None:
        if not uri_list.is_file():
            _fail(f"URI list not found: {uri_list}")
        inputs = dedupe_preserve_order(inputs + parse_uri_list(uri_list.read_text(encoding="utf-8")))
    try:
        validate_input_files(inputs)
    except ValueError as exc:
        _fail(str(exc))

    # Apply CLI overrides on top of the config file's job defaults
    overrides = {"files": inputs}
    if output_dir is not None: overrides["output_dir"] = output_dir
    if profile is not None: overrides["profile"] = profile
    if container is not None: overrides["container"] = container
    if audio_bits is not None: overrides["audio_bits"] = audio_bits
    if audio_channels is not None: overrides["audio_channels"] = audio_channels
    if fps is not None:
        overrides["preserve_fps"] = False
        overrides["target_fps"] = fps
    if preserve_fps: overrides["preserve_fps"] = True
    if timecode is not None: overrides["timecode"] = timecode
    if normalize is not None: overrides["normalize"] = normalize
    if debug: config.logging.debug = True
    if log_path is not None: config.logging.log_path = str(log_path)

    try:
        job_config = JobConfig(**{**config.job.model_dump(), **overrides})
    except ValidationError as exc:
        _fail(_format_validation_error(exc))

    out_dir = resolve_output_dir(job_config)
    log_file = Path(config.logging.log_path) if config.logging.log_path else None
    logger = setup_logging(out_dir, debug=config.logging.debug, log_path=log_file)
    logger.info(f"dnxconvert started: files={len(job_config.files)}, output={out_dir}")
    logger.info(
        f"Config: profile={job_config.profile}, container={job_config.container}, "
        f"audio={job_config.audio_bits}bit/{job_config.audio_channels}ch, "
        f"fps={'preserve' if job_config.preserve_fps else f'{job_config.target_fps:.3f}'}, "
        f"timecode={job_config.timecode or 'unset'}, normalize={job_config.normalize}"
    )

    bus = EventBus()
    runner = JobRunner(bus, resolver=BinaryResolver(bundle_dir=config.binaries.bundle_dir))
    state = RunState(job_config.files)

    try:
        handle = runner.start(job_config)
        if plain or not sys.stdout.isatty():
            PlainReporter(state).follow(handle)
        else:
            Dashboard(state).follow(handle)
        handle.join()
    except KeyboardInterrupt:
        typer.secho("\nTranscoding stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    if handle.error is not None:
        typer.secho(f"Error: run aborted: {handle.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_JOB_FAILED)
    if len(handle.outcomes) != len(job_config.files):
        typer.secho(
            f"Error: only {len(handle.outcomes)} of {len(job_config.files)} file(s) were processed",
            fg=typer.colors.RED, err=True,
        )
        raise typer.Exit(code=EXIT_JOB_FAILED)

    failed = [o for o in handle.outcomes if not o.ok]
    if failed:
        for row in state.error_rows():
            typer.secho(f"{row.name}: {row.status}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_JOB_FAILED)
    typer.secho(f"All {len(handle.outcomes)} file(s) transcoded to {out_dir}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
