"""CLI entrypoint for styleguard."""

from __future__ import annotations

import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from styleguard import __version__
from styleguard.cache import ResultCache
from styleguard.config import AppConfig, default_config_template, load_app_config
from styleguard.engine import CancelToken, run_checks
from styleguard.inputs import (
    FileInput,
    InputError,
    filter_inputs,
    load_manifest,
    load_manifest_text,
)
from styleguard.output import render_human, render_json
from styleguard.report import build_report, exit_code_for
from styleguard.rules import RuleLoadError, RuleModel, build_rule_model, list_rule_info
from styleguard.waivers import WaiverStore, is_active, load_waivers

log = logging.getLogger(__name__)

EXIT_FATAL = 2

app = typer.Typer(
    name="styleguard",
    no_args_is_help=True,
    help="Check a parsed source tree against the SG style-guide rules.",
)


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
) -> None:
    """Root command callback."""
    _ = version


@app.command("check")
def check_command(
    manifest: Annotated[
        Path | None, typer.Option(help="Path to the JSON file-set manifest.")
    ] = None,
    stdin: Annotated[bool, typer.Option(help="Read the manifest from stdin.")] = False,
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    include: Annotated[list[str] | None, typer.Option(help="Include glob pattern.")] = None,
    exclude: Annotated[list[str] | None, typer.Option(help="Exclude glob pattern.")] = None,
    waivers_file: Annotated[
        Path | None, typer.Option("--waivers", help="Path to the waiver TOML file.")
    ] = None,
    as_of: Annotated[
        str | None, typer.Option("--as-of", help="Evaluate waiver expiry as of YYYY-MM-DD.")
    ] = None,
    workers: Annotated[int | None, typer.Option(help="Worker threads.")] = None,
    timeout: Annotated[
        float | None, typer.Option(help="Stop scheduling new files after this many seconds.")
    ] = None,
    use_cache: Annotated[
        bool | None, typer.Option("--cache/--no-cache", help="Use the result cache.")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="debug|info|warning|error")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Check files against the rule table and report violations."""
    app_config = _load_config_or_raise(repo, config_file)
    _configure_logging(log_level or app_config.log_level)
    output_format = (format or app_config.format).lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    if manifest and stdin:
        raise typer.BadParameter("Use either --manifest or --stdin, not both.")
    if manifest is None and not stdin:
        raise typer.BadParameter("Provide a file set with --manifest or --stdin.")

    worker_count = workers if workers is not None else app_config.workers
    if worker_count <= 0:
        raise typer.BadParameter("workers must be > 0", param_hint="--workers")
    as_of_date = _parse_as_of(as_of)

    rule_model = _build_rule_model_or_exit(app_config)
    inputs = _load_inputs_or_exit(manifest=manifest, repo=repo)
    inputs = filter_inputs(
        inputs,
        includes=include if include is not None else app_config.include,
        excludes=exclude if exclude is not None else app_config.exclude,
    )

    waiver_path = waivers_file or (repo / app_config.waivers.path)
    store = load_waivers(waiver_path, as_of=as_of_date)

    cache_enabled = use_cache if use_cache is not None else app_config.cache.enabled
    cache_path = repo / app_config.cache.path
    cache = (
        ResultCache.load(cache_path, max_entries=app_config.cache.max_entries)
        if cache_enabled
        else None
    )

    timeout_seconds = timeout if timeout is not None else app_config.timeout_seconds
    token = CancelToken.with_timeout(timeout_seconds) if timeout_seconds else CancelToken()
    try:
        result = run_checks(
            inputs,
            rule_model=rule_model,
            waivers=store,
            cache=cache,
            workers=worker_count,
            cancel=token,
            lookahead_days=app_config.waivers.lookahead_days,
        )
    finally:
        token.close()

    if cache is not None:
        try:
            cache.save(cache_path, generation=result.rule_model_version)
        except OSError as exc:
            log.warning("could not write cache %s: %s", cache_path, exc)
        counters = " ".join(f"{name}={value}" for name, value in cache.stats.to_dict().items())
        log.info("cache %s", counters)
    log.info("checked %d file(s)", result.files_checked)

    report = build_report(result)
    if output_format == "json":
        typer.echo(render_json(report))
    else:
        typer.echo(render_human(report))

    code = exit_code_for(report.status)
    if code:
        raise typer.Exit(code=code)


@app.command("rules")
def rules_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List the rule table and which rules are active."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    rule_model = _build_rule_model_or_exit(app_config)

    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "severity": item.severity,
                    "category": item.category,
                    "scope": item.scope,
                    "description": item.description,
                    "enabled": item.rule_id in rule_model,
                }
                for item in list_rule_info()
            ],
            "meta": {
                "config_source": app_config.source,
                "rule_model_version": rule_model.version(),
            },
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Available rules:"]
    for item in list_rule_info():
        status = "enabled" if item.rule_id in rule_model else "disabled"
        lines.append(
            f"- {item.rule_id} {item.severity} [{status}] ({item.category}) - {item.description}"
        )
    typer.echo("\n".join(lines))


@app.command("waivers")
def waivers_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    waivers_file: Annotated[
        Path | None, typer.Option("--waivers", help="Path to the waiver TOML file.")
    ] = None,
    as_of: Annotated[
        str | None, typer.Option("--as-of", help="Evaluate expiry as of YYYY-MM-DD.")
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show loaded waivers with their active/expiring/expired state."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    store = load_waivers(
        waivers_file or (repo / app_config.waivers.path),
        as_of=_parse_as_of(as_of),
    )
    rows = _waiver_rows(store, lookahead_days=app_config.waivers.lookahead_days)

    if output_format == "json":
        payload = {
            "waivers": rows,
            "errors": [str(error) for error in store.errors],
            "meta": {"source": store.source, "as_of": store.as_of.isoformat()},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [f"Waivers ({store.source}):"]
    for row in rows:
        lines.append(
            f"- {row['rule_id']} {row['matcher']} [{row['state']}] "
            f"expires={row['expiry'] or 'never'} - {row['justification']}"
        )
    lines.extend(f"! {error}" for error in store.errors)
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    rule_model = _build_rule_model_or_exit(app_config)
    payload = app_config.to_dict()
    payload["active_rule_ids"] = [rule.rule_id for rule in rule_model.all_rules()]

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- include: {payload['include']}",
        f"- exclude: {payload['exclude']}",
        f"- workers: {payload['workers']}",
        f"- timeout_seconds: {payload['timeout_seconds']}",
        f"- rules.enable: {payload['rules']['enable']}",
        f"- rules.disable: {payload['rules']['disable']}",
        f"- waivers: {payload['waivers']}",
        f"- cache: {payload['cache']}",
        f"- active_rule_ids: {payload['active_rule_ids']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".styleguard.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".styleguard.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file and report active rules."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    rule_model = _build_rule_model_or_exit(app_config)
    payload = {
        "ok": True,
        "source": app_config.source,
        "active_rule_ids": [rule.rule_id for rule in rule_model.all_rules()],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- active_rule_ids: {payload['active_rule_ids']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _build_rule_model_or_exit(app_config: AppConfig) -> RuleModel:
    try:
        return build_rule_model(
            enabled_rule_ids=app_config.rule_enable,
            disabled_rule_ids=app_config.rule_disable,
        )
    except RuleLoadError as exc:
        raise _fatal(f"rule model failed to load: {exc}") from exc


def _load_inputs_or_exit(*, manifest: Path | None, repo: Path) -> list[FileInput]:
    """Load the file set from ``manifest``, or from stdin when no manifest is given."""
    try:
        if manifest is None:
            return load_manifest_text(sys.stdin.read(), base_dir=repo.resolve())
        return load_manifest(manifest)
    except InputError as exc:
        raise _fatal(str(exc)) from exc


def _fatal(message: str) -> typer.Exit:
    typer.echo(f"error: {message}", err=True)
    return typer.Exit(code=EXIT_FATAL)


def _parse_as_of(raw: str | None) -> date:
    if raw is None:
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise typer.BadParameter("must be an ISO date (YYYY-MM-DD)", param_hint="--as-of") from exc


def _waiver_rows(store: WaiverStore, *, lookahead_days: int) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for waiver in store.waivers:
        if not is_active(waiver, store.as_of):
            state = "expired"
        elif store.expiring_within(waiver, lookahead_days):
            state = "expiring"
        else:
            state = "active"
        row: dict[str, object] = dict(waiver.to_dict())
        row["state"] = state
        rows.append(row)
    return sorted(rows, key=lambda item: (str(item["rule_id"]), str(item["matcher"])))
