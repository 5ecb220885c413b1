"""
CLI entry point for OpsGate.

This module provides the Typer-based command-line interface for OpsGate.
Each evaluator is reachable through one command group:

    catalog       Validate the token catalog and FailSignal registry
    required-set  Generate, materialize and drift-check required token sets
    disposition   Resolve a fail signal code for a tier
    stage         Validate stage plans, promotion records and activation
    freeze        Evaluate a rollup against the freeze baseline
    lock          Verify or write the immutability lock
    alias         Resolve identifiers against the alias canon
    hooks         Run proof hooks and evaluate the rollup

Exit codes:
    0   PASS or WARN (a WARN still prints its failure code)
    1   FAIL, or input that cannot be read at all

Architecture Note:
    The CLI only loads documents, picks settings and prints results. All
    evaluation lives in the library modules so it can be used without
    the CLI.
"""

import logging
import traceback
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from opsgate import __version__
from opsgate.alias import AliasResolver
from opsgate.catalog import validate_catalog
from opsgate.config import GateSettings, load_settings
from opsgate.disposition import DispositionResolver
from opsgate.documents import load_model, read_document
from opsgate.errors import OpsGateError, UnknownFailSignalError
from opsgate.freeze import evaluate_freeze
from opsgate.hooks import HookRegistry, ProofHookRunner
from opsgate.lock import DEFAULT_SOURCE_NAME, verify, write_lock
from opsgate.report import (
    error_document,
    print_alias_resolution,
    print_gate_result,
    print_mapping,
    render_json,
)
from opsgate.requiredset import (
    DEFAULT_CASES,
    cases_from_profile,
    check_conditional_gates,
    check_drift,
    evaluate_profile,
    materialize,
)
from opsgate.resources import load_freeze_baseline
from opsgate.rollout import evaluate_stage_activation, validate_promotion, validate_stage_plan
from opsgate.rollup import RollupAggregator
from opsgate.schema import FailSignalRegistry, GateResult, Tier
from opsgate.timeutil import parse_date, utc_now

app = typer.Typer(
    name="opsgate",
    help="Evaluate policy gates for pull-request, release and promotion pipelines.",
    add_completion=False,
    no_args_is_help=True,
)
catalog_app = typer.Typer(help="Token catalog and FailSignal registry checks.", no_args_is_help=True)
required_set_app = typer.Typer(help="Required token set generation and drift checks.", no_args_is_help=True)
disposition_app = typer.Typer(help="Resolve fail signals to PASS/WARN/FAIL.", no_args_is_help=True)
stage_app = typer.Typer(help="Staged rollout and promotion checks.", no_args_is_help=True)
freeze_app = typer.Typer(help="Freeze-mode baseline checks.", no_args_is_help=True)
lock_app = typer.Typer(help="Immutability lock for the token catalog.", no_args_is_help=True)
alias_app = typer.Typer(help="Sunset-aware alias resolution.", no_args_is_help=True)
hooks_app = typer.Typer(help="Proof hooks and the reference rollup.", no_args_is_help=True)

app.add_typer(catalog_app, name="catalog")
app.add_typer(required_set_app, name="required-set")
app.add_typer(disposition_app, name="disposition")
app.add_typer(stage_app, name="stage")
app.add_typer(freeze_app, name="freeze")
app.add_typer(lock_app, name="lock")
app.add_typer(alias_app, name="alias")
app.add_typer(hooks_app, name="hooks")

# Results go to stdout; logs go to stderr so --json output stays parseable
console = Console()
err_console = Console(stderr=True)

# Shared option types
TierOption = Annotated[
    Optional[str],
    typer.Option("--tier", "-t", help="Pipeline tier: prCore, release or promotion."),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Enable verbose output and logging.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Enable debug logging and full error tracebacks.")]
RegistryOption = Annotated[
    Optional[Path],
    typer.Option("--registry", help="Path to the FailSignal registry."),
]
CatalogOption = Annotated[
    Optional[Path],
    typer.Option("--catalog", help="Path to the token catalog."),
]
ProfileOption = Annotated[
    Optional[Path],
    typer.Option("--profile", help="Path to the execution profile."),
]
PlanOption = Annotated[
    Optional[Path],
    typer.Option("--plan", help="Path to the stage plan."),
]
ScopeFlagsOption = Annotated[
    Optional[Path],
    typer.Option("--scope-flags", help="Path to the ScopeFlag registry (a missing file fails flag checks)."),
]
RecordOption = Annotated[
    Optional[Path],
    typer.Option("--record", help="Path to the promotion record."),
]
PolicyOption = Annotated[
    Optional[Path],
    typer.Option("--policy", help="Path to the promotion policy."),
]
EnabledFlagsOption = Annotated[
    Optional[str],
    typer.Option(
        "--enabled-flags",
        help="Comma-separated enabled scope flags; the active stage's flag must be among them.",
    ),
]
LockOption = Annotated[
    Optional[Path],
    typer.Option("--lock", help="Path to the lock file."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]opsgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    OpsGate - policy gates with PASS/WARN/FAIL dispositions.

    Every check prints deterministic KEY=value lines (or one JSON object
    with --json) and exits non-zero only on FAIL.
    """
    pass


@app.command()
def version() -> None:
    """Show the OpsGate version."""
    console.print(f"opsgate {__version__}", markup=False, highlight=False)


# =============================================================================
# Helpers
# =============================================================================


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Attach a RichHandler on stderr to the opsgate logger."""
    if not (verbose or debug):
        return
    logger = logging.getLogger("opsgate")
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(console=err_console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def _fail(error_type: str, error: Exception, json_output: bool, debug: bool) -> NoReturn:
    """Print a single top-level failure and exit 1."""
    message = error.message if isinstance(error, OpsGateError) else str(error)
    if json_output:
        extra: dict[str, Any] = {}
        if isinstance(error, OpsGateError):
            extra["code"] = error.code
            extra["context"] = error.context
        if debug:
            extra["traceback"] = traceback.format_exc()
        print(render_json(error_document(error_type, message, **extra)))
    else:
        console.print(f"[red]Error ({error_type}): {message}[/red]")
        if isinstance(error, OpsGateError) and error.suggestion:
            console.print(f"[dim]Suggestion: {error.suggestion}[/dim]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
    raise typer.Exit(code=1)


def _emit(result: GateResult, json_output: bool, verbose: bool) -> NoReturn:
    """Print a GateResult and exit with its disposition's exit code."""
    if json_output:
        print(render_json(result))
    else:
        print_gate_result(result, console=console, verbose=verbose)
    raise typer.Exit(code=result.exit_code)


def _tier(settings: GateSettings, tier: str | None) -> Tier:
    return Tier.parse(settings.pick("tier", tier))


def _read_optional(path: Path) -> dict[str, Any] | None:
    """Read a document that may legitimately be absent."""
    if not path.exists():
        logging.getLogger(__name__).debug("Optional document %s not found", path)
        return None
    return read_document(path)


def _resolver(registry_path: Path) -> DispositionResolver:
    """Engine registry, overlaid with the project's registry when it exists."""
    project = None
    if registry_path.exists():
        project = load_model(registry_path, FailSignalRegistry)
    return DispositionResolver.with_project_registry(project)


def _split_flags(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [flag.strip() for flag in value.split(",") if flag.strip()]


# =============================================================================
# catalog
# =============================================================================


@catalog_app.command("validate")
def catalog_validate(
    catalog: CatalogOption = None,
    registry: RegistryOption = None,
    required_set: Annotated[
        Optional[Path],
        typer.Option("--required-set", help="Also check that a required token set is covered by the catalog."),
    ] = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Validate the token catalog against the FailSignal registry.

    Example:
        $ opsgate catalog validate --catalog governance/token_catalog.json --tier release
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        catalog_doc = read_document(settings.pick("token_catalog_path", catalog))
        registry_doc = read_document(settings.pick("failsignal_registry_path", registry))
        required_doc = read_document(required_set) if required_set is not None else None
        result = validate_catalog(catalog_doc, registry_doc, required_doc, tier=_tier(settings, tier))
    except OpsGateError as e:
        _fail("catalog_error", e, json_output, debug)
    _emit(result, json_output, verbose)


# =============================================================================
# required-set
# =============================================================================


@required_set_app.command("generate")
def required_set_generate(
    profile: ProfileOption = None,
    write: Annotated[
        bool,
        typer.Option("--write", "-w", help="Materialize the generated set to --out."),
    ] = False,
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Destination of the materialized set."),
    ] = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Generate the required token set for an execution profile.

    Example:
        $ opsgate required-set generate --profile execution_profile.json --write
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        profile_doc = read_document(settings.pick("execution_profile_path", profile))
        result = evaluate_profile(profile_doc, tier=_tier(settings, tier))
        if write and result.details.get("requiredTokenSet") is not None:
            destination = settings.pick("required_token_set_path", out)
            materialize(profile_doc, destination)
            if verbose and not json_output:
                console.print(f"[dim]Wrote {destination}[/dim]")
    except OpsGateError as e:
        _fail("required_set_error", e, json_output, debug)
    _emit(result, json_output, verbose)


@required_set_app.command("drift")
def required_set_drift(
    profile: ProfileOption = None,
    committed: Annotated[
        Optional[Path],
        typer.Option("--committed", help="Path to the committed (materialized) required token set."),
    ] = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """Compare a committed required token set against a fresh generation."""
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        profile_doc = read_document(settings.pick("execution_profile_path", profile))
        committed_doc = read_document(settings.pick("required_token_set_path", committed))
        result = check_drift(profile_doc, committed_doc, tier=_tier(settings, tier))
    except OpsGateError as e:
        _fail("required_set_error", e, json_output, debug)
    _emit(result, json_output, verbose)


@required_set_app.command("conditional-gates")
def required_set_conditional_gates(
    profile: Annotated[
        Optional[Path],
        typer.Option("--profile", help="Derive the case table from this profile's conditional rows."),
    ] = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Check that scope-gated tokens follow their flags.

    Without --profile the built-in case table is used.
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        base_profile = read_document(profile) if profile is not None else None
        cases = cases_from_profile(base_profile) if base_profile is not None else []
        result = check_conditional_gates(
            base_profile=base_profile,
            cases=cases or DEFAULT_CASES,
            tier=_tier(settings, tier),
        )
    except OpsGateError as e:
        _fail("conditional_gates_error", e, json_output, debug)
    _emit(result, json_output, verbose)


# =============================================================================
# disposition
# =============================================================================


@disposition_app.command("resolve")
def disposition_resolve(
    code: Annotated[str, typer.Argument(help="Fail signal code, e.g. E_FREEZE_MODE_STRICT.")],
    registry: RegistryOption = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Show the disposition a failure of CODE gets in a tier.

    Unregistered codes resolve to FAIL. Exits 1 when the disposition is FAIL,
    so the command can guard a pipeline step directly.
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        resolved_tier = _tier(settings, tier)
        resolver = _resolver(settings.pick("failsignal_registry_path", registry))
        disposition = resolver.resolve(code, resolved_tier)
        try:
            signal = resolver.require(code)
        except UnknownFailSignalError:
            signal = None
    except OpsGateError as e:
        _fail("disposition_error", e, json_output, debug)

    output: dict[str, Any] = {
        "code": code,
        "tier": resolved_tier.value,
        "registered": signal is not None,
        "mode": signal.mode_matrix.mode_for(resolved_tier).value if signal else "",
        "disposition": disposition.value,
        "ok": disposition.exit_code == 0,
        "failures": [] if disposition.exit_code == 0 else [code],
    }
    if signal is not None:
        output["modeMatrix"] = signal.mode_matrix.model_dump(mode="json", by_alias=True)
    if json_output:
        print(render_json(output))
    else:
        print_mapping(output, console=console)
    raise typer.Exit(code=disposition.exit_code)


# =============================================================================
# stage
# =============================================================================


@stage_app.command("plan")
def stage_plan(
    plan: PlanOption = None,
    scope_flags: ScopeFlagsOption = None,
    enabled_flags: EnabledFlagsOption = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """Validate the stage plan against the ScopeFlag registry."""
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        plan_doc = read_document(settings.pick("stage_plan_path", plan))
        flags_doc = _read_optional(settings.pick("scope_flags_path", scope_flags))
        result = validate_stage_plan(
            plan_doc,
            scope_flags=flags_doc,
            enabled_flags=_split_flags(enabled_flags),
            tier=_tier(settings, tier),
        )
    except OpsGateError as e:
        _fail("stage_plan_error", e, json_output, debug)
    _emit(result, json_output, verbose)


@stage_app.command("promotion")
def stage_promotion(
    record: RecordOption = None,
    policy: PolicyOption = None,
    plan: PlanOption = None,
    scope_flags: ScopeFlagsOption = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Validate a promotion record.

    Example:
        $ opsgate stage promotion --record promotion_record.json --tier promotion --json
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        record_doc = read_document(settings.pick("promotion_record_path", record))
        policy_doc = read_document(settings.pick("promotion_policy_path", policy))
        plan_doc = read_document(settings.pick("stage_plan_path", plan))
        flags_doc = _read_optional(settings.pick("scope_flags_path", scope_flags))
        result = validate_promotion(
            record_doc,
            policy_doc,
            plan_doc,
            scope_flags=flags_doc,
            tier=_tier(settings, tier),
        )
    except OpsGateError as e:
        _fail("promotion_error", e, json_output, debug)
    _emit(result, json_output, verbose)


@stage_app.command("activation")
def stage_activation(
    plan: PlanOption = None,
    record: RecordOption = None,
    policy: PolicyOption = None,
    scope_flags: ScopeFlagsOption = None,
    enabled_flags: EnabledFlagsOption = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """Validate the stage plan and promotion record together."""
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        plan_doc = read_document(settings.pick("stage_plan_path", plan))
        record_doc = read_document(settings.pick("promotion_record_path", record))
        policy_doc = read_document(settings.pick("promotion_policy_path", policy))
        flags_doc = _read_optional(settings.pick("scope_flags_path", scope_flags))
        result = evaluate_stage_activation(
            plan_doc,
            record_doc,
            policy_doc,
            scope_flags=flags_doc,
            enabled_flags=_split_flags(enabled_flags),
            tier=_tier(settings, tier),
        )
    except OpsGateError as e:
        _fail("stage_activation_error", e, json_output, debug)
    _emit(result, json_output, verbose)


# =============================================================================
# freeze
# =============================================================================


@freeze_app.command("evaluate")
def freeze_evaluate(
    rollups: Annotated[
        Path,
        typer.Option("--rollups", help="JSON/YAML object of tokenId -> 0|1 (or a rollup report with 'tokens')."),
    ],
    enabled: Annotated[
        bool,
        typer.Option("--enabled/--disabled", help="Whether freeze mode is active."),
    ] = False,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """Require every baseline token to be 1 while freeze mode is enabled."""
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        rollup_doc = read_document(rollups)
        values = rollup_doc["tokens"] if isinstance(rollup_doc.get("tokens"), dict) else rollup_doc
        result = evaluate_freeze(values, enabled, tier=_tier(settings, tier))
    except OpsGateError as e:
        _fail("freeze_error", e, json_output, debug)
    _emit(result, json_output, verbose)


@freeze_app.command("baseline")
def freeze_baseline(
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """Print the packaged required-always baseline."""
    _configure_logging(verbose, debug)
    baseline = load_freeze_baseline()
    output = {
        "ok": True,
        "failures": [],
        "baselineVersion": baseline.version,
        "requiredAlways": list(baseline.required_always),
    }
    if json_output:
        print(render_json(output))
        return
    print_mapping({"baselineVersion": baseline.version}, console=console)
    for token in baseline.required_always:
        console.print(token, markup=False, highlight=False)


# =============================================================================
# lock
# =============================================================================


@lock_app.command("verify")
def lock_verify(
    catalog: CatalogOption = None,
    lock: LockOption = None,
    source_name: Annotated[
        Optional[str],
        typer.Option("--source-name", help="Expected canonicalSourceName of the lock."),
    ] = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Verify the token catalog against its lock.

    A mismatch reports both digests; it never rewrites the lock.
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        declaration = read_document(settings.pick("token_catalog_path", catalog))
        lock_doc = _read_optional(settings.pick("token_catalog_lock_path", lock))
        result = verify(declaration, lock_doc, source_name=source_name, tier=_tier(settings, tier))
    except OpsGateError as e:
        _fail("lock_error", e, json_output, debug)
    _emit(result, json_output, verbose)


@lock_app.command("write")
def lock_write(
    catalog: CatalogOption = None,
    lock: LockOption = None,
    source_name: Annotated[
        str,
        typer.Option("--source-name", help="canonicalSourceName recorded in the lock."),
    ] = DEFAULT_SOURCE_NAME,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Pin the current token catalog by writing its lock.

    This is the only command that modifies a governance file.
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        declaration = read_document(settings.pick("token_catalog_path", catalog))
        destination = settings.pick("token_catalog_lock_path", lock)
        written = write_lock(declaration, destination, canonical_source_name=source_name)
    except OpsGateError as e:
        _fail("lock_write_error", e, json_output, debug)

    output = written.model_dump(mode="json", by_alias=True)
    output.update(ok=True, failures=[], path=str(destination))
    if json_output:
        print(render_json(output))
    else:
        print_mapping(output, console=console)


# =============================================================================
# alias
# =============================================================================


@alias_app.command("resolve")
def alias_resolve(
    ids: Annotated[list[str], typer.Argument(help="Identifiers to resolve.")],
    canon: Annotated[
        Optional[Path],
        typer.Option("--canon", help="Path to the alias canon."),
    ] = None,
    today: Annotated[
        Optional[str],
        typer.Option("--today", help="Evaluation date YYYY-MM-DD (default: current UTC date)."),
    ] = None,
    enforce_sunset: Annotated[
        bool,
        typer.Option("--enforce-sunset", help="Fail expired aliases in every tier."),
    ] = False,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Resolve identifiers to their canonical form.

    Example:
        $ opsgate alias resolve deprecated.save --today 2026-01-01 --tier promotion
    """
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        resolved_tier = _tier(settings, tier)
        as_of = parse_date(today) if today else utc_now().date()
        resolver = AliasResolver(read_document(settings.pick("alias_canon_path", canon)), enforce_sunset=enforce_sunset)
        result = resolver.resolve_many(ids, resolved_tier, as_of)
    except OpsGateError as e:
        _fail("alias_error", e, json_output, debug)

    if not json_output and verbose:
        for identifier in ids:
            print_alias_resolution(resolver.resolve(identifier, resolved_tier, as_of), console=console, verbose=True)
    _emit(result, json_output, verbose)


# =============================================================================
# hooks
# =============================================================================


@hooks_app.command("list")
def hooks_list(
    catalog: CatalogOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """List the proof hooks declared in the token catalog."""
    _configure_logging(verbose, debug)
    try:
        settings = load_settings()
        hooks = HookRegistry.from_catalog(read_document(settings.pick("token_catalog_path", catalog)))
    except OpsGateError as e:
        _fail("hooks_error", e, json_output, debug)

    if json_output:
        print(render_json({
            "ok": True,
            "failures": [],
            "hooks": [
                {
                    "tokenId": hook.token_id,
                    "proofHookRef": hook.hook_ref,
                    "failSignalCode": hook.fail_signal_code,
                    "sourceBinding": hook.source_binding.value,
                }
                for hook in hooks
            ],
        }))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Token", style="cyan")
    table.add_column("Fail Signal")
    table.add_column("Binding", style="dim")
    table.add_column("Hook")
    for hook in hooks:
        table.add_row(hook.token_id, hook.fail_signal_code, hook.source_binding.value, hook.hook_ref)
    console.print(table)


def _parse_values(values: list[str]) -> dict[str, int]:
    parsed: dict[str, int] = {}
    for item in values:
        token_id, sep, raw = item.partition("=")
        if not sep or raw.strip() not in ("0", "1"):
            raise typer.BadParameter(f"expected TOKEN=0|1, got {item!r}", param_hint="--value")
        parsed[token_id.strip()] = int(raw.strip())
    return parsed


@hooks_app.command("run")
def hooks_run(
    catalog: CatalogOption = None,
    registry: RegistryOption = None,
    token: Annotated[
        Optional[list[str]],
        typer.Option("--token", help="Token to evaluate (repeatable; default: every catalog token)."),
    ] = None,
    value: Annotated[
        Optional[list[str]],
        typer.Option("--value", help="Known token value TOKEN=0|1; its hook is not run (repeatable)."),
    ] = None,
    freeze_mode: Annotated[
        bool,
        typer.Option("--freeze-mode/--no-freeze-mode", help="Also enforce the freeze baseline."),
    ] = False,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Per-hook timeout in seconds."),
    ] = None,
    cwd: Annotated[
        Optional[Path],
        typer.Option("--cwd", help="Working directory for hooks."),
    ] = None,
    tier: TierOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Run proof hooks and evaluate the resulting rollup.

    Hooks that cannot run are execution failures, reported separately
    from tokens whose hooks ran and returned 0.
    """
    _configure_logging(verbose, debug)
    supplied = _parse_values(value or [])
    try:
        settings = load_settings()
        hooks = HookRegistry.from_catalog(read_document(settings.pick("token_catalog_path", catalog)))
        aggregator = RollupAggregator(
            hooks,
            runner=ProofHookRunner(timeout_seconds=settings.pick("hook_timeout_seconds", timeout), cwd=cwd),
            resolver=_resolver(settings.pick("failsignal_registry_path", registry)),
        )
        report = aggregator.evaluate(
            token_values=supplied,
            tokens=token or None,
            freeze_mode_enabled=freeze_mode,
            tier=_tier(settings, tier),
        )
    except OpsGateError as e:
        _fail("rollup_error", e, json_output, debug)
    except ValueError as e:
        _fail("rollup_error", e, json_output, debug)

    if json_output:
        print(render_json(report))
    else:
        for token_id in sorted(report.tokens):
            console.print(f"{token_id}={report.tokens[token_id]}", markup=False, highlight=False)
        for failure in report.execution_failures:
            console.print(f"EXECUTION_FAILURE={failure.token_id}:{failure.code}", markup=False, highlight=False)
        print_gate_result(report.gate, console=console, verbose=verbose)
        print_gate_result(report.freeze, console=console, verbose=verbose)
    raise typer.Exit(code=report.exit_code)


if __name__ == "__main__":
    app()
