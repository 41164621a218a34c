"""linref CLI: all commands."""

from typing import Annotated, NoReturn

import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from linref.aliases import AliasStore, validate_aliases
from linref.cache import EntityCache
from linref.errors import LinrefError
from linref.log import configure_logging
from linref.models import TEAM_SCOPED_TYPES, AliasResult, AliasStatus, ConfigSource, Entity, EntityType, Scope
from linref.providers.base import EntityProvider
from linref.providers.linear import LinearProvider
from linref.resolver import Resolver
from linref.settings import ENTITY_KEYS, ConfigKey, ConfigStore, mask_secret
from linref.sync import SlugSyncEngine

app = typer.Typer(help="linref: Linear aliases, layered config and entity cache", no_args_is_help=True)
alias_app = typer.Typer(help="Manage aliases (project scope shadows global scope)", no_args_is_help=True)
config_app = typer.Typer(help="Read and write configuration values", no_args_is_help=True)
cache_app = typer.Typer(help="Inspect and clear the entity cache", no_args_is_help=True)
app.add_typer(alias_app, name="alias")
app.add_typer(config_app, name="config")
app.add_typer(cache_app, name="cache")

ProjectOpt = Annotated[
    bool,
    typer.Option("--project", "-p", help="Use .linref/ in this directory instead of ~/.config/linref/"),
]
TeamOpt = Annotated[
    str | None,
    typer.Option("--team", "-t", help="Team alias, name or ID (members, issue labels, workflow states)"),
]
TypeArg = Annotated[str, typer.Argument(help="Entity type, e.g. team, initiative, member, workflow-state")]

_NOT_SET = "[dim](not set)[/dim]"


@app.callback()
def main(verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False) -> None:
    configure_logging(verbose)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def get_config() -> ConfigStore:
    return ConfigStore()


def get_aliases() -> AliasStore:
    return AliasStore()


def get_cache(config: ConfigStore) -> EntityCache:
    return EntityCache.from_config(config)


def get_provider(config: ConfigStore) -> EntityProvider:
    api_key = config.get(ConfigKey.API_KEY)
    if not api_key:
        _fail("No Linear API key. Set LINEAR_API_KEY or run: linref config set api_key <key>")
    return LinearProvider(api_key)


def build_resolver(config: ConfigStore, cache: EntityCache | None = None) -> Resolver:
    return Resolver(get_aliases(), cache or get_cache(config), get_provider(config))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(message: str) -> NoReturn:
    rprint(f"[red]{escape(message)}[/red]")
    raise typer.Exit(1)


def _entity_type(text: str) -> EntityType:
    entity_type = EntityType.parse(text)
    if entity_type is None:
        _fail(f"Unknown entity type '{text}'. Valid: {', '.join(t.value for t in EntityType)}")
    return entity_type


def _scope(project: bool) -> Scope:
    return Scope.PROJECT if project else Scope.GLOBAL


def _report_alias_failure(result: AliasResult) -> NoReturn:
    if result.status == AliasStatus.CONFLICT:
        rprint(f"[yellow]{escape(result.message or 'Alias conflict')}[/yellow]")
        if result.previous_id:
            rprint(f"  Currently → {result.previous_id}")
        rprint("  Use --force to overwrite, or pick another alias.")
        raise typer.Exit(1)
    _fail(result.message or f"Alias operation failed ({result.status})")


def _list_entities(
    resolver: Resolver, cache: EntityCache, entity_type: EntityType, team: str | None
) -> list[Entity]:
    if team and entity_type in TEAM_SCOPED_TYPES:
        team_id = resolver.resolve(EntityType.TEAM, team).id
        return resolver.provider.list_entities(entity_type, team_id=team_id)
    entities, _ = cache.entities(entity_type, lambda: resolver.provider.list_entities(entity_type))
    return entities


# ---------------------------------------------------------------------------
# alias
# ---------------------------------------------------------------------------


@alias_app.command("add")
def alias_add(
    entity_type: TypeArg,
    alias: Annotated[str, typer.Argument(help="Alias to create (no spaces, case-insensitive)")],
    entity_id: Annotated[str, typer.Argument(help="Linear ID the alias points to")],
    project: ProjectOpt = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing alias in this scope")] = False,
    skip_validation: Annotated[
        bool, typer.Option("--skip-validation", help="Do not check that the ID exists in Linear")
    ] = False,
) -> None:
    """Create an alias for a Linear ID."""
    et = _entity_type(entity_type)
    scope = _scope(project)
    entity_name: str | None = None
    if not skip_validation:
        try:
            validation = get_provider(get_config()).validate_exists(et, entity_id)
        except LinrefError as exc:
            _fail(f"{exc} (use --skip-validation to add the alias anyway)")
        if not validation.valid:
            _fail(validation.error or f"{et} '{entity_id}' not found")
        entity_name = validation.name

    result = get_aliases().add(et, alias, entity_id, scope, allow_overwrite=force)
    if not result.ok:
        _report_alias_failure(result)

    label = f" ({escape(entity_name)})" if entity_name else ""
    action = "Updated" if result.previous_id else "Added"
    rprint(f"[green]✓[/green] {action} {et} alias [bold]{result.alias}[/bold] → {entity_id}{label} [dim]({scope})[/dim]")


@alias_app.command("remove")
def alias_remove(
    entity_type: TypeArg,
    alias: Annotated[str, typer.Argument(help="Alias to remove")],
    project: ProjectOpt = False,
) -> None:
    """Remove an alias from one scope."""
    et = _entity_type(entity_type)
    result = get_aliases().remove(et, alias, _scope(project))
    if not result.ok:
        _report_alias_failure(result)
    rprint(f"[green]✓[/green] Removed {et} alias [bold]{result.alias}[/bold] (was {result.id}) [dim]({result.scope})[/dim]")


@alias_app.command("get")
def alias_get(
    entity_type: TypeArg,
    alias: Annotated[str, typer.Argument(help="Alias to look up")],
) -> None:
    """Print the ID an alias resolves to and the scope it comes from."""
    et = _entity_type(entity_type)
    match = get_aliases().resolve(et, alias)
    if match is None:
        _fail(f"No {et} alias '{alias}' in project or global scope")
    rprint(f"{match.id} [dim]({match.scope}: {match.path})[/dim]")


@alias_app.command("list")
def alias_list(
    entity_type: Annotated[str | None, typer.Argument(help="Only list this entity type")] = None,
) -> None:
    """List aliases from both scopes."""
    et = _entity_type(entity_type) if entity_type else None
    records = get_aliases().list_aliases(et)
    if not records:
        rprint("[dim]No aliases defined.[/dim]")
        return

    table = Table(title="Aliases")
    table.add_column("Type", style="cyan")
    table.add_column("Alias", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Scope")
    for r in records:
        scope = f"{r.scope} [dim](shadowed)[/dim]" if r.shadowed else str(r.scope)
        table.add_row(str(r.entity_type), r.alias, r.id, scope)
    rprint(table)


@alias_app.command("rename")
def alias_rename(
    entity_type: TypeArg,
    old: Annotated[str, typer.Argument(help="Existing alias")],
    new: Annotated[str, typer.Argument(help="New alias")],
    project: ProjectOpt = False,
) -> None:
    """Rename an alias, keeping its target."""
    et = _entity_type(entity_type)
    result = get_aliases().rename(et, old, new, _scope(project))
    if not result.ok:
        _report_alias_failure(result)
    rprint(f"[green]✓[/green] Renamed {et} alias {old.strip().lower()} → [bold]{result.alias}[/bold] ({result.id})")


@alias_app.command("clear")
def alias_clear(
    entity_type: TypeArg,
    project: ProjectOpt = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show what would be removed")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Remove every alias of one type from one scope."""
    et = _entity_type(entity_type)
    scope = _scope(project)
    store = get_aliases()
    pending = store.clear(et, scope, preview=True)
    if not pending:
        rprint(f"[dim]No {et} aliases in {scope} scope.[/dim]")
        return
    rprint(f"{len(pending)} {et} alias(es) in {scope} scope: {', '.join(pending)}")
    if dry_run:
        return
    if not yes and not typer.confirm("Remove them?", default=False):
        raise typer.Exit(1)
    removed = store.clear(et, scope)
    rprint(f"[green]✓[/green] Cleared {len(removed)} {et} alias(es) [dim]({scope})[/dim]")


@alias_app.command("sync")
def alias_sync(
    entity_type: TypeArg,
    global_: Annotated[bool, typer.Option("--global", "-g", help="Write aliases to the global scope")] = False,
    project: ProjectOpt = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview without writing")] = False,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Re-derive aliases for entities that already have one")
    ] = False,
    auto_suffix: Annotated[
        bool, typer.Option("--auto-suffix/--no-auto-suffix", help="Number colliding slugs (-2, -3) instead of skipping")
    ] = True,
    team: TeamOpt = None,
) -> None:
    """Create aliases from entity names. Without --global or --project this is a preview."""
    if global_ and project:
        _fail("Pass only one of --global or --project")
    et = _entity_type(entity_type)
    scope = _scope(project)
    preview = dry_run or not (global_ or project)

    config = get_config()
    cache = get_cache(config)
    resolver = build_resolver(config, cache)
    try:
        entities = _list_entities(resolver, cache, et, team)
    except LinrefError as exc:
        _fail(str(exc))
    rprint(f"Found {len(entities)} {et} entities")

    report = SlugSyncEngine(resolver.aliases).sync(
        et, entities, scope, force=force, dry_run=preview, auto_suffix=auto_suffix
    )

    suffixed = {c.id for c in report.conflicts if c.assigned}
    table = Table(title=f"{et} aliases ({'preview' if preview else scope})")
    table.add_column("Status")
    table.add_column("Alias", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    for a in report.created:
        status = "[yellow]suffixed[/yellow]" if a.id in suffixed else "[green]new[/green]"
        table.add_row(status, a.alias, a.id, escape(a.name))
    for s in report.skipped:
        table.add_row(f"[dim]skipped: {s.reason}[/dim]", s.slug or "", s.id, escape(s.name))
    rprint(table)

    if preview:
        rprint(f"[dim]{len(report.created)} alias(es) would be created.[/dim]")
        if not (global_ or project):
            rprint("Re-run with --global or --project to write them.")
        return
    rprint(f"[green]✓[/green] Created {len(report.created)} {et} alias(es) [dim]({scope})[/dim]")
    if report.skipped:
        rprint(f"  Skipped {len(report.skipped)} (use --force to re-derive already aliased entities)")


@alias_app.command("validate")
def alias_validate() -> None:
    """Check that every alias still points at an existing Linear entity."""
    store = get_aliases()
    try:
        broken = validate_aliases(store, get_provider(get_config()))
    except LinrefError as exc:
        _fail(str(exc))
    if not broken:
        rprint("[green]✓[/green] All aliases resolve")
        return

    table = Table(title="Broken aliases")
    table.add_column("Type", style="cyan")
    table.add_column("Alias", style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Scope")
    table.add_column("Error", style="red")
    for b in broken:
        table.add_row(str(b.record.entity_type), b.record.alias, b.record.id, str(b.record.scope), escape(b.error))
    rprint(table)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


def _display_value(key: str, value: str | None) -> str:
    if value is None:
        return _NOT_SET
    return mask_secret(value) if key == ConfigKey.API_KEY else escape(value)


def _display_location(source: ConfigSource, path: object) -> str:
    if source == ConfigSource.NONE:
        return "[dim]—[/dim]"
    return f"{source} [dim]({path})[/dim]" if path else str(source)


@config_app.command("get")
def config_get(key: Annotated[str, typer.Argument(help="Config key")]) -> None:
    """Show a value and which scope supplies it."""
    try:
        effective = get_config().get_effective(key)
    except LinrefError as exc:
        _fail(str(exc))
    location = _display_location(effective.location.source, effective.location.path)
    rprint(f"{_display_value(key, effective.value)}  {location}")


@config_app.command("set")
def config_set(
    key: Annotated[str, typer.Argument(help="Config key")],
    value: Annotated[str, typer.Argument(help="Value; for default_* keys an alias, name or ID")],
    project: ProjectOpt = False,
    skip_validation: Annotated[
        bool, typer.Option("--skip-validation", help="Store the value without resolving or checking it")
    ] = False,
) -> None:
    """Set a value in one scope."""
    config = get_config()
    scope = _scope(project)
    stored_label = ""
    try:
        et = ENTITY_KEYS.get(key)
        if et is not None and not skip_validation:
            resolution = build_resolver(config).resolve(et, value)
            validation = get_provider(config).validate_exists(et, resolution.id)
            if not validation.valid:
                _fail(validation.error or f"{et} '{value}' not found")
            value = resolution.id
            stored_label = f" ({escape(validation.name)})" if validation.name else ""
        stored = config.set_value(key, value, scope)
    except LinrefError as exc:
        _fail(str(exc))
    rprint(f"[green]✓[/green] {key} = {_display_value(key, stored)}{stored_label} [dim]({config.document(scope).path})[/dim]")


@config_app.command("unset")
def config_unset(
    key: Annotated[str, typer.Argument(help="Config key")],
    project: ProjectOpt = False,
) -> None:
    """Remove a value from one scope."""
    config = get_config()
    scope = _scope(project)
    try:
        removed = config.unset_value(key, scope)
    except LinrefError as exc:
        _fail(str(exc))
    if not removed:
        rprint(f"[dim]{key} was not set in {scope} scope.[/dim]")
        return
    rprint(f"[green]✓[/green] Removed {key} from {scope} config")


@config_app.command("list")
def config_list() -> None:
    """Show every setting's effective value and source."""
    table = Table(title="linref configuration")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_column("Source")
    for effective in get_config().list_effective():
        table.add_row(
            effective.key,
            _display_value(effective.key, effective.value),
            _display_location(effective.location.source, effective.location.path),
        )
    rprint(table)


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


@cache_app.command("clear")
def cache_clear(
    entity: Annotated[str | None, typer.Option("--entity", "-e", help="Only clear this entity type")] = None,
) -> None:
    """Clear session and persistent cache entries."""
    et = _entity_type(entity) if entity else None
    cleared = get_cache(get_config()).clear(et)
    what = f"{et} cache" if et else "all caches"
    rprint(f"[green]✓[/green] Cleared {what} ({len(cleared)} file(s) removed)")
    rprint("[dim]Entries are fetched again on next use.[/dim]")


@cache_app.command("stats")
def cache_stats() -> None:
    """Show what the persistent cache holds and whether it is fresh."""
    cache = get_cache(get_config())
    table = Table(title=f"Entity cache (ttl {cache.ttl_seconds // 60} min)")
    table.add_column("Type", style="cyan")
    table.add_column("Entities")
    table.add_column("Age")
    table.add_column("Fresh")
    for stat in cache.stats():
        if stat.persistent_count is None:
            continue
        age = f"{int(stat.age_seconds // 60)} min" if stat.age_seconds is not None else "—"
        fresh = "[green]yes[/green]" if stat.fresh else "[yellow]stale[/yellow]"
        table.add_row(str(stat.entity_type), str(stat.persistent_count), age, fresh)
    if not table.rows:
        rprint("[dim]Persistent cache is empty.[/dim]")
        return
    rprint(table)


# ---------------------------------------------------------------------------
# resolve / list
# ---------------------------------------------------------------------------


@app.command("resolve")
def resolve_cmd(
    entity_type: TypeArg,
    token: Annotated[str, typer.Argument(help="Alias, name or ID")],
    team: TeamOpt = None,
) -> None:
    """Resolve an alias, name or ID to a Linear ID."""
    et = _entity_type(entity_type)
    resolver = build_resolver(get_config())
    try:
        team_id = resolver.resolve(EntityType.TEAM, team).id if team else None
        resolution = resolver.resolve(et, token, team_id=team_id)
    except LinrefError as exc:
        _fail(str(exc))
    name = f" {escape(resolution.name)}" if resolution.name else ""
    rprint(f"{resolution.id}{name} [dim](via {resolution.resolved_by})[/dim]")


@app.command("list")
def list_cmd(entity_type: TypeArg, team: TeamOpt = None) -> None:
    """List entities of a type with their aliases."""
    et = _entity_type(entity_type)
    config = get_config()
    cache = get_cache(config)
    resolver = build_resolver(config, cache)
    try:
        entities = _list_entities(resolver, cache, et, team)
    except LinrefError as exc:
        _fail(str(exc))

    table = Table(title=f"{et} ({len(entities)})")
    table.add_column("Name", style="bold")
    table.add_column("Aliases", style="cyan")
    table.add_column("ID", style="dim")
    index = resolver.aliases.reverse_index(et)
    for e in entities:
        aliases = ", ".join(sorted(index.get(e.id, ())))
        table.add_row(escape(e.name), aliases, e.id)
    rprint(table)
