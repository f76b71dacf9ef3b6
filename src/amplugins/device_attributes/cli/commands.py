"""Device-attribute CLI commands.

Commands:
    device-attributes reconcile [schema.yaml]
    device-attributes status
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from amplugins.device_attributes.audit import ReconciliationAuditLogger, configure_audit_logging
from amplugins.device_attributes.config import get_settings
from amplugins.device_attributes.exceptions import ReconciliationError
from amplugins.device_attributes.logs import configure_logging
from amplugins.device_attributes.models import MergeStrategy, PassReport, RequiredSchema
from amplugins.device_attributes.reconcile import (
    ReconciliationDriver,
    find_sub_configurations,
    list_realms,
)
from amplugins.device_attributes.store import AmAuthError, AmError, AmSettings, open_store

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="device-attributes",
    help="Keep LDAP data stores ready for device-attribute storage",
    add_completion=False,
)


def _configure_logging(verbose: bool, json_audit: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else get_settings().log_level
    configure_logging(level)
    configure_audit_logging(
        log_level=level,
        json_format=json_audit,
        service_name=get_settings().service_name,
    )


def _build_am_settings(
    base_url: str | None,
    admin_user: str | None,
    admin_password: str | None,
) -> AmSettings:
    """Build connection settings from environment and CLI overrides."""
    return AmSettings().with_overrides(
        base_url=base_url,
        admin_user=admin_user,
        admin_password=admin_password,
    )


def _build_schema(
    schema_path: Path | None,
    merge: MergeStrategy | None,
    populate_empty: bool | None,
) -> RequiredSchema:
    schema = (
        RequiredSchema.from_yaml(schema_path)
        if schema_path
        else RequiredSchema.from_settings(get_settings())
    )
    overrides = {}
    if merge is not None:
        overrides["merge_strategy"] = merge
    if populate_empty is not None:
        overrides["populate_empty"] = populate_empty
    return schema.model_copy(update=overrides) if overrides else schema


@app.command("reconcile")
def reconcile(
    schema_path: Annotated[
        Optional[Path],
        typer.Argument(
            help="Optional YAML file with the required schema",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    # Connection options
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", "-u", help="Access-management base URL"),
    ] = None,
    admin_user: Annotated[
        Optional[str],
        typer.Option("--admin-user", help="Administrator username"),
    ] = None,
    admin_password: Annotated[
        Optional[str],
        typer.Option("--admin-password", help="Administrator password"),
    ] = None,
    # Reconcile options
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be done without making changes"),
    ] = False,
    merge: Annotated[
        Optional[MergeStrategy],
        typer.Option("--merge", help="Keep stored values (union) or overwrite them (replace)"),
    ] = None,
    populate_empty: Annotated[
        Optional[bool],
        typer.Option(
            "--populate-empty/--skip-empty",
            help="Also write to data stores whose setting has no value yet",
        ),
    ] = None,
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-c", min=1, help="Realms processed in parallel"),
    ] = None,
    retries: Annotated[
        Optional[int],
        typer.Option("--retries", min=0, help="Retries for failed reads"),
    ] = None,
    json_audit: Annotated[
        bool,
        typer.Option("--json-audit", help="Render audit events as JSON"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Reconcile the device-attribute schema on every realm's LDAP data stores.

    Idempotent: running it again after a successful pass changes nothing.

    Example:
        device-attributes reconcile --dry-run
        device-attributes reconcile schema.yaml --admin-user amadmin --admin-password secret
    """
    _configure_logging(verbose, json_audit)
    settings = get_settings()
    am_settings = _build_am_settings(base_url, admin_user, admin_password)

    try:
        schema = _build_schema(schema_path, merge, populate_empty)
    except Exception as e:
        typer.secho(f"Error loading schema: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(f"Reconciling data stores on: {am_settings.base_url}")
    typer.echo(
        f"Required: objectclass {schema.object_class}, "
        f"attributes {', '.join(sorted(schema.attributes))} ({schema.merge_strategy.value})"
    )

    try:
        report = asyncio.run(
            _async_reconcile(
                am_settings=am_settings,
                schema=schema,
                dry_run=dry_run,
                concurrency=concurrency or settings.concurrency,
                retries=settings.read_retries if retries is None else retries,
            )
        )
    except AmAuthError as e:
        typer.secho(f"Authentication failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except AmError as e:
        typer.secho(f"Access-management error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except Exception as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        if verbose:
            import traceback

            traceback.print_exc()
        raise typer.Exit(1)

    if dry_run:
        typer.secho("\n[DRY RUN] No changes applied", fg=typer.colors.YELLOW)

    typer.echo("\n" + report.summary())

    if not report.success:
        raise typer.Exit(1)


async def _async_reconcile(
    am_settings: AmSettings,
    schema: RequiredSchema,
    dry_run: bool,
    concurrency: int,
    retries: int,
) -> PassReport:
    """Run one reconciliation pass."""
    settings = get_settings()

    async with open_store(am_settings) as store:
        driver = ReconciliationDriver(
            store,
            schema,
            service_id=settings.identity_service,
            name_pattern=settings.sub_config_name_pattern,
            type_pattern=settings.sub_config_type_pattern,
            concurrency=concurrency,
            read_retries=retries,
            retry_backoff=settings.retry_backoff_seconds,
            dry_run=dry_run,
            audit=ReconciliationAuditLogger(),
        )
        return await driver.run_pass()


@app.command("status")
def status(
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", "-u", help="Access-management base URL"),
    ] = None,
    admin_user: Annotated[
        Optional[str],
        typer.Option("--admin-user", help="Administrator username"),
    ] = None,
    admin_password: Annotated[
        Optional[str],
        typer.Option("--admin-password", help="Administrator password"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Show every realm's LDAP data stores and whether they carry the schema.

    Example:
        device-attributes status
    """
    _configure_logging(verbose)
    am_settings = _build_am_settings(base_url, admin_user, admin_password)
    schema = RequiredSchema.from_settings(get_settings())

    typer.echo(f"Access management: {am_settings.base_url}")

    try:
        asyncio.run(_async_status(am_settings, schema))
    except AmAuthError as e:
        typer.secho(f"Authentication failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except (AmError, ReconciliationError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except Exception as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        if verbose:
            import traceback

            traceback.print_exc()
        raise typer.Exit(1)


def _compliance(current: set[str], required: frozenset[str]) -> str:
    if not current:
        return "empty"
    missing = required - current
    if missing:
        return f"missing {', '.join(sorted(missing))}"
    return "ok"


async def _async_status(am_settings: AmSettings, schema: RequiredSchema) -> None:
    settings = get_settings()

    async with open_store(am_settings) as store:
        realms = await list_realms(store)
        typer.echo(f"\nRealms ({len(realms)}):")

        for realm in realms:
            typer.echo(f"  - {realm}")
            try:
                handles = await find_sub_configurations(
                    store,
                    realm,
                    service_id=settings.identity_service,
                    name_pattern=settings.sub_config_name_pattern,
                    type_pattern=settings.sub_config_type_pattern,
                )
            except ReconciliationError as e:
                typer.secho(f"      ! {e}", fg=typer.colors.RED)
                continue

            for handle in handles:
                typer.echo(f"      {handle.ref.name} ({handle.ref.type_id or '?'})")
                try:
                    object_classes = await handle.sub_config.get_attribute_value(
                        schema.object_class_attribute
                    )
                    attributes = await handle.sub_config.get_attribute_value(
                        schema.user_attributes_attribute
                    )
                except ReconciliationError as e:
                    typer.secho(f"        ! {e}", fg=typer.colors.RED)
                    continue

                typer.echo(
                    f"        objectclass: "
                    f"{_compliance(object_classes, frozenset({schema.object_class}))}"
                )
                typer.echo(f"        attributes: {_compliance(attributes, schema.attributes)}")
