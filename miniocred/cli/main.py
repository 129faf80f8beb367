"""
miniocred - CLI Main Entry Point

Operator tooling around the plugin: validate a configuration file, preview
generated usernames, and run the lifecycle operations by hand against a
MinIO deployment.
"""

import sys
import asyncio

import click

from miniocred import __version__
from miniocred.admin import build_client, parse_endpoint
from miniocred.config import LoggingConfig, PluginConfig
from miniocred.exceptions import PluginError
from miniocred.models import (
    ChangePassword,
    DeleteUserRequest,
    InitializeRequest,
    NewUserRequest,
    Statements,
    UpdateUserRequest,
)
from miniocred.observability.logging import configure_logging
from miniocred.plugin import new_plugin
from miniocred.username import UsernameMetadata, UsernameTemplate
from miniocred.cli.utils import (
    console,
    success,
    error,
    warning,
    info,
    mask,
    print_key_value,
)


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.version_option(version=__version__, prog_name="miniocred")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"]),
    default="text",
    show_default=True,
    help="Log format",
)
@click.pass_context
def cli(ctx, log_level, log_format):
    """
    miniocred - MinIO credential lifecycle tooling

    Create, rotate and delete MinIO users bound to reconciled
    canned policies.
    """
    ctx.ensure_object(dict)
    ctx.obj.setdefault("client_factory", build_client)
    ctx.obj["logging"] = LoggingConfig(level=log_level.upper(), format=log_format)


def _load_config(config_file: str) -> PluginConfig:
    try:
        return PluginConfig.from_file(config_file)
    except PluginError as e:
        error(f"Failed to load configuration: {e}")
        sys.exit(1)


async def _initialized_plugin(ctx, config: PluginConfig):
    plugin = new_plugin(client_factory=ctx.obj["client_factory"])
    logging_config = ctx.obj["logging"]
    configure_logging(
        logging_config.level, logging_config.format, secrets=plugin.secret_values
    )
    await plugin.initialize(InitializeRequest(config=config.to_mapping()))
    return plugin


def _run(coro):
    try:
        return asyncio.run(coro)
    except PluginError as e:
        error(str(e))
        sys.exit(1)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option(
    "--check-connection",
    is_flag=True,
    default=False,
    help="Check the MinIO liveness endpoint",
)
@click.pass_context
def validate(ctx, config_file, check_connection):
    """
    Validate a plugin configuration file.

    Checks:
    - Required fields and their types
    - Connection URL
    - Username template (compiled and rendered once)
    - Backend liveness (with --check-connection)
    """
    info(f"Validating configuration: {config_file}")
    config = _load_config(config_file)

    errors = []
    warnings = []

    try:
        endpoint = parse_endpoint(config.url)
    except PluginError as e:
        errors.append(str(e))
        endpoint = None

    sample = None
    try:
        template = UsernameTemplate.compile(config.username_template)
        sample = template.generate(UsernameMetadata())
    except PluginError as e:
        errors.append(str(e))

    if endpoint is not None and not endpoint.secure:
        warnings.append(f"Connection to {endpoint.host} is not secured (use https)")

    if endpoint is not None and check_connection:
        try:
            client = ctx.obj["client_factory"](config)
        except PluginError as e:
            errors.append(str(e))
        else:
            if asyncio.run(client.health_check()):
                success(f"Backend reachable: {endpoint.host}")
            else:
                errors.append(f"Backend not reachable: {endpoint.host}")

    if warnings:
        console.print()
        for warn in warnings:
            warning(warn)

    if errors:
        console.print()
        for err in errors:
            error(err)
        console.print()
        error("Configuration validation failed")
        sys.exit(1)

    console.print()
    success("Configuration validation passed")

    print_key_value(
        {
            "Host": endpoint.host,
            "Secure": endpoint.secure,
            "Access Key": config.username,
            "Secret Key": mask(config.password),
            "Custom Template": config.username_template is not None,
            "Sample Username": sample,
        },
        title="Configuration Summary",
    )


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--display-name", default="", help="Display name of the requester")
@click.option("--role-name", default="", help="Role name")
def username(config_file, display_name, role_name):
    """Preview a username generated from the configured template."""
    config = _load_config(config_file)
    try:
        template = UsernameTemplate.compile(config.username_template)
        click.echo(
            template.generate(
                UsernameMetadata(display_name=display_name, role_name=role_name)
            )
        )
    except PluginError as e:
        error(str(e))
        sys.exit(1)


@cli.command(name="create-user")
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--display-name", default="", help="Display name of the requester")
@click.option("--role-name", default="", help="Role name")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Secret key for the new user",
)
@click.option(
    "--statement",
    "statements",
    multiple=True,
    help="Creation statement (JSON), may be repeated",
)
@click.pass_context
def create_user(ctx, config_file, display_name, role_name, password, statements):
    """Create a user and bind the policies named by the statements."""
    config = _load_config(config_file)

    async def _create():
        plugin = await _initialized_plugin(ctx, config)
        return await plugin.new_user(
            NewUserRequest(
                username_config=UsernameMetadata(
                    display_name=display_name, role_name=role_name
                ),
                statements=Statements(commands=list(statements)),
                password=password,
            )
        )

    response = _run(_create())
    success("User created")
    click.echo(response.username)


@cli.command(name="rotate-password")
@click.argument("config_file", type=click.Path(exists=True))
@click.argument("user")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="New secret key",
)
@click.option(
    "--statement",
    "statements",
    multiple=True,
    help="Rotation statement (JSON), may be repeated",
)
@click.pass_context
def rotate_password(ctx, config_file, user, password, statements):
    """Set a new password for USER and rebind policies."""
    config = _load_config(config_file)

    async def _rotate():
        plugin = await _initialized_plugin(ctx, config)
        await plugin.update_user(
            UpdateUserRequest(
                username=user,
                password=ChangePassword(
                    new_password=password,
                    statements=Statements(commands=list(statements)),
                ),
            )
        )

    _run(_rotate())
    success(f"Password rotated for {user}")


@cli.command(name="delete-user")
@click.argument("config_file", type=click.Path(exists=True))
@click.argument("user")
@click.confirmation_option(prompt="Delete this user?")
@click.pass_context
def delete_user(ctx, config_file, user):
    """Delete USER. Canned policies are left in place."""
    config = _load_config(config_file)

    async def _delete():
        plugin = await _initialized_plugin(ctx, config)
        await plugin.delete_user(DeleteUserRequest(username=user))

    _run(_delete())
    success(f"Deleted {user}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
