"""CLI interface for the STASH Vault."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import StashClient
from .config import config
from .credentials import PROFILES, Credentials, get_profile
from .crypto import decrypt_string, encrypt_string
from .exceptions import StashError
from .listing import OutputType, extract_names
from .output import OutputFormatter
from .utils import basename, error_message, folder_names, folder_path, is_ok
from .validation import validate_params

logger = logging.getLogger(__name__)

OUTPUT_TYPE_CHOICES = [member.name.lower() for member in OutputType]


def _client(ctx: Any) -> StashClient:
    """Create a client from the global options, exiting if unconfigured."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return StashClient(
            api_id=ctx.obj.get("api_id"),
            api_pw=ctx.obj.get("api_pw"),
            base_url=ctx.obj.get("base_url"),
            profile=ctx.obj.get("profile"),
        )
    except StashError as e:
        out.error(str(e))
        out.info("Run 'stash init' to configure your API credentials")
        ctx.exit(1)


def _secret(ctx: Any) -> str:
    out: OutputFormatter = ctx.obj["out"]
    api_pw = ctx.obj.get("api_pw") or config.api_pw
    if not api_pw:
        out.error("API PW not configured")
        out.info("Run 'stash init' or pass --api-pw")
        ctx.exit(1)
    return api_pw


def _remote_file(path: str) -> dict[str, Any]:
    """Build a source identifier from a remote "folder/file" path."""
    parent, _, _ = path.replace("\\", "/").rstrip("/").rpartition("/")
    return {"fileName": basename(path), "folderNames": folder_names(parent)}


def _check(ctx: Any, envelope: dict[str, Any]) -> dict[str, Any]:
    """Exit with an error message unless the envelope reports success."""
    if not is_ok(envelope):
        out: OutputFormatter = ctx.obj["out"]
        out.error(error_message(envelope))
        ctx.exit(1)
    return envelope


def _parse_value(raw: str) -> Any:
    """Interpret a command line value as JSON where possible."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


file_key_option = click.option(
    "--file-key",
    "-k",
    envvar="STASH_FILE_KEY",
    required=True,
    help="Key used to encrypt/decrypt the file in the Vault",
)


@click.group()
@click.option("--api-id", "-i", help="STASH API ID")
@click.option("--api-pw", "-p", help="STASH API PW")
@click.option("--base-url", "-u", help="Base URL of the STASH server")
@click.option(
    "--profile",
    type=click.Choice(sorted(PROFILES)),
    default=None,
    help="Deployment profile (default: stash)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pystash")
@click.pass_context
def main(
    ctx: Any,
    api_id: Optional[str],
    api_pw: Optional[str],
    base_url: Optional[str],
    profile: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyStash - Signed access to a STASH Vault."""
    ctx.ensure_object(dict)
    ctx.obj["api_id"] = api_id
    ctx.obj["api_pw"] = api_pw
    ctx.obj["base_url"] = base_url
    ctx.obj["profile"] = profile
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pystash").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--api-id", "-i", prompt="Enter your STASH API ID", help="STASH API ID")
@click.option(
    "--api-pw",
    "-p",
    prompt="Enter your STASH API PW",
    hide_input=True,
    help="STASH API PW",
)
@click.option("--base-url", "-u", default=None, help="Base URL of the STASH server")
@click.option(
    "--no-check", is_flag=True, help="Save without testing the connection"
)
@click.pass_context
def init(
    ctx: Any, api_id: str, api_pw: str, base_url: Optional[str], no_check: bool
) -> None:
    """Initialize STASH configuration.

    Stores your API credentials in ~/.config/pystash/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]
    profile = get_profile(ctx.obj.get("profile") or config.profile)

    try:
        credentials = Credentials(
            api_id=api_id,
            api_pw=api_pw,
            base_url=base_url or config.api_url,
            profile=profile,
        )
    except StashError as e:
        out.error(f"Invalid credentials: {e}")
        ctx.exit(1)

    if not no_check:
        out.info("Testing connection to the Vault...")
        with StashClient(
            api_id=credentials.api_id,
            api_pw=credentials.api_pw,
            base_url=credentials.base_url,
            profile=profile.name,
        ) as client:
            connected, message = client.check_vault_connection()
        if connected:
            out.success("✓ Connection to the Vault succeeded")
        else:
            out.error(f"Connection test failed: {message}")
            if not click.confirm("Save credentials anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)

    config_path = config.save_credentials(
        credentials.api_id,
        credentials.api_pw,
        base_url,
        profile=ctx.obj.get("profile"),
    )

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config_path)),
            ("Note", "You can now use stash commands without specifying --api-id"),
        ],
    )


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Check the connection to the Vault."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        with _client(ctx) as client:
            connected, message = client.check_vault_connection()
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"connected": connected, "message": message})
    elif connected:
        out.print(f"Connected to {client.credentials.base_url}")
    else:
        out.error(f"Not connected: {message}")

    if not connected:
        ctx.exit(1)


def _listing(ctx: Any, folder: str, output_type: str, search: Optional[str], key: str):
    out: OutputFormatter = ctx.obj["out"]
    kind = OutputType.parse(output_type)
    params: dict[str, Any] = {
        "folderNames": folder_names(folder),
        "outputType": int(kind),
    }
    if search:
        params["search"] = search

    try:
        with _client(ctx) as client:
            if key == "files":
                envelope = client.list_files(params)
            else:
                envelope = client.list_folders(params)
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    if out.json_output:
        out.output_json(envelope.get(key) or [])
        return
    for name in extract_names(envelope, key, kind):
        out.print(name)


listing_options = [
    click.option(
        "--folder",
        "-f",
        default="",
        help="Folder path, e.g. Documents/Reports (default: My Home)",
    ),
    click.option(
        "--output-type",
        "-t",
        type=click.Choice(OUTPUT_TYPE_CHOICES, case_sensitive=False),
        default="names",
        help="Shape of the listing returned by the server",
    ),
    click.option("--search", "-s", default=None, help="Only list matching entries"),
]


def _with_listing_options(func: Any) -> Any:
    for option in reversed(listing_options):
        func = option(func)
    return func


@main.command()
@_with_listing_options
@click.pass_context
def ls(ctx: Any, folder: str, output_type: str, search: Optional[str]) -> None:
    """List the files in a Vault folder."""
    _listing(ctx, folder, output_type, search, "files")


@main.command()
@_with_listing_options
@click.pass_context
def folders(ctx: Any, folder: str, output_type: str, search: Optional[str]) -> None:
    """List the sub-folders of a Vault folder."""
    _listing(ctx, folder, output_type, search, "folders")


@main.command()
@click.argument("remote_path")
@click.pass_context
def info(ctx: Any, remote_path: str) -> None:
    """Show information about a file in the Vault.

    REMOTE_PATH: Path of the file, e.g. Documents/report.pdf
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        with _client(ctx) as client:
            envelope = client.get_file_info(_remote_file(remote_path))
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    file_info = envelope.get("fileInfo", envelope)
    if out.json_output:
        out.output_json(file_info)
        return
    out.print_summary(
        f"File: {remote_path}",
        [(str(label), str(value)) for label, value in file_info.items()],
    )


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--folder", "-f", default="", help="Destination folder path")
@file_key_option
@click.option(
    "--overwrite-id",
    type=int,
    default=None,
    help="File ID to overwrite with the uploaded file",
)
@click.pass_context
def upload(
    ctx: Any,
    path: str,
    folder: str,
    file_key: str,
    overwrite_id: Optional[int],
) -> None:
    """Upload a file to the Vault.

    PATH: Local file to upload
    """
    out: OutputFormatter = ctx.obj["out"]
    dest: dict[str, Any] = {
        "destFolderNames": folder_names(folder),
        "fileKey": file_key,
    }
    if overwrite_id is not None:
        dest["overwriteFile"] = 1
        dest["overwriteFileId"] = overwrite_id

    local_path = Path(path)
    out.info(f"Uploading {local_path.name} ({out.format_size(local_path.stat().st_size)})")
    try:
        with _client(ctx) as client:
            envelope = client.put_file(local_path, dest)
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    if out.json_output:
        out.output_json(envelope)
        return
    out.success(f"✓ Uploaded {local_path.name}")
    out.print_summary(
        "Upload Complete",
        [
            ("Folder", folder_path(dest["destFolderNames"], strip_base=False)),
            ("File ID", str(envelope.get("fileId", ""))),
        ],
    )


@main.command()
@click.argument("remote_path")
@click.option("--output", "-o", default=None, help="Local output file path")
@file_key_option
@click.pass_context
def download(
    ctx: Any, remote_path: str, output: Optional[str], file_key: str
) -> None:
    """Download a file from the Vault.

    REMOTE_PATH: Path of the file, e.g. Documents/report.pdf
    """
    out: OutputFormatter = ctx.obj["out"]
    output_path = Path(output) if output else Path.cwd() / basename(remote_path)
    src = {**_remote_file(remote_path), "fileKey": file_key}

    try:
        with _client(ctx) as client:
            envelope = client.get_file(src, output_path)
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    if out.json_output:
        out.output_json(envelope)
        return
    out.success(f"✓ Downloaded {remote_path} to {output_path}")


@main.command()
@click.argument("folder")
@click.pass_context
def mkdir(ctx: Any, folder: str) -> None:
    """Create a folder (and any missing parents) in the Vault."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        with _client(ctx) as client:
            envelope = client.create_directory({"folderNames": folder_names(folder)})
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    if out.json_output:
        out.output_json(envelope)
        return
    out.success(f"✓ Created folder {folder} (ID: {envelope.get('folderId', '?')})")


@main.command()
@click.argument("remote_path")
@click.pass_context
def rm(ctx: Any, remote_path: str) -> None:
    """Delete a file from the Vault."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        with _client(ctx) as client:
            envelope = client.delete_file(_remote_file(remote_path))
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    if out.json_output:
        out.output_json(envelope)
        return
    out.success(f"✓ Deleted {remote_path}")


@main.command()
@click.argument("folder")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rmdir(ctx: Any, folder: str, yes: bool) -> None:
    """Delete a folder and everything in it."""
    out: OutputFormatter = ctx.obj["out"]
    if not yes and not click.confirm(
        f"Delete folder '{folder}' and all of its contents?", default=False
    ):
        out.warning("Cancelled.")
        return

    try:
        with _client(ctx) as client:
            envelope = client.delete_directory({"folderNames": folder_names(folder)})
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    _check(ctx, envelope)
    if out.json_output:
        out.output_json(envelope)
        return
    out.success(f"✓ Deleted folder {folder}")


@main.command()
@click.argument("text")
@click.option("--raw", is_flag=True, help="Write raw bytes instead of hex")
@click.pass_context
def encrypt(ctx: Any, text: str, raw: bool) -> None:
    """Encrypt TEXT (e.g. a file key) with the API PW."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        blob = encrypt_string(text, _secret(ctx), want_hex=not raw)
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    if isinstance(blob, bytes):
        click.get_binary_stream("stdout").write(blob)
    elif out.json_output:
        out.output_json({"encrypted": blob})
    else:
        out.print(blob)


@main.command()
@click.argument("blob")
@click.pass_context
def decrypt(ctx: Any, blob: str) -> None:
    """Decrypt a hex BLOB produced by 'stash encrypt'."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        text = decrypt_string(blob, _secret(ctx))
    except StashError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"decrypted": text})
    else:
        out.print(text)


@main.command()
@click.argument("operation")
@click.argument("params", nargs=-1)
@click.pass_context
def validate(ctx: Any, operation: str, params: tuple[str, ...]) -> None:
    """Check parameters for an operation without contacting the server.

    OPERATION: Operation name, e.g. read, listFiles or createDirectory

    PARAMS: key=value pairs; values are read as JSON when possible,
    e.g. fileId=5 folderNames='["My Home","Documents"]'
    """
    out: OutputFormatter = ctx.obj["out"]
    values: dict[str, Any] = {}
    for item in params:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            out.error(f"Invalid parameter '{item}', expected key=value")
            ctx.exit(1)
        values[key] = _parse_value(raw)

    try:
        op = validate_params(operation, values)
    except StashError as e:
        if out.json_output:
            out.output_json({"valid": False, "error": str(e)})
        else:
            out.error(str(e))
        ctx.exit(1)

    endpoint = op.endpoint
    if out.json_output:
        out.output_json({"valid": True, "operation": op.value, "endpoint": endpoint})
    else:
        out.print(f"✓ Parameters valid for '{op.value}' ({endpoint or 'no endpoint'})")


if __name__ == "__main__":
    main()
