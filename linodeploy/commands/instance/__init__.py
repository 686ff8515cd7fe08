from linodeploy.commands.instance.lifecycle import (
    DEFAULT_STATE_PATH,
    handle_create,
    handle_delete,
    handle_read,
    handle_update,
)
from linodeploy.provisioning import DEFAULT_API_URL, JOB_TIMEOUT


def _add_common_args(parser):
    parser.add_argument("--state", default=DEFAULT_STATE_PATH, help=f"Recorded state file (default: {DEFAULT_STATE_PATH})")
    parser.add_argument("--api-key", default=None, help="Linode API key (fallback: LINODE_API_KEY env var)")
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help=f"API base URL (default: {DEFAULT_API_URL})")


def register_instance_command(subparsers):
    """Register the 'instance' command with create/read/update/delete actions."""
    instance_parser = subparsers.add_parser("instance", help="Manage a Linode instance")
    action_subparsers = instance_parser.add_subparsers(dest="action", required=True)

    create_parser = action_subparsers.add_parser("create", help="Provision a new instance from a config file")
    create_parser.add_argument("config", help="Path to instance.yaml")
    create_parser.add_argument("--timeout", type=int, default=JOB_TIMEOUT, help=f"Seconds to wait for jobs (default: {JOB_TIMEOUT})")
    _add_common_args(create_parser)
    create_parser.set_defaults(func=handle_create)

    read_parser = action_subparsers.add_parser("read", help="Refresh the recorded state from the API")
    _add_common_args(read_parser)
    read_parser.set_defaults(func=handle_read)

    update_parser = action_subparsers.add_parser("update", help="Apply config changes to the recorded instance")
    update_parser.add_argument("config", help="Path to instance.yaml")
    update_parser.add_argument("--timeout", type=int, default=JOB_TIMEOUT, help=f"Seconds to wait for jobs (default: {JOB_TIMEOUT})")
    _add_common_args(update_parser)
    update_parser.set_defaults(func=handle_update)

    delete_parser = action_subparsers.add_parser("delete", help="Delete the recorded instance")
    _add_common_args(delete_parser)
    delete_parser.set_defaults(func=handle_delete)
