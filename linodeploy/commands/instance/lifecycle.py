"""Instance CLI handlers: create, read, update and delete one Linode."""

import asyncio
import logging
import os
import sys

from linodeploy.provisioning import (
    ApplyResult,
    LinodeAPI,
    ReferenceCatalog,
    create_instance,
    delete_instance,
    read_instance,
    reconcile_instance,
)
from linodeploy.provisioning.read import log_connection_info
from linodeploy.redact import register_secret
from linodeploy.state import InstanceState, load_desired_state, load_state, save_state

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = "linodeploy-state.json"


def _resolve_api_key(args_api_key):
    """Return the API key from the CLI flag or LINODE_API_KEY env var.

    Raises SystemExit if neither is set.
    """
    api_key = args_api_key or os.environ.get("LINODE_API_KEY")
    if not api_key:
        logger.error("Error: Linode API key required. Use --api-key or set LINODE_API_KEY.")
        sys.exit(1)
    register_secret(api_key)
    return api_key


def _require_state(path):
    state = load_state(path)
    if state is None or state.id is None:
        logger.error(f"Error: no recorded instance in {path}")
        sys.exit(1)
    return state


def _load_config(path):
    try:
        return load_desired_state(path)
    except (OSError, ValueError) as e:
        logger.error(f"Error: invalid instance config {path}: {e}")
        sys.exit(1)


def _save_committed(result, state_path):
    """Persist whatever was committed once the linode exists."""
    if result.state.id is not None:
        save_state(state_path, result.state)
        logger.info(f"State written to {state_path}")


def _finish(result, state_path):
    """Persist whatever was committed, then exit non-zero on failure."""
    _save_committed(result, state_path)
    _report(result)


def _report(result):
    if not result.ok:
        logger.error(f"Failed at step '{result.step}': {result.error}")
        sys.exit(1)


# ── CLI handlers ───────────────────────────────────────────────────


def handle_create(args):
    """CLI handler for 'instance create'."""
    asyncio.run(_handle_create(args))


async def _handle_create(args):
    existing = load_state(args.state)
    if existing is not None and existing.id is not None:
        logger.error(f"Error: {args.state} already tracks linode {existing.id}. Use 'instance update' instead.")
        sys.exit(1)

    desired = _load_config(args.config)
    api_key = _resolve_api_key(args.api_key)
    result = ApplyResult(state=InstanceState())
    try:
        async with LinodeAPI(api_key, api_url=args.api_url) as api:
            await create_instance(api, ReferenceCatalog(api), desired, timeout=args.timeout, result=result)
    finally:
        # Once the linode exists it must stay tracked, however the run ends
        _save_committed(result, args.state)
    _report(result)


def handle_read(args):
    """CLI handler for 'instance read'."""
    asyncio.run(_handle_read(args))


async def _handle_read(args):
    prior = _require_state(args.state)
    api_key = _resolve_api_key(args.api_key)
    async with LinodeAPI(api_key, api_url=args.api_url) as api:
        state = await read_instance(api, ReferenceCatalog(api), prior.id, prior=prior)

    if state is None:
        os.remove(args.state)
        logger.info(f"Linode {prior.id} is gone. Removed {args.state}")
        return
    save_state(args.state, state)
    logger.info(f"Linode {state.id}: {state.name or '(no label)'} in {state.region}, {state.size} MB RAM, status {state.status}")
    log_connection_info(state)


def handle_update(args):
    """CLI handler for 'instance update'."""
    asyncio.run(_handle_update(args))


async def _handle_update(args):
    prior = _require_state(args.state)
    desired = _load_config(args.config)
    api_key = _resolve_api_key(args.api_key)
    async with LinodeAPI(api_key, api_url=args.api_url) as api:
        catalog = ReferenceCatalog(api)
        observed = await read_instance(api, catalog, prior.id, prior=prior)
        if observed is None:
            logger.error(f"Error: linode {prior.id} no longer exists. Run 'instance create' after removing {args.state}.")
            sys.exit(1)
        result = await reconcile_instance(api, catalog, desired, observed, timeout=args.timeout)
    _finish(result, args.state)


def handle_delete(args):
    """CLI handler for 'instance delete'."""
    asyncio.run(_handle_delete(args))


async def _handle_delete(args):
    state = _require_state(args.state)
    api_key = _resolve_api_key(args.api_key)
    async with LinodeAPI(api_key, api_url=args.api_url) as api:
        await delete_instance(api, state.id)
    os.remove(args.state)
    logger.info(f"Removed {args.state}")
