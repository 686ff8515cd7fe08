"""Reference catalog: memoized kernel, region and plan lists with name/id lookup.

Lists are fetched once per catalog object and never invalidated. The
available kernels, regions and plans are unlikely to change within a single
run; a fresh process re-fetches them.
"""

import asyncio
import logging
import re

from linodeploy.errors import NotFoundError

logger = logging.getLogger(__name__)

KINDS = ("kernel", "region", "plan")

# "Latest 64 bit (4.19.86)" -> "Latest 64 bit"
FLOATING_KERNEL_PREFIX = "Latest"
_KERNEL_QUALIFIER = re.compile(r"\s*\(.*\)\s*")


def strip_kernel_qualifier(label):
    """Drop the build qualifier from a floating kernel label."""
    if label.startswith(FLOATING_KERNEL_PREFIX):
        return _KERNEL_QUALIFIER.sub("", label)
    return label


class ReferenceCatalog:
    """Process-lifetime cache of the remote reference lists.

    Pass one instance by reference to every component that needs lookups.
    First use of each kind is guarded by a lock so concurrent callers fetch
    the list once.
    """

    def __init__(self, api):
        self._api = api
        self._fetchers = {
            "kernel": api.list_kernels,
            "region": api.list_regions,
            "plan": api.list_plans,
        }
        self._entries = {}
        self._locks = {kind: asyncio.Lock() for kind in KINDS}

    async def entries(self, kind):
        """Return the cached list for *kind*, fetching it on first use."""
        if kind not in self._fetchers:
            raise ValueError(f"Unknown catalog kind '{kind}'. Expected one of {', '.join(KINDS)}")
        if kind not in self._entries:
            async with self._locks[kind]:
                if kind not in self._entries:
                    self._entries[kind] = await self._fetchers[kind]()
                    logger.debug(f"Cached {len(self._entries[kind])} {kind} entries")
        return self._entries[kind]

    # ── Generic lookup ────────────────────────────────────────────

    async def resolve_id(self, kind, name):
        """Translate a display name to its remote id."""
        if kind == "kernel":
            return await self.kernel_id(name)
        if kind == "region":
            return await self.region_id(name)
        if kind == "plan":
            return await self.plan_id(name)
        raise ValueError(f"Unknown catalog kind '{kind}'")

    async def resolve_name(self, kind, entry_id):
        """Translate a remote id back to its display name."""
        if kind == "kernel":
            return await self.kernel_name(entry_id)
        if kind == "region":
            return await self.region_name(entry_id)
        if kind == "plan":
            return await self.plan_ram(entry_id)
        raise ValueError(f"Unknown catalog kind '{kind}'")

    # ── Kernels ───────────────────────────────────────────────────

    async def kernel_id(self, name):
        """Find a kernel by label.

        A name starting with "Latest" matches any label with that prefix, so
        "Latest 64 bit" tracks "Latest 64 bit (4.19.86)" across kernel builds.
        """
        floating = name.startswith(FLOATING_KERNEL_PREFIX)
        for kernel in await self.entries("kernel"):
            if floating and kernel.label.startswith(name):
                return kernel.id
            if kernel.label == name:
                return kernel.id
        raise NotFoundError(f"Failed to find kernel {name}")

    async def kernel_name(self, kernel_id):
        for kernel in await self.entries("kernel"):
            if kernel.id == kernel_id:
                return strip_kernel_qualifier(kernel.label)
        raise NotFoundError(f"Failed to find kernel id {kernel_id}")

    # ── Regions ───────────────────────────────────────────────────

    async def region_id(self, name):
        for region in await self.entries("region"):
            if region.location == name:
                return region.id
        raise NotFoundError(f"Failed to find the region name {name}")

    async def region_name(self, region_id):
        for region in await self.entries("region"):
            if region.id == region_id:
                return region.location
        raise NotFoundError(f"Failed to find region id {region_id}")

    # ── Plans (sizes are expressed as RAM in MB) ──────────────────

    async def plan_id(self, ram):
        for plan in await self.entries("plan"):
            if plan.ram == int(ram):
                return plan.id
        raise NotFoundError(f"Unable to locate the plan with RAM {ram}")

    async def plan_ram(self, plan_id):
        return (await self._plan(plan_id)).ram

    async def plan_storage(self, plan_id):
        """Storage allowance of the plan in MB."""
        return (await self._plan(plan_id)).storage_mb

    async def _plan(self, plan_id):
        for plan in await self.entries("plan"):
            if plan.id == plan_id:
                return plan
        raise NotFoundError(f"Unable to find plan id {plan_id}")
