import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import Config
from .context import ServerContext
from .errors import TransportError
from .files import DirectoryStore
from .logging_config import setup_logging
from .monitor import MonitorSnapshot, ResourceMonitor
from .panel_client import PanelClient


def log_snapshot(snapshot: MonitorSnapshot) -> None:
    """Log one monitor snapshot as a structured record."""
    if snapshot.stats is None:
        logging.warning(
            f"{snapshot.instance.name}: {snapshot.status_label or snapshot.state.value}"
        )
        return

    alarms = snapshot.alarms
    logging.info(
        f"{snapshot.instance.name}: {snapshot.stats.cpu_usage_percent} % cpu",
        extra={
            "server": snapshot.instance.uuid,
            "state": snapshot.state.value,
            "status": snapshot.status_label,
            "cpu_percent": snapshot.stats.cpu_usage_percent,
            "memory_bytes": snapshot.stats.memory_usage_in_bytes,
            "memory_limit": snapshot.memory_limit_label,
            "disk_bytes": snapshot.stats.disk_usage_in_bytes,
            "disk_limit": snapshot.disk_limit_label,
            "alarms": alarms.to_dict() if alarms else None,
            "allocations": snapshot.allocation_labels,
        },
    )


async def watch(server_uuid: str, directory: Optional[str], once: bool) -> int:
    """
    Load a server, list one directory and follow its resource usage.

    Returns:
        Process exit code.
    """
    client = PanelClient()
    try:
        try:
            instance = await client.get_server(server_uuid)
        except TransportError as e:
            logging.error(f"Unable to load server {server_uuid}: {e}")
            return 1

        context = ServerContext(instance=instance, client=client)

        if directory is not None:
            store = DirectoryStore(context)
            try:
                await store.fetch_directory(directory)
            except TransportError as e:
                logging.error(f"Unable to list {directory}: {e}")
            else:
                for entry in store.entries:
                    kind = "file" if entry.is_file else "dir"
                    logging.info(f"{store.directory} {kind} {entry.name}", extra={"size": entry.size})
            finally:
                store.close()

        first_result = asyncio.Event()

        def on_update(snapshot: MonitorSnapshot) -> None:
            log_snapshot(snapshot)
            first_result.set()

        monitor = ResourceMonitor(context, Config.get_monitor_settings(), on_update=on_update)
        async with monitor:
            if once:
                await first_result.wait()
            else:
                await asyncio.Event().wait()
        return 0
    finally:
        await client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Watch the resource usage and files of a panel server",
    )
    parser.add_argument("server", help="UUID or short identifier of the server")
    parser.add_argument("--directory", help="List this directory before monitoring")
    parser.add_argument(
        "--once", action="store_true", help="Exit after the first telemetry result"
    )
    args = parser.parse_args(argv)

    setup_logging()
    logging.info(f"Starting serverdash watcher for {args.server}...")

    try:
        return asyncio.run(watch(args.server, args.directory, args.once))
    except KeyboardInterrupt:
        logging.info("Shutting down serverdash watcher.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
