"""
Opens the two stores a keepsake deployment needs.

``backend = "local"`` in keepsake.toml puts both in SQLite files under the
store directory. Any other name is looked up in the ``keepsake.backends``
entry point group, whose callables take the StoreConfig and return a
``Stores`` pair:

    [project.entry-points."keepsake.backends"]
    postgres = "keepsake_pg:open_stores"
"""

from typing import NamedTuple

from .config import StoreConfig
from .protocol import KeyValueStoreProtocol, MirrorStoreProtocol

KV_DB_NAME = "kv_store.db"
MIRROR_DB_NAME = "mirror.db"


class Stores(NamedTuple):
    kv_store: KeyValueStoreProtocol  # system of record
    mirror: MirrorStoreProtocol


def create_stores(config: StoreConfig) -> Stores:
    if config.backend == "local":
        return _open_sqlite(config)
    return _open_plugin(config)


def _open_sqlite(config: StoreConfig) -> Stores:
    from .kv_store import KeyValueStore
    from .mirror_store import MirrorStore

    timeout = config.limits.timeout
    return Stores(
        kv_store=KeyValueStore(config.path / KV_DB_NAME, timeout=timeout),
        mirror=MirrorStore(config.path / MIRROR_DB_NAME, timeout=timeout),
    )


def _open_plugin(config: StoreConfig) -> Stores:
    from importlib.metadata import entry_points

    plugins = {ep.name: ep for ep in entry_points(group="keepsake.backends")}
    if config.backend not in plugins:
        known = ", ".join(sorted(plugins)) or "none installed"
        raise ValueError(f"Unknown storage backend {config.backend!r} (available: {known})")
    return plugins[config.backend].load()(config)
