# folio/compiler.py
import logging
from pathlib import Path
from typing import Optional, Union

import attrs
import click
from tqdm import tqdm

from . import config, database
from .container import ContainerWriter
from .descriptor import DescriptorBuilder, encode_descriptor
from .errors import CompileError
from .remap import ObjectKind, build_remap_table
from .store import TreeStore


@attrs.define(slots=True)
class CompileStats:
    nodes: int = 0
    binaries: int = 0
    files: int = 0
    bytes_written: int = 0


class Compiler:
    """Compiles the tree store into a container file."""

    def __init__(
        self,
        output_path: Union[str, Path],
        max_depth: Optional[int] = None,
        show_progress: bool = True,
    ):
        """
        Initializes the Compiler.

        Args:
            output_path: Where the container is written. It must not exist yet.
            max_depth: Trail depth limit; defaults to the value in folio.toml.
            show_progress: Whether to display a tqdm progress bar.
        """
        self.app_config = config.load_config()
        self.output_path = Path(output_path)
        self.max_depth = max_depth if max_depth is not None else self.app_config.max_depth
        self.show_progress = show_progress

    def run(self) -> CompileStats:
        """
        Packs every node and binary into the container, in object index order.

        Nothing is left at the output path unless every object was written.
        """
        stats = CompileStats()

        with database.get_session() as db_session:
            store = TreeStore(db_session)
            # Fails before the writer exists if the root is missing or ambiguous
            remap = build_remap_table(store)
            builder = DescriptorBuilder(store, remap, self.max_depth)
            click.echo(f"Packing {remap.node_count} nodes and {remap.binary_count} binaries...")

            with ContainerWriter(self.output_path) as writer:
                for index in tqdm(range(len(remap)), desc="Packing objects", disable=not self.show_progress):
                    kind, original_id = remap.entry_at(index)
                    try:
                        if kind == ObjectKind.NODE:
                            descriptor = builder.build(original_id)
                            payload = encode_descriptor(descriptor)
                            stats.nodes += 1
                            stats.files += len(descriptor["files"])
                        else:
                            payload = store.binary_payload(original_id)
                            stats.binaries += 1
                    except CompileError as e:
                        logging.error(f"Compilation aborted at {kind.name.lower()} {original_id}: {e}")
                        raise

                    writer.begin_object()
                    writer.write_binary(payload)
                    stats.bytes_written += len(payload)

                writer.complete()

        return stats
