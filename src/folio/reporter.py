# folio/reporter.py
import click
from sqlalchemy import func

from . import database, models
from .utils import format_bytes


class Reporter:
    """Handles querying the tree store and reporting results."""

    def summary(self):
        """Shows node, listing and binary counts, and resources grouped by class and type."""
        with database.get_session() as db_session:
            click.echo("Generating tree store summary...")
            node_count = db_session.query(func.count(models.Node.id)).scalar()
            root_count = (
                db_session.query(func.count(models.Node.id))
                .filter(models.Node.parent_id.is_(None))
                .scalar()
            )
            listing_count = db_session.query(func.count(models.Listing.id)).scalar()
            binary_count, binary_size = db_session.query(
                func.count(models.Binary.id),
                func.sum(func.length(models.Binary.payload)),
            ).one()

            click.echo(f"Nodes:    {node_count}")
            click.echo(f"Listings: {listing_count}")
            click.echo(f"Binaries: {binary_count} ({format_bytes(binary_size or 0)})")
            if root_count != 1:
                click.echo(click.style(f"Warning: {root_count} nodes have no parent; exactly one root is required.", fg="yellow"))

            rows = (
                db_session.query(
                    models.ResourceType.rclass,
                    models.ResourceType.name,
                    models.ResourceType.mime,
                    func.count(models.Resource.id).label("count"),
                )
                .outerjoin(models.Resource, models.Resource.rtype_id == models.ResourceType.id)
                .group_by(models.ResourceType.id)
                .order_by(models.ResourceType.rclass, models.ResourceType.name)
                .all()
            )
            if not rows:
                click.echo("No resource types defined.")
                return
            click.echo(f"\n{'Class':<8} | {'Type':<24} | {'MIME Type':<32} | {'Resources':>10}")
            click.echo("-" * 83)
            for rclass, name, mime, count in rows:
                click.echo(f"{rclass:<8} | {name:<24} | {mime:<32} | {count:>10}")
