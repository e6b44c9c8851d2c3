"""Declarative statements issued through the GraphStore.

Every builder returns a SQLAlchemy Core statement whose values are named
``bindparam`` placeholders; callers supply them as the ``params`` mapping of
:meth:`GraphStore.execute`.  Tree traversals are recursive CTEs whose
``UNION`` over edge pairs ends the walk even on a corrupted (cyclic) graph.

Area rows always expose ``area_id``, ``name``, ``is_root`` and ``properties``.
"""

from __future__ import annotations

from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    and_,
    bindparam,
    delete,
    exists,
    func,
    insert,
    literal,
    or_,
    select,
    update,
)

from orgdir.domain.types import EdgeType, NodeLabel
from orgdir.infrastructure.database.schema import edges, nodes

if TYPE_CHECKING:
    from sqlalchemy import CTE, Delete, Insert, Select, TableClause, Update

AREA = NodeLabel.AREA.value
COLLECTION = NodeLabel.COLLECTION.value
CONTACT = NodeLabel.CONTACT.value

PARENT_OF = EdgeType.PARENT_OF.value
RESPONSIBLE_FOR = EdgeType.RESPONSIBLE_FOR.value
COMES_BEFORE = EdgeType.COMES_BEFORE.value
IN_COLLECTION = EdgeType.IN_COLLECTION.value
HAS_URL = EdgeType.HAS_URL.value
ONLY_WORKS = EdgeType.ONLY_WORKS.value


def _area_columns(table: TableClause = nodes) -> list:
    return [
        table.c.id.label("area_id"),
        table.c.name,
        table.c.is_root,
        table.c.properties,
    ]


# ---------------------------------------------------------------------------
# Generic node / edge access
# ---------------------------------------------------------------------------


@cache
def node_by_id() -> Select:
    """``:node_id`` -> the node row (any label)."""
    return select(nodes).where(nodes.c.id == bindparam("node_id"))


@cache
def node_labels() -> Select:
    """``:ids`` -> ``(id, label)`` for each existing node."""
    return select(nodes.c.id, nodes.c.label).where(nodes.c.id.in_(bindparam("ids", expanding=True)))


@cache
def insert_node() -> Insert:
    """Params: label, name, is_root, properties, created, modified."""
    return insert(nodes).returning(nodes.c.id)


@cache
def update_node() -> Update:
    """Params: node_id, new_name, new_properties, new_modified."""
    return (
        update(nodes)
        .where(nodes.c.id == bindparam("node_id"))
        .values(
            name=bindparam("new_name"),
            properties=bindparam("new_properties", type_=JSON),
            modified=bindparam("new_modified"),
        )
    )


@cache
def delete_nodes() -> Delete:
    return delete(nodes).where(nodes.c.id.in_(bindparam("ids", expanding=True)))


@cache
def insert_edge() -> Insert:
    """Params: source_id, target_id, edge_type, properties, created."""
    return insert(edges).returning(edges.c.id)


@cache
def delete_edge_between() -> Delete:
    """Params: source_id, target_id, edge_type."""
    return delete(edges).where(
        edges.c.source_id == bindparam("source_id"),
        edges.c.target_id == bindparam("target_id"),
        edges.c.edge_type == bindparam("edge_type"),
    )


@cache
def delete_edges_touching() -> Delete:
    """Every edge with an endpoint in ``:ids``."""
    ids = bindparam("ids", expanding=True)
    return delete(edges).where(or_(edges.c.source_id.in_(ids), edges.c.target_id.in_(ids)))


@cache
def delete_outgoing_edges() -> Delete:
    """Edges of ``:edge_types`` leaving any node in ``:ids``."""
    return delete(edges).where(
        edges.c.source_id.in_(bindparam("ids", expanding=True)),
        edges.c.edge_type.in_(bindparam("edge_types", expanding=True)),
    )


@cache
def outgoing_targets() -> Select:
    """``(source_id, target_id)`` of ``:edge_type`` edges leaving ``:ids``."""
    return select(edges.c.source_id, edges.c.target_id).where(
        edges.c.source_id.in_(bindparam("ids", expanding=True)),
        edges.c.edge_type == bindparam("edge_type"),
    )


@cache
def incoming_sources() -> Select:
    """``(source_id, target_id)`` of ``:edge_type`` edges entering ``:ids``."""
    return select(edges.c.source_id, edges.c.target_id).where(
        edges.c.target_id.in_(bindparam("ids", expanding=True)),
        edges.c.edge_type == bindparam("edge_type"),
    )


@cache
def all_nodes() -> Select:
    return select(nodes.c.id, nodes.c.label, nodes.c.name, nodes.c.is_root).order_by(nodes.c.id)


@cache
def all_edges() -> Select:
    return select(edges.c.id, edges.c.source_id, edges.c.target_id, edges.c.edge_type, edges.c.properties).order_by(
        edges.c.id
    )


# ---------------------------------------------------------------------------
# Area tree
# ---------------------------------------------------------------------------


@cache
def root_areas() -> Select:
    return select(*_area_columns()).where(nodes.c.label == AREA, nodes.c.is_root == 1).order_by(nodes.c.id)


@cache
def orphan_areas() -> Select:
    """Areas that are not root and have no incoming ``PARENT_OF``."""
    has_parent = exists().where(edges.c.target_id == nodes.c.id, edges.c.edge_type == PARENT_OF)
    return (
        select(*_area_columns())
        .where(nodes.c.label == AREA, nodes.c.is_root == 0, ~has_parent)
        .order_by(nodes.c.name, nodes.c.id)
    )


@cache
def parent_of() -> Select:
    """``:area_id`` -> its parent area (at most one row in a well-formed tree)."""
    return (
        select(*_area_columns(), edges.c.id.label("edge_id"))
        .join_from(edges, nodes, nodes.c.id == edges.c.source_id)
        .where(edges.c.target_id == bindparam("area_id"), edges.c.edge_type == PARENT_OF)
        .order_by(edges.c.id)
    )


@cache
def children_of() -> Select:
    """``:area_id`` -> direct child areas ordered by name."""
    return (
        select(*_area_columns())
        .join_from(edges, nodes, nodes.c.id == edges.c.target_id)
        .where(
            edges.c.source_id == bindparam("area_id"),
            edges.c.edge_type == PARENT_OF,
            nodes.c.label == AREA,
        )
        .order_by(nodes.c.name, nodes.c.id)
    )


@cache
def descend(levels: int) -> Select:
    """Follow ``levels`` PARENT_OF hops from ``:area_id`` matching ``:name_0 .. :name_{n-1}``.

    Same-named siblings are resolved by lowest id at the shallowest ambiguous
    level (ordering by each level's id in turn).
    """
    previous = bindparam("area_id")
    conditions = []
    ordering = []
    node = nodes
    for depth in range(levels):
        link = edges.alias(f"l{depth}")
        node = nodes.alias(f"x{depth}")
        conditions.extend(
            [
                link.c.source_id == previous,
                link.c.edge_type == PARENT_OF,
                link.c.target_id == node.c.id,
                node.c.label == AREA,
                node.c.name == bindparam(f"name_{depth}"),
            ]
        )
        ordering.append(node.c.id)
        previous = node.c.id
    return select(*_area_columns(node)).where(and_(*conditions)).order_by(*ordering).limit(1)


def _descendants(name: str = "subtree", *, bounded: bool = False) -> CTE:
    """Recursive CTE of ``(parent_id, child_id)`` edges below ``:area_id``.

    The unbounded walk is a ``UNION`` over edge pairs, so a cyclic graph
    still terminates once every reachable edge has been seen.  The bounded
    walk adds a ``depth`` column and stops after ``:max_depth`` hops.
    """
    columns = [edges.c.source_id.label("parent_id"), edges.c.target_id.label("child_id")]
    if bounded:
        columns.append(literal(1).label("depth"))
    base = select(*columns).where(edges.c.source_id == bindparam("area_id"), edges.c.edge_type == PARENT_OF)
    tree = base.cte(name, recursive=True)
    if not bounded:
        step = select(edges.c.source_id, edges.c.target_id).where(
            edges.c.source_id == tree.c.child_id,
            edges.c.edge_type == PARENT_OF,
        )
        return tree.union(step)
    step = select(edges.c.source_id, edges.c.target_id, tree.c.depth + 1).where(
        edges.c.source_id == tree.c.child_id,
        edges.c.edge_type == PARENT_OF,
        tree.c.depth < bindparam("max_depth"),
    )
    return tree.union_all(step)


@cache
def subtree(*, bounded: bool = False) -> Select:
    """``(parent_id, child area)`` rows of the subtree under ``:area_id``.

    With *bounded*, only edges within ``:max_depth`` hops are returned.
    """
    tree = _descendants(bounded=bounded)
    return (
        select(tree.c.parent_id, *_area_columns())
        .join_from(tree, nodes, nodes.c.id == tree.c.child_id)
        .where(nodes.c.label == AREA)
        .distinct()
        .order_by(nodes.c.name, nodes.c.id)
    )


@cache
def subtree_ids() -> Select:
    """Distinct ids of every strict descendant of ``:area_id``."""
    tree = _descendants()
    return select(tree.c.child_id).distinct()


@cache
def ancestry() -> Select:
    """Every ancestor of each area in ``:ids``, with the ancestor's own parent link.

    Climbs ``PARENT_OF`` edges until ``:stop_id`` is reached (pass ``-1`` to
    climb to the top).  Each start node is its own first ancestor.  Rows
    carry ``parent_id`` (None at the top) so the caller can order the chain;
    the ``UNION`` ends the climb on a cyclic graph.
    """
    base = select(
        nodes.c.id.label("target_id"),
        nodes.c.id.label("ancestor_id"),
    ).where(nodes.c.id.in_(bindparam("ids", expanding=True)))
    chain = base.cte("ancestry", recursive=True)
    step = select(chain.c.target_id, edges.c.source_id).where(
        edges.c.target_id == chain.c.ancestor_id,
        edges.c.edge_type == PARENT_OF,
        chain.c.ancestor_id != bindparam("stop_id"),
    )
    chain = chain.union(step)
    up = edges.alias("up")
    return (
        select(chain.c.target_id, up.c.source_id.label("parent_id"), *_area_columns())
        .join_from(chain, nodes, nodes.c.id == chain.c.ancestor_id)
        .outerjoin(up, and_(up.c.target_id == chain.c.ancestor_id, up.c.edge_type == PARENT_OF))
        .order_by(chain.c.target_id, nodes.c.id, up.c.source_id)
    )


@cache
def descendant_contact_counts() -> Select:
    """``(target_id, contacts)`` for each of ``:ids``: distinct contacts in collections of strict descendants."""
    base = select(
        edges.c.source_id.label("target_id"),
        edges.c.target_id.label("area_id"),
    ).where(edges.c.source_id.in_(bindparam("ids", expanding=True)), edges.c.edge_type == PARENT_OF)
    below = base.cte("below", recursive=True)
    step = select(below.c.target_id, edges.c.target_id).where(
        edges.c.source_id == below.c.area_id,
        edges.c.edge_type == PARENT_OF,
    )
    below = below.union(step)
    resp = edges.alias("resp")
    member = edges.alias("member")
    return (
        select(below.c.target_id, func.count(func.distinct(member.c.source_id)).label("contacts"))
        .join_from(below, resp, and_(resp.c.target_id == below.c.area_id, resp.c.edge_type == RESPONSIBLE_FOR))
        .join(member, and_(member.c.target_id == resp.c.source_id, member.c.edge_type == IN_COLLECTION))
        .group_by(below.c.target_id)
    )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@cache
def name_matches() -> Select:
    """Strict descendants of ``:area_id`` whose name matches regex ``:pattern``."""
    tree = _descendants("name_scope")
    return (
        select(*_area_columns())
        .where(
            nodes.c.id.in_(select(tree.c.child_id)),
            nodes.c.label == AREA,
            nodes.c.name.regexp_match(bindparam("pattern")),
        )
        .order_by(nodes.c.id)
    )


@cache
def position_matches() -> Select:
    """Strict descendants of ``:area_id`` served by a collection holding a contact whose position matches ``:pattern``."""
    tree = _descendants("position_scope")
    area = nodes.alias("area")
    contact = nodes.alias("contact")
    resp = edges.alias("resp")
    member = edges.alias("member")
    position = contact.c.properties["position"].as_string()
    return (
        select(
            *_area_columns(area),
            contact.c.id.label("contact_id"),
            contact.c.properties.label("contact_properties"),
        )
        .join_from(area, resp, and_(resp.c.target_id == area.c.id, resp.c.edge_type == RESPONSIBLE_FOR))
        .join(member, and_(member.c.target_id == resp.c.source_id, member.c.edge_type == IN_COLLECTION))
        .join(contact, and_(contact.c.id == member.c.source_id, contact.c.label == CONTACT))
        .where(
            area.c.id.in_(select(tree.c.child_id)),
            area.c.label == AREA,
            position.regexp_match(bindparam("pattern")),
        )
        .order_by(area.c.id, contact.c.id)
    )


@cache
def contact_search(term_count: int) -> Select:
    """Contacts where each ``:term_i`` prefixes ``first_name`` or ``last_name`` (lowercased)."""
    fields = [nodes.c.properties[field].as_string() for field in ("first_name", "last_name")]
    clauses = [
        or_(*(func.lower(field).startswith(bindparam(f"term_{i}")) for field in fields)) for i in range(term_count)
    ]
    return (
        select(nodes.c.id.label("contact_id"), nodes.c.properties)
        .where(nodes.c.label == CONTACT, *clauses)
        .order_by(nodes.c.id)
    )


# ---------------------------------------------------------------------------
# Collections and contacts
# ---------------------------------------------------------------------------


@cache
def collection_area() -> Select:
    """``:collection_id`` -> the area it is responsible for."""
    return (
        select(*_area_columns(), edges.c.id.label("edge_id"))
        .join_from(edges, nodes, nodes.c.id == edges.c.target_id)
        .where(edges.c.source_id == bindparam("collection_id"), edges.c.edge_type == RESPONSIBLE_FOR)
        .order_by(edges.c.id)
    )


@cache
def area_collections(*, heads_only: bool = False) -> Select:
    """Collections responsible for ``:area_id`` (optionally only chain heads)."""
    stmt = (
        select(nodes.c.id.label("collection_id"), nodes.c.properties)
        .join_from(edges, nodes, nodes.c.id == edges.c.source_id)
        .where(
            edges.c.target_id == bindparam("area_id"),
            edges.c.edge_type == RESPONSIBLE_FOR,
            nodes.c.label == COLLECTION,
        )
        .order_by(nodes.c.id)
    )
    if heads_only:
        pred = edges.alias("pred")
        has_predecessor = exists().where(pred.c.target_id == nodes.c.id, pred.c.edge_type == COMES_BEFORE)
        stmt = stmt.where(~has_predecessor)
    return stmt


@cache
def collection_contacts() -> Select:
    """Members of every collection in ``:ids`` with their optional URL."""
    member = edges.alias("member")
    contact = nodes.alias("contact")
    link = edges.alias("link")
    url = nodes.alias("url")
    return (
        select(
            member.c.target_id.label("collection_id"),
            contact.c.id.label("contact_id"),
            contact.c.properties.label("contact_properties"),
            url.c.properties.label("url_properties"),
        )
        .select_from(
            member.join(contact, contact.c.id == member.c.source_id)
            .outerjoin(link, and_(link.c.source_id == contact.c.id, link.c.edge_type == HAS_URL))
            .outerjoin(url, url.c.id == link.c.target_id)
        )
        .where(member.c.target_id.in_(bindparam("ids", expanding=True)), member.c.edge_type == IN_COLLECTION)
        .order_by(contact.c.id)
    )


@cache
def contact_with_url() -> Select:
    """``:contact_id`` -> contact properties and optional URL."""
    link = edges.alias("link")
    url = nodes.alias("url")
    return (
        select(
            nodes.c.id.label("contact_id"),
            nodes.c.properties.label("contact_properties"),
            url.c.properties.label("url_properties"),
        )
        .select_from(
            nodes.outerjoin(link, and_(link.c.source_id == nodes.c.id, link.c.edge_type == HAS_URL)).outerjoin(
                url, url.c.id == link.c.target_id
            )
        )
        .where(nodes.c.id == bindparam("contact_id"), nodes.c.label == CONTACT)
    )


@cache
def successors_of() -> Select:
    """``:collection_id`` -> successor collections with the edge note."""
    return (
        select(
            nodes.c.id.label("collection_id"),
            nodes.c.properties,
            edges.c.properties.label("edge_properties"),
        )
        .join_from(edges, nodes, nodes.c.id == edges.c.target_id)
        .where(edges.c.source_id == bindparam("collection_id"), edges.c.edge_type == COMES_BEFORE)
        .order_by(edges.c.id)
    )


@cache
def succession_edges() -> Select:
    """``COMES_BEFORE`` edges leaving any collection in ``:ids``."""
    return (
        select(edges.c.source_id, edges.c.target_id, edges.c.properties)
        .where(edges.c.source_id.in_(bindparam("ids", expanding=True)), edges.c.edge_type == COMES_BEFORE)
        .order_by(edges.c.id)
    )


@cache
def memberships_of_contacts() -> Select:
    """``IN_COLLECTION`` edges leaving any contact in ``:ids``."""
    return (
        select(edges.c.id.label("edge_id"), edges.c.source_id.label("contact_id"), edges.c.target_id.label("collection_id"))
        .where(edges.c.source_id.in_(bindparam("ids", expanding=True)), edges.c.edge_type == IN_COLLECTION)
        .order_by(edges.c.id)
    )


@cache
def members_of_collections() -> Select:
    """``IN_COLLECTION`` edges entering any collection in ``:ids``."""
    return (
        select(edges.c.id.label("edge_id"), edges.c.source_id.label("contact_id"), edges.c.target_id.label("collection_id"))
        .where(edges.c.target_id.in_(bindparam("ids", expanding=True)), edges.c.edge_type == IN_COLLECTION)
        .order_by(edges.c.id)
    )


@cache
def delete_edges_by_id() -> Delete:
    return delete(edges).where(edges.c.id.in_(bindparam("ids", expanding=True)))
