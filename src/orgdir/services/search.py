"""SearchEngine — multi-term area search below a base area.

Candidates come from two store queries (area name, contact position).  Path
assembly, dedup, filtering and scoring are pure functions in
:mod:`orgdir.domain.search`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from orgdir.domain.models import Area
from orgdir.domain.search import assemble_paths, name_pattern, normalize_query, position_pattern, rank_paths
from orgdir.infrastructure import queries
from orgdir.services._helpers import area_from_row, contact_from_row
from orgdir.services.base import BaseService
from orgdir.services.hierarchy import HierarchyEngine

if TYPE_CHECKING:
    from orgdir.config.models import OrgdirConfig
    from orgdir.domain.refs import AreaRef
    from orgdir.infrastructure.store import GraphStore

logger = logging.getLogger(__name__)


class SearchEngine(BaseService):
    """Find areas by name or by the position of a contact they are served by."""

    def __init__(
        self,
        store: GraphStore,
        config: OrgdirConfig | None = None,
        hierarchy: HierarchyEngine | None = None,
    ) -> None:
        super().__init__(store, config)
        self._hierarchy = hierarchy or HierarchyEngine(store, self._config)

    def search(
        self,
        root_area: AreaRef,
        query_text: str,
        include_root: bool | None = None,
    ) -> list[list[Area]]:
        """Ranked top-down paths to the areas matching every term of *query_text*.

        Args:
            root_area: Only strict descendants of this area are candidates.
            query_text: Free text; an empty or blank query returns no paths.
            include_root: Keep *root_area* at the head of each path.  Defaults
                to ``search.include_root``.
        """
        terms = normalize_query(query_text)
        if not terms:
            return []
        if include_root is None:
            include_root = self._config.search.include_root
        base = self.load_area(root_area)

        candidates = self._candidates(base, terms)
        if not candidates:
            return []

        rows = self._hierarchy.ancestor_rows(candidates, stop_id=base.area_id)
        paths = assemble_paths(candidates, rows).values()
        if not include_root:
            paths = [path[1:] if path and path[0].area_id == base.area_id else path for path in paths]

        ranked = rank_paths(paths, terms)
        limit = self._config.search.limit
        logger.debug("Search %r below %s: %d candidates, %d paths", terms, base.area_id, len(candidates), len(ranked))
        return ranked[:limit] if limit > 0 else ranked

    def _candidates(self, base: Area, terms: list[str]) -> dict[int, Area]:
        """Name and position matches keyed by id, annotated with contact counts."""
        scope = {"area_id": base.area_id}
        candidates: dict[int, Area] = {}

        for row in self._store.execute(queries.name_matches(), {**scope, "pattern": name_pattern(terms)}):
            candidates[row["area_id"]] = area_from_row(row)

        for row in self._store.execute(queries.position_matches(), {**scope, "pattern": position_pattern(terms)}):
            area_id = row["area_id"]
            existing = candidates.get(area_id) or area_from_row(row)
            if existing.matched_contact is not None:
                continue  # rows arrive by contact id, the first one wins
            candidates[area_id] = existing.model_copy(update={"matched_contact": contact_from_row(row)})

        counts = self._hierarchy.descendant_contact_counts(candidates)
        return {
            area_id: area.model_copy(update={"descendant_contact_count": counts[area_id]})
            for area_id, area in candidates.items()
        }
