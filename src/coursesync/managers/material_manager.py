"""Material manager: per-course material sets plus filter/sort views."""

from enum import Enum
from typing import Iterable, List, Optional

from coursesync.managers.base import EntityManager
from coursesync.models import Material, RefreshOutcome
from coursesync.observable import Published


class MaterialSortOption(str, Enum):
    """Orderings offered for a course's material list."""

    DATE_DESCENDING = "date_desc"
    DATE_ASCENDING = "date_asc"
    TITLE_ASCENDING = "title_asc"
    TITLE_DESCENDING = "title_desc"
    IMPORTANT_FIRST = "important_first"

    @property
    def display_name(self) -> str:
        return _SORT_DISPLAY_NAMES[self]


_SORT_DISPLAY_NAMES = {
    MaterialSortOption.DATE_DESCENDING: "Newest first",
    MaterialSortOption.DATE_ASCENDING: "Oldest first",
    MaterialSortOption.TITLE_ASCENDING: "Title A-Z",
    MaterialSortOption.TITLE_DESCENDING: "Title Z-A",
    MaterialSortOption.IMPORTANT_FIRST: "Important first",
}


def _matches(material: Material, needle: str) -> bool:
    for text in (material.title, material.content, material.author):
        if text and needle in text.casefold():
            return True
    return False


def filter_materials(
    materials: Iterable[Material],
    search_text: str = "",
    sort_by: MaterialSortOption = MaterialSortOption.DATE_DESCENDING,
    important_only: bool = False,
) -> List[Material]:
    """Filter and order a material set.

    Filtering is a case-insensitive substring match over title, content and
    author, then the importance flag if requested. ``IMPORTANT_FIRST`` puts
    every important material first, each group newest first.

    Args:
        materials: Materials to project
        search_text: Substring to look for; empty matches everything
        sort_by: Ordering to apply
        important_only: Keep only materials flagged important

    Returns:
        A new list; the input is not modified
    """
    result = list(materials)

    needle = search_text.strip().casefold()
    if needle:
        result = [m for m in result if _matches(m, needle)]

    if important_only:
        result = [m for m in result if m.is_important]

    sort_by = MaterialSortOption(sort_by)
    if sort_by is MaterialSortOption.DATE_DESCENDING:
        result.sort(key=lambda m: m.posted_at, reverse=True)
    elif sort_by is MaterialSortOption.DATE_ASCENDING:
        result.sort(key=lambda m: m.posted_at)
    elif sort_by is MaterialSortOption.TITLE_ASCENDING:
        result.sort(key=lambda m: m.title.casefold())
    elif sort_by is MaterialSortOption.TITLE_DESCENDING:
        result.sort(key=lambda m: m.title.casefold(), reverse=True)
    else:
        # Two stable passes: newest first, then important ahead of the rest
        result.sort(key=lambda m: m.posted_at, reverse=True)
        result.sort(key=lambda m: not m.is_important)

    return result


class MaterialManager(EntityManager[Material]):
    """Holds material sets keyed by course id."""

    error_context = "materials"

    selected_material = Published(None)

    def materials_for(self, course_id: str) -> List[Material]:
        return self.get(course_id)

    def get_material(self, material_id: str, course_id: str) -> Optional[Material]:
        return self.get_by_id(course_id, material_id)

    def select_material(self, material: Optional[Material]) -> None:
        self.selected_material = material

    async def load_materials(self, course_id: str, force_refresh: bool = False) -> None:
        await self.load(course_id, force_refresh=force_refresh)

    async def refresh_materials(self, course_id: str) -> bool:
        return await self.refresh(course_id)

    async def refresh_materials_with_status(self, course_id: str) -> Optional[RefreshOutcome]:
        return await self.refresh_with_status(course_id)

    def filtered_materials(
        self,
        course_id: str,
        search_text: str = "",
        sort_by: MaterialSortOption = MaterialSortOption.DATE_DESCENDING,
        important_only: bool = False,
    ) -> List[Material]:
        """Filtered, ordered view of the held materials. Recomputed on each call."""
        return filter_materials(
            self.get(course_id),
            search_text=search_text,
            sort_by=sort_by,
            important_only=important_only,
        )
