"""Entity managers for courses and materials."""

from coursesync.managers.base import EntityManager
from coursesync.managers.course_manager import CourseManager
from coursesync.managers.material_manager import (
    MaterialManager,
    MaterialSortOption,
    filter_materials,
)

__all__ = [
    "EntityManager",
    "CourseManager",
    "MaterialManager",
    "MaterialSortOption",
    "filter_materials",
]
