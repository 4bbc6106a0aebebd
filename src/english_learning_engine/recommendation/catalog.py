"""Content catalog loading from YAML."""

from pathlib import Path

import structlog
import yaml
from pydantic import TypeAdapter

from english_learning_engine.models.content import (
    CatalogItem,
    ContentCatalog,
    ContentTag,
    CourseItem,
    LessonItem,
    PracticeItem,
)

logger = structlog.get_logger()

_items_adapter = TypeAdapter(list[CatalogItem])


def parse_catalog(data: dict) -> ContentCatalog:
    """Build a catalog from a mapping with ``tags`` and ``items`` sections.

    Items reference tags by id; each item's ``kind`` selects its model.
    """
    tags = {
        tag.id: tag
        for tag in (ContentTag.model_validate(raw) for raw in data.get("tags", []))
    }

    def resolve(ref: str | dict) -> ContentTag:
        if not isinstance(ref, str):
            return ContentTag.model_validate(ref)
        if ref not in tags:
            raise ValueError(f"Unknown tag id in catalog: {ref}")
        return tags[ref]

    raw_items = []
    for raw in data.get("items", []):
        item = dict(raw)
        item["tags"] = [resolve(ref) for ref in item.get("tags", [])]
        raw_items.append(item)

    catalog = ContentCatalog()
    for item in _items_adapter.validate_python(raw_items):
        if isinstance(item, CourseItem):
            catalog.courses.append(item)
        elif isinstance(item, LessonItem):
            catalog.lessons.append(item)
        elif isinstance(item, PracticeItem):
            catalog.practices.append(item)
    return catalog


def load_catalog(path: Path) -> ContentCatalog:
    """Load a catalog YAML file. A missing file yields an empty catalog."""
    if not path.exists():
        logger.warning("catalog_not_found", path=str(path))
        return ContentCatalog()
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    catalog = parse_catalog(data)
    logger.info(
        "catalog_loaded",
        courses=len(catalog.courses),
        lessons=len(catalog.lessons),
        practices=len(catalog.practices),
    )
    return catalog
