"""Category/subcategory taxonomy (the search allow-list).

The taxonomy is configuration, not module state: it is loaded from a JSON document and passed to
the sanitizer explicitly. `default_taxonomy()` exists for callers that do not inject one.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator

from src.search.schema import ListingMode

DEFAULT_TAXONOMY_PATH = Path(__file__).resolve().parent / "taxonomy_v1.json"


class TaxonomyError(ValueError):
    """Raised when a taxonomy document cannot be loaded or is malformed."""


class Subcategory(BaseModel):
    """A canonical subcategory code and its display label."""

    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    code: str = Field(min_length=1)
    label: str = Field(min_length=1)


class Category(BaseModel):
    """A canonical category, the track it belongs to, and its allowed subcategories."""

    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    code: str = Field(min_length=1)
    label: str = Field(min_length=1)
    mode: ListingMode
    subcategories: tuple[Subcategory, ...] = ()

    @model_validator(mode="after")
    def validate_unique_subcategories(self) -> Category:
        """Subcategory codes must be unique within a category."""

        codes = [s.code for s in self.subcategories]
        if len(codes) != len(set(codes)):
            raise ValueError(f"duplicate subcategory code in category {self.code!r}")
        return self


class Taxonomy(BaseModel):
    """An immutable, indexed taxonomy."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    categories: tuple[Category, ...]

    _by_code: dict[str, Category] = PrivateAttr(default_factory=dict)
    _subcategories: dict[str, frozenset[str]] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def validate_unique_categories(self) -> Taxonomy:
        """Category codes must be unique across the whole taxonomy."""

        codes = [c.code for c in self.categories]
        if len(codes) != len(set(codes)):
            raise ValueError("duplicate category code in taxonomy")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._by_code = {c.code: c for c in self.categories}
        self._subcategories = {
            c.code: frozenset(s.code for s in c.subcategories) for c in self.categories
        }

    def has_category(self, code: str) -> bool:
        return code in self._by_code

    def has_subcategory(self, category: str, subcategory: str) -> bool:
        return subcategory in self._subcategories.get(category, frozenset())

    def category_mode(self, code: str) -> ListingMode | None:
        category = self._by_code.get(code)
        return category.mode if category is not None else None

    def label_for(self, code: str) -> str | None:
        """Display label for a category code."""

        category = self._by_code.get(code)
        return category.label if category is not None else None

    def subcategory_label_for(self, category: str, subcategory: str) -> str | None:
        parent = self._by_code.get(category)
        if parent is None:
            return None
        for sub in parent.subcategories:
            if sub.code == subcategory:
                return sub.label
        return None

    def category_codes(self, mode: ListingMode | None = None) -> list[str]:
        """Category codes in document order, optionally restricted to one track."""

        return [c.code for c in self.categories if mode is None or c.mode == mode]


def taxonomy_from_obj(obj: Any) -> Taxonomy:
    """Validate and build a Taxonomy from a decoded JSON object."""

    try:
        return Taxonomy.model_validate(obj)
    except ValidationError as exc:
        raise TaxonomyError(f"Invalid taxonomy document: {exc}") from exc


def load_taxonomy(path: str | Path | None = None) -> Taxonomy:
    """Load a taxonomy JSON document (defaults to the packaged `taxonomy_v1.json`)."""

    taxonomy_path = Path(path) if path else DEFAULT_TAXONOMY_PATH
    try:
        payload = json.loads(taxonomy_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise TaxonomyError(f"Cannot read taxonomy file {taxonomy_path}") from exc
    except json.JSONDecodeError as exc:
        raise TaxonomyError(f"Taxonomy file {taxonomy_path} is not valid JSON") from exc
    return taxonomy_from_obj(payload)


@lru_cache(maxsize=1)
def default_taxonomy() -> Taxonomy:
    """Load the process-wide taxonomy once (honours `TAXONOMY_PATH`)."""

    return load_taxonomy(os.getenv("TAXONOMY_PATH") or None)
