"""Attribute idents and visit-type enum values of the places schema."""

from __future__ import annotations

from dataclasses import dataclass

# Firefox transition types, in moz_historyvisits.visit_type order (1-indexed).
VISIT_TYPE_NAMES = (
    "link",
    "typed",
    "bookmark",
    "embed",
    "redirect_permanent",
    "redirect_temporary",
    "download",
    "framed_link",
    "reload",
)


@dataclass(frozen=True)
class AttributeCatalog:
    """Maps logical place/visit fields to store attribute idents."""

    place_url: str = ":place/url"
    place_url_hash: str = ":place/url_hash"
    place_title: str = ":place/title"
    place_description: str = ":place/description"
    place_frecency: str = ":place/frecency"
    visit_place: str = ":visit/place"
    visit_date: str = ":visit/date"
    visit_type_attr: str = ":visit/type"
    visit_types: tuple[str, ...] = tuple(f":visit.type/{name}" for name in VISIT_TYPE_NAMES)

    def visit_type(self, code: int | None) -> str:
        """Return the enum ident for a 1-indexed source visit type.

        Zero, negative and out-of-range codes map to the first kind. This
        hides bad source data rather than rejecting it; kept deliberately.
        """
        index = max(code or 0, 0) - 1
        if 0 <= index < len(self.visit_types):
            return self.visit_types[index]
        return self.visit_types[0]


DEFAULT_CATALOG = AttributeCatalog()
