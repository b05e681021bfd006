"""Shadowplay Element Resolver -- finds live UI elements from a locator.

Strategies, tried in order (first hit wins):

1. Selector -- exact CSS/structural selector, when the locator looks like one.
2. Text -- case-insensitive substring of the element's visible text.  Among
   several hits the most specific element (shortest text) wins, so a button
   beats the panel that contains it; ties go to document order.
3. Signature -- role/tag filter, icon/attribute fingerprint, and optional
   proximity to a reference element (``near``) or point (``at``).  Proximity
   is the minimum Euclidean distance between element centers; ties go to
   document order.

Elements without a rendered bounding box never qualify.  No match returns
None; callers decide whether that matters.

Locator strings::

    #save-button                    -> selector, then text (starts with # or ., or contains [)
    css=main > button               -> selector
    Settings                        -> text
    text=#1 hit                     -> text, verbatim
    sig:role=button;icon=gear;near=Display
    sig:tag=input;attr=placeholder:Search;at=640,40
"""

from __future__ import annotations

import dataclasses
import logging
import math

from shadowplay.engine.protocols import ElementSnapshot, UITree

logger = logging.getLogger("shadowplay.engine.element_resolver")


@dataclasses.dataclass
class Locator:
    """Parsed description of the element a command targets."""

    raw: str
    selector: str | None = None
    text: str | None = None
    role: str | None = None
    tag: str | None = None
    icon: str | None = None
    attributes: dict[str, str] = dataclasses.field(default_factory=dict)
    near_text: str | None = None
    near_point: tuple[float, float] | None = None

    @property
    def has_signature(self) -> bool:
        return bool(self.role or self.tag or self.icon or self.attributes or self.near_text or self.near_point)

    @classmethod
    def parse(cls, raw: str) -> Locator:
        value = raw.strip()
        if value.startswith("css="):
            return cls(raw=raw, selector=value[4:].strip())
        if value.startswith("text="):
            return cls(raw=raw, text=value[5:])
        if value.startswith("sig:"):
            return cls._parse_signature(raw, value[4:])
        if value.startswith(("#", ".")) or "[" in value:
            # Looks like a selector, but may just as well be a visible label
            return cls(raw=raw, selector=value, text=value)
        return cls(raw=raw, text=value)

    @classmethod
    def _parse_signature(cls, raw: str, body: str) -> Locator:
        loc = cls(raw=raw)
        for part in body.split(";"):
            key, sep, val = part.partition("=")
            key, val = key.strip().lower(), val.strip()
            if not sep or not val:
                continue
            if key == "role":
                loc.role = val
            elif key == "tag":
                loc.tag = val.lower()
            elif key == "icon":
                loc.icon = val
            elif key == "text":
                loc.text = val
            elif key == "near":
                loc.near_text = val
            elif key == "attr":
                name, _, attr_val = val.partition(":")
                loc.attributes[name.strip()] = attr_val.strip()
            elif key == "at":
                try:
                    x, y = (float(n) for n in val.split(","))
                except ValueError:
                    logger.warning("Ignoring malformed point in locator: %s", val)
                    continue
                loc.near_point = (x, y)
            else:
                logger.warning("Ignoring unknown locator key: %s", key)
        return loc


def _distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


class ElementResolver:
    """Resolves locators against a ``UITree``."""

    def __init__(self, tree: UITree) -> None:
        self._tree = tree

    def resolve(self, locator: Locator | str) -> ElementSnapshot | None:
        if isinstance(locator, str):
            locator = Locator.parse(locator)

        if locator.selector:
            logger.debug("Resolving by selector: %s", locator.selector)
            found = self._tree.query_selector(locator.selector)
            if found is not None and found.has_area:
                return found

        elements: list[ElementSnapshot] | None = None

        if locator.text and not locator.has_signature:
            elements = self._rendered()
            found = self._best_text_match(elements, locator.text)
            if found is not None:
                return found

        if locator.has_signature:
            elements = elements if elements is not None else self._rendered()
            found = self._match_signature(elements, locator)
            if found is not None:
                return found

        logger.debug("No element for locator: %s", locator.raw)
        return None

    def resolve_all_by_text(self, text: str) -> list[ElementSnapshot]:
        """Every rendered element whose text contains *text*, in document order."""
        return self._text_matches(self._rendered(), text)

    # -- Strategies ----------------------------------------------------------

    def _rendered(self) -> list[ElementSnapshot]:
        return [el for el in self._tree.snapshot() if el.has_area]

    @staticmethod
    def _text_matches(elements: list[ElementSnapshot], text: str) -> list[ElementSnapshot]:
        needle = text.strip().lower()
        if not needle:
            return []
        return [el for el in elements if needle in el.text.lower()]

    def _best_text_match(self, elements: list[ElementSnapshot], text: str) -> ElementSnapshot | None:
        logger.debug("Resolving by text: %s", text)
        matches = self._text_matches(elements, text)
        if not matches:
            return None
        # min() keeps the first of equal keys, preserving document order
        return min(matches, key=lambda el: len(el.text))

    def _match_signature(self, elements: list[ElementSnapshot], locator: Locator) -> ElementSnapshot | None:
        logger.debug("Resolving by signature: %s", locator.raw)
        candidates = [el for el in elements if self._fits_signature(el, locator)]
        if locator.text:
            candidates = self._text_matches(candidates, locator.text)
        if not candidates:
            return None

        origin: tuple[float, float] | None = None
        if locator.near_text:
            reference = self._best_text_match(elements, locator.near_text)
            if reference is not None:
                origin = reference.center
                candidates = [el for el in candidates if el.index != reference.index] or candidates
        if origin is None and locator.near_point is not None:
            origin = locator.near_point

        if origin is None:
            return candidates[0]
        return min(candidates, key=lambda el: _distance(el.center, origin))

    @staticmethod
    def _fits_signature(el: ElementSnapshot, locator: Locator) -> bool:
        if locator.role and not (el.role == locator.role or el.tag == locator.role.lower()):
            return False
        if locator.tag and el.tag != locator.tag:
            return False
        if locator.icon:
            icon = locator.icon.lower()
            in_icons = any(i.lower() == icon for i in el.icons)
            in_classes = any(icon in c.lower() for c in el.classes)
            if not (in_icons or in_classes):
                return False
        for name, value in locator.attributes.items():
            if el.attributes.get(name) != value:
                return False
        return True
