"""Unit tests for shadowplay.engine.element_resolver -- locator parsing and resolution."""

from __future__ import annotations

import pytest
from fakes import FakeUITree, element

from shadowplay.engine.element_resolver import ElementResolver, Locator


# ---------------------------------------------------------------------------
# 1. Locator parsing
# ---------------------------------------------------------------------------

class TestLocatorParse:

    def test_plain_text(self):
        loc = Locator.parse("Settings")
        assert loc.text == "Settings"
        assert loc.selector is None
        assert not loc.has_signature

    def test_selector_shapes(self):
        assert Locator.parse("#save").selector == "#save"
        assert Locator.parse(".toolbar button").selector == ".toolbar button"
        assert Locator.parse("input[name=q]").selector == "input[name=q]"
        assert Locator.parse("css=main > button").selector == "main > button"

    def test_text_prefix_is_verbatim(self):
        loc = Locator.parse("text=#1 hit")
        assert loc.text == "#1 hit"
        assert loc.selector is None

    def test_signature(self):
        loc = Locator.parse("sig:role=button;icon=gear;near=Display;attr=aria-label:Open;at=640,40")
        assert loc.role == "button"
        assert loc.icon == "gear"
        assert loc.near_text == "Display"
        assert loc.attributes == {"aria-label": "Open"}
        assert loc.near_point == (640.0, 40.0)
        assert loc.has_signature

    def test_signature_ignores_malformed_parts(self):
        loc = Locator.parse("sig:tag=INPUT;at=nope;color=red;empty=")
        assert loc.tag == "input"
        assert loc.near_point is None


# ---------------------------------------------------------------------------
# 2. Selector and text strategies
# ---------------------------------------------------------------------------

class TestSelectorAndText:

    def test_selector_hit(self):
        button = element(3, "button", "Save", width=80)
        resolver = ElementResolver(FakeUITree(selectors={"#save": button}))
        assert resolver.resolve("#save") is button

    def test_selector_without_area_falls_through(self):
        hidden = element(3, "button", "Save", width=0)
        resolver = ElementResolver(FakeUITree(selectors={"#save": hidden}))
        assert resolver.resolve("#save") is None

    def test_text_is_case_insensitive_substring(self):
        target = element(1, "button", "Open Settings")
        resolver = ElementResolver(FakeUITree([element(0, "span", "Home"), target]))
        assert resolver.resolve("settings") is target

    def test_most_specific_text_wins(self):
        panel = element(0, "div", "Display Settings Save Cancel")
        button = element(1, "button", "Settings")
        resolver = ElementResolver(FakeUITree([panel, button]))
        assert resolver.resolve("Settings") is button

    def test_equal_specificity_goes_to_document_order(self):
        first = element(0, "a", "Help")
        second = element(1, "a", "Help")
        resolver = ElementResolver(FakeUITree([first, second]))
        assert resolver.resolve("Help") is first

    def test_unrendered_elements_never_match(self):
        resolver = ElementResolver(FakeUITree([element(0, "button", "Settings", height=0)]))
        assert resolver.resolve("Settings") is None

    def test_no_match(self):
        resolver = ElementResolver(FakeUITree([element(0, "button", "Save")]))
        assert resolver.resolve("Delete") is None

    @pytest.mark.parametrize("label", ["#general", ".env", "[Beta] Settings"])
    def test_selector_miss_falls_back_to_text(self, label: str):
        target = element(2, "button", label)
        resolver = ElementResolver(FakeUITree([element(0, "div", "Channels"), target]))
        assert resolver.resolve(label) is target

    def test_resolve_all_by_text(self):
        elements = [element(0, "a", "Help"), element(1, "p", "none"), element(2, "a", "Help me")]
        resolver = ElementResolver(FakeUITree(elements))
        assert [el.index for el in resolver.resolve_all_by_text("help")] == [0, 2]


# ---------------------------------------------------------------------------
# 3. Signature strategy
# ---------------------------------------------------------------------------

class TestSignature:

    def test_role_matches_role_or_tag(self):
        div_button = element(0, "div", "", role="button")
        real_button = element(1, "button", "")
        resolver = ElementResolver(FakeUITree([element(2, "span", "x"), div_button, real_button]))
        assert resolver.resolve("sig:role=button") is div_button

    def test_icon_from_icons_or_classes(self):
        by_class = element(0, "button", "", classes=["icon-gear-small"])
        resolver = ElementResolver(FakeUITree([by_class]))
        assert resolver.resolve("sig:icon=gear") is by_class

        by_icon = element(1, "button", "", icons=["Gear"])
        resolver = ElementResolver(FakeUITree([by_icon]))
        assert resolver.resolve("sig:icon=gear") is by_icon

    def test_attributes_must_match(self):
        search = element(0, "input", "", attributes={"placeholder": "Search"})
        other = element(1, "input", "", attributes={"placeholder": "Email"})
        resolver = ElementResolver(FakeUITree([other, search]))
        assert resolver.resolve("sig:tag=input;attr=placeholder:Search") is search

    def test_nearest_to_reference_text(self):
        label = element(0, "span", "Display", x=500, y=500)
        far = element(1, "button", "", x=0, y=0, icons=["gear"])
        near = element(2, "button", "", x=520, y=530, icons=["gear"])
        resolver = ElementResolver(FakeUITree([label, far, near]))
        assert resolver.resolve("sig:icon=gear;near=Display") is near

    def test_reference_element_is_excluded(self):
        label = element(0, "button", "Display", x=500, y=500)
        other = element(1, "button", "", x=700, y=500)
        resolver = ElementResolver(FakeUITree([label, other]))
        assert resolver.resolve("sig:tag=button;near=Display") is other

    def test_nearest_to_point(self):
        left = element(0, "button", "", x=0, y=0)
        right = element(1, "button", "", x=600, y=0)
        resolver = ElementResolver(FakeUITree([left, right]))
        assert resolver.resolve("sig:tag=button;at=640,10") is right

    def test_signature_text_filter(self):
        save = element(0, "button", "Save")
        cancel = element(1, "button", "Cancel")
        resolver = ElementResolver(FakeUITree([save, cancel]))
        assert resolver.resolve("sig:tag=button;text=cancel") is cancel

    def test_signature_without_candidates(self):
        resolver = ElementResolver(FakeUITree([element(0, "div", "x")]))
        assert resolver.resolve("sig:role=button") is None
