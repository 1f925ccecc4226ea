"""Unit tests for teeforge.core.catalog - designs, templates and collections."""

import pytest

from teeforge.core import catalog
from teeforge.core.errors import MissingInput, NotFound, Unauthorized
from teeforge.core.ledger import VariationLedger
from teeforge.core.models import ANONYMOUS


class TestDesigns:
    """Design listing, loading and mutation."""

    def test_list_uses_display_reference(self, store, caller, design):
        store.update_design_thumbnail(design.id, caller.user_id, "https://x/thumb.png")

        [listed] = catalog.list_designs(caller, store)
        assert listed.image_url == "https://x/thumb.png"
        assert store.get_design(design.id).image_url == design.image_url

    def test_list_is_per_user(self, store, caller, other_caller, design):
        assert catalog.list_designs(other_caller, store) == []

    def test_anonymous_caller_rejected(self, store):
        with pytest.raises(Unauthorized):
            catalog.list_designs(ANONYMOUS, store)

    def test_load_returns_ordered_history(self, store, caller, design):
        ledger = VariationLedger(store)
        ids = [ledger.append(design.id, f"https://x/{i}.png", "edited") for i in range(3)]

        loaded, variations = catalog.load_design(caller, store, design.id)
        assert loaded.id == design.id
        assert [v.id for v in variations] == ids

    def test_load_other_users_design_is_not_found(self, store, other_caller, design):
        with pytest.raises(NotFound, match="Design not found or access denied"):
            catalog.load_design(other_caller, store, design.id)

    def test_update_thumbnail(self, store, caller, design):
        catalog.update_thumbnail(caller, store, design.id, "https://x/v3.png")
        assert store.get_design(design.id).thumbnail_image_url == "https://x/v3.png"

    def test_update_thumbnail_requires_url(self, store, caller, design):
        with pytest.raises(MissingInput):
            catalog.update_thumbnail(caller, store, design.id, "")

    def test_update_thumbnail_of_other_user(self, store, other_caller, design):
        with pytest.raises(NotFound):
            catalog.update_thumbnail(other_caller, store, design.id, "https://x/v3.png")

    def test_delete_design(self, store, caller, design):
        catalog.delete_design(caller, store, design.id)
        assert store.get_design(design.id) is None

    def test_delete_variation(self, store, caller, design):
        ledger = VariationLedger(store)
        keep = ledger.append(design.id, "https://x/1.png", "edited")
        drop = ledger.append(design.id, "https://x/2.png", "edited")

        catalog.delete_variation(caller, store, design.id, drop)
        assert [v.id for v in ledger.list_ordered(design.id)] == [keep]

    def test_delete_variation_through_foreign_design(self, store, caller, other_caller, design):
        variation_id = VariationLedger(store).append(design.id, "https://x/1.png", "edited")
        with pytest.raises(NotFound):
            catalog.delete_variation(other_caller, store, design.id, variation_id)


class TestCreateDesign:
    """Saving an existing image as a new design."""

    def test_create_and_load(self, store, caller):
        design = catalog.create_design(
            caller, store, "https://x/upload.png", title="Fox", prompt="a fox", aspect_ratio="1:1"
        )

        loaded, variations = catalog.load_design(caller, store, design.id)
        assert loaded == design
        assert design.image_url == "https://x/upload.png"
        assert design.user_id == caller.user_id
        assert variations == []

    def test_title_falls_back_to_prompt(self, store, caller):
        design = catalog.create_design(caller, store, "https://x/a.png", prompt="p" * 120)
        assert design.title == "p" * 100
        assert design.aspect_ratio == "4:5"

    def test_untitled_without_prompt(self, store, caller):
        assert catalog.create_design(caller, store, "https://x/a.png").title == "Untitled"

    @pytest.mark.parametrize("image_url", [None, "", "  "])
    def test_image_required(self, store, caller, image_url):
        with pytest.raises(MissingInput, match="Image URL is required"):
            catalog.create_design(caller, store, image_url)

    def test_requires_caller(self, store):
        with pytest.raises(Unauthorized):
            catalog.create_design(ANONYMOUS, store, "https://x/a.png")


class TestCopyTemplate:
    """Template copies resolve primary and thumbnail independently."""

    def test_stale_primary_uses_thumbnail(self, store, caller, template):
        design = catalog.copy_template(caller, store, template.id)

        assert design.image_url == template.thumbnail_image_url
        assert design.thumbnail_image_url == template.thumbnail_image_url
        assert design.title == "Mountain Badge (copy)"
        assert design.prompt == template.prompt
        assert design.aspect_ratio == "4:5"
        assert design.user_id == caller.user_id

    def test_without_thumbnail(self, store, caller):
        template = store.insert_template(title="", prompt="p", image_url="https://x/only.png")

        design = catalog.copy_template(caller, store, template.id)
        assert design.image_url == "https://x/only.png"
        assert design.thumbnail_image_url == "https://x/only.png"
        assert design.title == "Untitled (copy)"
        assert design.aspect_ratio == "1:1"

    def test_copy_is_persisted(self, store, caller, template):
        design = catalog.copy_template(caller, store, template.id)
        assert store.get_design(design.id, user_id=caller.user_id) == design

    def test_unknown_template(self, store, caller):
        with pytest.raises(NotFound):
            catalog.copy_template(caller, store, "missing")

    def test_requires_caller(self, store, template):
        with pytest.raises(Unauthorized):
            catalog.copy_template(ANONYMOUS, store, template.id)


class TestCollections:
    """Collections and per-collection tags."""

    def test_name_is_normalized(self):
        assert catalog.normalize_collection_name("  Summer Drops ") == "summer drops"

    def test_blank_name_rejected(self, store):
        with pytest.raises(MissingInput):
            catalog.create_collection(store, "   ")

    def test_create_is_idempotent_by_name(self, store):
        first = catalog.create_collection(store, "Retro")
        second = catalog.create_collection(store, "RETRO ")
        assert first.id == second.id
        assert [c.name for c in catalog.list_collections(store)] == ["retro"]

    def test_add_template_merges_tags(self, store, template):
        collection = catalog.create_collection(store, "Outdoors")

        membership, updated = catalog.add_template_to_collection(
            store, collection.id, template.id, ["hiking", "vintage", "hiking"]
        )
        assert not updated
        assert membership.tags == ["hiking", "vintage"]

        membership, updated = catalog.add_template_to_collection(
            store, collection.id, template.id, ["badge", "vintage"]
        )
        assert updated
        assert membership.tags == ["hiking", "vintage", "badge"]
        assert store.get_membership(collection.id, template.id).tags == membership.tags

    def test_tags_are_per_collection(self, store, template):
        first = catalog.create_collection(store, "a")
        second = catalog.create_collection(store, "b")
        catalog.add_template_to_collection(store, first.id, template.id, ["one"])
        catalog.add_template_to_collection(store, second.id, template.id, ["two"])

        assert store.get_membership(first.id, template.id).tags == ["one"]
        assert store.get_membership(second.id, template.id).tags == ["two"]

    def test_add_to_unknown_collection(self, store, template):
        with pytest.raises(NotFound, match="Collection not found"):
            catalog.add_template_to_collection(store, "missing", template.id, [])

    def test_add_unknown_template(self, store):
        collection = catalog.create_collection(store, "x")
        with pytest.raises(NotFound, match="Template not found"):
            catalog.add_template_to_collection(store, collection.id, "missing", [])

    def test_list_filters_by_tag(self, store, template):
        other = store.insert_template(title="Wave", prompt="", image_url="https://x/wave.png")
        collection = catalog.create_collection(store, "x")
        catalog.add_template_to_collection(store, collection.id, template.id, ["vintage"])
        catalog.add_template_to_collection(store, collection.id, other.id, ["surf"])

        assert len(catalog.list_collection_templates(store, collection.id)) == 2
        [(listed, membership)] = catalog.list_collection_templates(store, collection.id, tag="surf")
        assert listed.id == other.id
        assert membership.tags == ["surf"]

    def test_remove_template(self, store, template):
        collection = catalog.create_collection(store, "x")
        catalog.add_template_to_collection(store, collection.id, template.id, [])

        catalog.remove_template_from_collection(store, collection.id, template.id)
        assert catalog.list_collection_templates(store, collection.id) == []

        with pytest.raises(NotFound):
            catalog.remove_template_from_collection(store, collection.id, template.id)


class TestAddDesignToCollection:
    """Designs published into collections as templates."""

    def test_builds_template_from_design(self, store, caller, design):
        store.update_design_thumbnail(design.id, caller.user_id, "https://x/latest.png")
        collection = catalog.create_collection(store, "Outdoors")

        template, membership, updated = catalog.add_design_to_collection(
            caller, store, collection.id, design.id, ["fox"]
        )

        assert not updated
        assert template.source_design_id == design.id
        assert template.title == design.title
        assert template.prompt == design.prompt
        assert template.image_url == design.image_url
        assert template.thumbnail_image_url == "https://x/latest.png"
        assert template.aspect_ratio == design.aspect_ratio
        assert membership.template_id == template.id
        assert membership.tags == ["fox"]
        assert [t.id for t in catalog.list_templates(store)] == [template.id]

    def test_readding_merges_tags_on_same_template(self, store, caller, design):
        collection = catalog.create_collection(store, "x")
        first, _, _ = catalog.add_design_to_collection(caller, store, collection.id, design.id, ["a"])
        second, membership, updated = catalog.add_design_to_collection(
            caller, store, collection.id, design.id, ["b", "a"]
        )

        assert second.id == first.id
        assert updated
        assert membership.tags == ["a", "b"]

    def test_one_template_across_collections(self, store, caller, design):
        first = catalog.create_collection(store, "a")
        second = catalog.create_collection(store, "b")
        one, _, _ = catalog.add_design_to_collection(caller, store, first.id, design.id, ["one"])
        two, _, _ = catalog.add_design_to_collection(caller, store, second.id, design.id, ["two"])

        assert one.id == two.id
        assert store.get_membership(first.id, one.id).tags == ["one"]
        assert store.get_membership(second.id, one.id).tags == ["two"]

    def test_template_can_be_copied(self, store, caller, other_caller, design):
        collection = catalog.create_collection(store, "x")
        template, _, _ = catalog.add_design_to_collection(caller, store, collection.id, design.id)

        copy = catalog.copy_template(other_caller, store, template.id)
        assert copy.user_id == other_caller.user_id
        assert copy.image_url == design.image_url

    def test_unknown_collection(self, store, caller, design):
        with pytest.raises(NotFound, match="Collection not found"):
            catalog.add_design_to_collection(caller, store, "missing", design.id)

    def test_foreign_design(self, store, other_caller, design):
        collection = catalog.create_collection(store, "x")
        with pytest.raises(NotFound, match="Design not found"):
            catalog.add_design_to_collection(other_caller, store, collection.id, design.id)
        assert store.list_templates() == []

    def test_ids_required(self, store, caller):
        with pytest.raises(MissingInput, match="Collection ID and Design ID are required"):
            catalog.add_design_to_collection(caller, store, "c1", "")

    def test_requires_caller(self, store, design):
        with pytest.raises(Unauthorized):
            catalog.add_design_to_collection(ANONYMOUS, store, "c1", design.id)
