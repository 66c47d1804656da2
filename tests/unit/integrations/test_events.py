import pytest
from pydantic import ValidationError

from stocksync.integrations.events import InventoryLevelUpdate


def test_accepts_shopify_field_names():
    update = InventoryLevelUpdate.model_validate({
        "inventory_item_id": 271878346596884,
        "location_id": 24826418,
        "available": 7,
        "updated_at": "2024-06-01T12:00:00-04:00",
    })

    assert update.external_item_ref == "271878346596884"
    assert update.external_location_ref == "24826418"
    assert update.available == 7
    assert update.updated_at is not None


def test_accepts_generic_field_names_and_gids():
    update = InventoryLevelUpdate.model_validate({
        "external_item_ref": "gid://shopify/InventoryItem/55",
        "external_location_ref": "gid://shopify/Location/9",
        "available": 0,
    })

    assert update.external_item_ref == "55"
    assert update.external_location_ref == "9"


def test_location_is_optional():
    update = InventoryLevelUpdate.model_validate({"inventory_item_id": 1, "available": 3})
    assert update.external_location_ref is None


@pytest.mark.parametrize("payload", [
    {"inventory_item_id": 1},
    {"available": 3},
    {"inventory_item_id": "", "available": 3},
    {"inventory_item_id": 1, "available": "3"},
    {"inventory_item_id": 1, "available": 3.5},
    {"inventory_item_id": 1, "available": None},
])
def test_rejects_malformed_payloads(payload):
    with pytest.raises(ValidationError):
        InventoryLevelUpdate.model_validate(payload)
