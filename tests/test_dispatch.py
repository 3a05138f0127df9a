from prodos.commands.dispatch import all_channels, Dispatcher
from prodos.product_os import ProductOS


def test_dispatch_results(product_os: ProductOS):
    dispatcher = Dispatcher(product_os)

    created = dispatcher.dispatch("products:create", "SidelineHD", description="Video for coaches")
    assert created["success"] is True
    product = created["data"]
    assert product["name"] == "SidelineHD"
    assert product["id"].startswith("prod_")

    entity = dispatcher.dispatch(
        "entities:create", product["id"], "problem", title="Users churn"
    )["data"]
    assert entity["type"] == "problem"
    assert entity["status"] == "active"

    listed = dispatcher.dispatch("entities:getAll", product["id"], type="problem")
    assert [e["id"] for e in listed["data"]] == [entity["id"]]

    promote = dispatcher.dispatch("entities:promote", entity["id"], "hypothesis")
    assert promote["success"] is False
    assert "not a capture" in promote["error"]

    assert dispatcher.dispatch("products:delete", product["id"]) == {"success": True}
    assert dispatcher.dispatch("products:getById", product["id"]) == {"success": True}


def test_dispatch_duplicate_relationship(product_os: ProductOS):
    dispatcher = Dispatcher(product_os)
    product = product_os.create_product("SidelineHD")
    a = product_os.create_entity(product.id, "problem", title="A")
    b = product_os.create_entity(product.id, "hypothesis", title="B")

    first = dispatcher.dispatch("relationships:create", a.id, b.id)
    assert first["success"] is True
    assert first["data"]["source_id"] == a.id

    second = dispatcher.dispatch("relationships:create", a.id, b.id)
    assert second == {
        "success": False,
        "error": "Relationship already exists between these entities",
    }


def test_dispatch_errors(product_os: ProductOS):
    dispatcher = Dispatcher(product_os)

    unknown = dispatcher.dispatch("products:explode")
    assert unknown["success"] is False
    assert "Unknown channel" in unknown["error"]

    bad_type = dispatcher.dispatch("entities:create", "prod_x", "quick_note")
    assert bad_type == {"success": False, "error": "Unknown entity type: 'quick_note'"}

    assert "workspace:migrate" in all_channels()


def test_dispatch_workspace(product_os: ProductOS, workspace):
    dispatcher = Dispatcher(product_os)
    assert dispatcher.dispatch("workspace:getPath") == {"success": True, "data": str(workspace)}
    assert dispatcher.dispatch("workspace:isConfigured") == {"success": True, "data": True}

    summary = dispatcher.dispatch("workspace:sync")["data"]
    assert summary["errors"] == 0
    assert summary["workspace_path"] == str(workspace)
