"""
Batch membership tests.

Verifies:
- Adding an item clones the leader's checkpoints and recounts the batch
- Removing the leader promotes the earliest remaining member
- Exactly one leader with an accurate quantity after every add/delete
"""

from datetime import timedelta

import pytest

from supplytrack.models import Product, ProductionScan
from supplytrack.time_utils import utcnow

from conftest import auth_headers, make_product, batch_rows, assert_batch_consistent


def _add(client, user, **body):
    body.setdefault("batchGroupId", "BATCH-1")
    body.setdefault("productName", "Cold Brew Coffee")
    return client.post("/api/batches/items", json=body, headers=auth_headers(user))


def _delete(client, user, product_id, batch_group_id="BATCH-1"):
    return client.post(
        "/api/batches/items/delete",
        json={"productId": product_id, "batchGroupId": batch_group_id},
        headers=auth_headers(user),
    )


# =============================================================================
# ADD BATCH ITEM
# =============================================================================


class TestAddBatchItem:

    def test_add_clones_leader_checkpoints(self, client, db_session, business, batch_leader, fake_pinning):
        resp = _add(client, business, sku="COF-CUSTOM")
        assert resp.status_code == 200, resp.json
        item = resp.json["item"]
        assert item["productId"].startswith("BT-")
        assert item["sku"] == "COF-CUSTOM"
        assert item["checkpointCount"] == 3
        assert item["qrCodeUrl"].startswith("https://gateway.test/ipfs/Qm")

        rows = batch_rows(db_session, "BATCH-1")
        assert len(rows) == 2
        leader, member = rows
        assert leader.is_batch_group is True
        assert leader.batch_quantity == 2
        assert member.is_batch_group is False
        assert member.batch_quantity == 1
        assert member.batch_number == "LOT-7"
        assert member.product_metadata == {"rewardPoints": "25", "origin": "Huila"}

        leader_scans = (
            db_session.query(ProductionScan)
            .filter_by(product_id=leader.id)
            .order_by(ProductionScan.scanned_at)
            .all()
        )
        member_scans = (
            db_session.query(ProductionScan)
            .filter_by(product_id=member.id)
            .order_by(ProductionScan.scanned_at)
            .all()
        )
        assert len(member_scans) == 3
        assert [s.scanned_at for s in member_scans] == [s.scanned_at for s in leader_scans]
        assert [s.location_name for s in member_scans] == [s.location_name for s in leader_scans]
        assert {s.id for s in member_scans}.isdisjoint({s.id for s in leader_scans})

    def test_add_pins_tracking_qr(self, client, business, batch_leader, fake_pinning):
        resp = _add(client, business)
        assert resp.status_code == 200
        filename, content_type, size = fake_pinning.pinned[0]
        assert filename == f"tracking-qr-{resp.json['item']['productId']}.png"
        assert content_type == "image/png"
        assert size > 0

    def test_add_derives_sku_from_name(self, client, business, batch_leader, fake_pinning):
        resp = _add(client, business, productName="espresso beans")
        sku = resp.json["item"]["sku"]
        assert sku.startswith("ESP")
        assert len(sku) == 7

    def test_add_uses_batch_sku_prefix(self, client, db_session, business, batch_leader, fake_pinning):
        batch_leader.product_metadata = {"batchSkuPrefix": "COF", "gtin": "09506000134352"}
        db_session.commit()

        resp = _add(client, business)
        assert resp.json["item"]["sku"] == "COF-002"
        member = batch_rows(db_session, "BATCH-1")[1]
        assert member.product_metadata == {"batchSkuPrefix": "COF", "gtin": "09506000134352"}

    def test_add_shares_leader_sku(self, client, db_session, business, batch_leader, fake_pinning):
        batch_leader.product_metadata = {"sameSku": True, "batchSkuPrefix": "COF"}
        db_session.commit()

        assert _add(client, business).json["item"]["sku"] == "COF1000"

    @pytest.mark.parametrize("body", [
        {"batchGroupId": ""},
        {"productName": ""},
        {"batchGroupId": None},
    ])
    def test_add_missing_fields(self, client, business, batch_leader, fake_pinning, body):
        resp = _add(client, business, **body)
        assert resp.status_code == 400
        assert resp.json["error"] == "batchGroupId and productName are required"

    def test_add_unknown_batch(self, client, business, fake_pinning):
        resp = _add(client, business, batchGroupId="NOPE")
        assert resp.status_code == 404
        assert resp.json["error"] == "Batch not found"

    def test_pinning_failure_writes_nothing(self, client, db_session, business, batch_leader, monkeypatch):
        from supplytrack.errors import ExternalServiceError
        from supplytrack.extensions import pinning

        def _fail(*args, **kwargs):
            raise ExternalServiceError("Failed to pin file")

        monkeypatch.setattr(pinning, "pin_file", _fail)
        resp = _add(client, business)
        assert resp.status_code == 500
        assert len(batch_rows(db_session, "BATCH-1")) == 1

    def test_repeated_adds_keep_invariants(self, client, db_session, business, batch_leader, fake_pinning):
        for _ in range(4):
            assert _add(client, business).status_code == 200
            assert_batch_consistent(db_session, "BATCH-1")
        assert len(batch_rows(db_session, "BATCH-1")) == 5


# =============================================================================
# DELETE BATCH ITEM
# =============================================================================


class TestDeleteBatchItem:

    def test_delete_leader_promotes_remaining_member(self, client, db_session, business, batch_leader, fake_pinning):
        member_id = _add(client, business).json["item"]["productId"]
        leader_pk = batch_leader.id

        resp = _delete(client, business, batch_leader.product_id)
        assert resp.status_code == 200, resp.json
        assert resp.json["leaderTransferred"] is True
        assert resp.json["deletedCheckpoints"] == 3

        rows = batch_rows(db_session, "BATCH-1")
        assert [r.product_id for r in rows] == [member_id]
        assert rows[0].is_batch_group is True
        assert rows[0].batch_quantity == 1
        assert db_session.get(Product, leader_pk) is None
        assert db_session.query(ProductionScan).filter_by(product_id=leader_pk).count() == 0
        # The promoted member keeps its own cloned history
        assert db_session.query(ProductionScan).filter_by(product_id=rows[0].id).count() == 3

    def test_promotes_earliest_created_member(self, client, db_session, business, batch_leader):
        now = utcnow()
        late = make_product(db_session, business, "BT-3-late", batch_group_id="BATCH-1",
                            batch_quantity=1, created_at=now)
        early = make_product(db_session, business, "BT-2-early", batch_group_id="BATCH-1",
                             batch_quantity=1, created_at=now - timedelta(hours=2))
        batch_leader.batch_quantity = 3
        db_session.commit()

        resp = _delete(client, business, batch_leader.product_id)
        assert resp.status_code == 200

        rows = {r.product_id: r for r in batch_rows(db_session, "BATCH-1")}
        assert rows[early.product_id].is_batch_group is True
        assert rows[early.product_id].batch_quantity == 2
        assert rows[late.product_id].is_batch_group is False
        assert_batch_consistent(db_session, "BATCH-1")

    def test_delete_member_decrements_quantity(self, client, db_session, business, batch_leader, fake_pinning):
        first = _add(client, business).json["item"]["productId"]
        _add(client, business)

        resp = _delete(client, business, first)
        assert resp.status_code == 200
        assert resp.json["leaderTransferred"] is False

        rows = batch_rows(db_session, "BATCH-1")
        assert len(rows) == 2
        assert rows[0].product_id == batch_leader.product_id
        assert rows[0].batch_quantity == 2

    def test_delete_last_item_empties_batch(self, client, db_session, business, batch_leader):
        resp = _delete(client, business, batch_leader.product_id)
        assert resp.status_code == 200
        assert resp.json["leaderTransferred"] is False
        assert batch_rows(db_session, "BATCH-1") == []

    def test_delete_from_empty_batch_is_noop(self, client, business):
        resp = _delete(client, business, "BT-anything", batch_group_id="GONE")
        assert resp.status_code == 200
        assert resp.json["removed"] is False

    def test_delete_unknown_item(self, client, business, batch_leader):
        resp = _delete(client, business, "BT-not-in-batch")
        assert resp.status_code == 404
        assert resp.json["error"] == "Item not found"

    def test_delete_foreign_item(self, client, business, other_business, batch_leader):
        resp = _delete(client, other_business, batch_leader.product_id)
        assert resp.status_code == 404

    def test_delete_finalized_item_rejected(self, client, db_session, business, batch_leader):
        batch_leader.mode = "live"
        batch_leader.is_finalized = True
        batch_leader.finalized_at = utcnow()
        db_session.commit()

        resp = _delete(client, business, batch_leader.product_id)
        assert resp.status_code == 400
        assert len(batch_rows(db_session, "BATCH-1")) == 1

    def test_delete_missing_fields(self, client, business):
        resp = client.post("/api/batches/items/delete", json={"productId": "x"}, headers=auth_headers(business))
        assert resp.status_code == 400

    def test_add_delete_interleaving_keeps_invariants(self, client, db_session, business, batch_leader, fake_pinning):
        added = [_add(client, business).json["item"]["productId"] for _ in range(3)]
        for product_id in [batch_leader.product_id, added[1], added[0]]:
            assert _delete(client, business, product_id).status_code == 200
            assert_batch_consistent(db_session, "BATCH-1")
        assert _add(client, business).status_code == 200
        assert_batch_consistent(db_session, "BATCH-1")
        assert len(batch_rows(db_session, "BATCH-1")) == 2


# =============================================================================
# LIST BATCH ITEMS
# =============================================================================


class TestListBatchItems:

    def test_lists_items_with_checkpoint_counts(self, client, business, batch_leader, fake_pinning):
        _add(client, business)
        resp = client.get("/api/batches/items?batchGroupId=BATCH-1", headers=auth_headers(business))
        assert resp.status_code == 200
        assert resp.json["count"] == 2
        leader, member = resp.json["items"]
        assert leader["isBatchLeader"] is True
        assert leader["batchQuantity"] == 2
        assert leader["checkpointCount"] == 3
        assert member["isBatchLeader"] is False
        assert member["checkpointCount"] == 3

    def test_requires_batch_group_id(self, client, business):
        resp = client.get("/api/batches/items", headers=auth_headers(business))
        assert resp.status_code == 400
        assert resp.json["error"] == "batchGroupId is required"
