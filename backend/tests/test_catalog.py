"""
Product read view tests.

Verifies:
- Public verification record: published hashes, gateway URLs, identifiers, batch info
- Verification requires an ID and a known product
- Owner detail is owner-only
- Owner list is newest first, folds each batch into one entry, and never shows other businesses
"""

from datetime import timedelta

from supplytrack.time_utils import utcnow

from conftest import auth_headers, make_product, add_scans


def _verify(client, product_id):
    return client.get(f"/api/products/verify?id={product_id}")


# =============================================================================
# PUBLIC VERIFICATION
# =============================================================================


class TestVerifyProduct:

    def test_finalized_product_is_verified(self, client, db_session, business):
        product = make_product(
            db_session, business, "BT-6000-verified",
            sku="COF6000",
            mode="live", is_finalized=True, finalized_at=utcnow(),
            ipfs_hash="QmRecord", qr_code_ipfs_hash="QmQR", xrpl_tx_hash="ABC123",
            photo_hashes=["QmPhoto1", "QmPhoto2"],
            location_data={"country": "Colombia"},
            product_metadata={"gtin": 9506000134352, "serialNumber": "SN-1", "origin": "Huila"},
        )
        add_scans(db_session, product, 2)

        resp = _verify(client, product.product_id)
        assert resp.status_code == 200, resp.json
        body = resp.json
        assert body["verified"] is True
        assert body["verifiedOn"] == "XRP Ledger"
        assert body["blockchainTx"] == "https://livenet.xrpl.org/transactions/ABC123"

        record = body["product"]
        assert record["ipfsUrl"] == "https://gateway.test/ipfs/QmRecord"
        assert record["photos"] == [
            "https://gateway.test/ipfs/QmPhoto1",
            "https://gateway.test/ipfs/QmPhoto2",
        ]
        assert record["identifiers"] == {"gtin": "9506000134352", "serialNumber": "SN-1"}
        assert record["metadata"]["origin"] == "Huila"
        assert record["location"] == {"country": "Colombia"}
        assert record["mintedBy"] == "Roastery Co"
        assert record["totalCheckpoints"] == 2
        assert record["batchInfo"] is None

    def test_production_product_is_not_yet_verified(self, client, db_session, business):
        make_product(db_session, business, "BT-6001-draft")

        resp = _verify(client, "BT-6001-draft")
        assert resp.status_code == 200
        assert resp.json["verified"] is False
        assert resp.json["verifiedOn"] is None
        assert resp.json["blockchainTx"] is None
        assert resp.json["product"]["identifiers"] == {"gtin": None, "serialNumber": None}
        assert resp.json["product"]["photos"] == []

    def test_batch_member_reports_batch_size(self, client, db_session, business, batch_leader):
        make_product(db_session, business, "BT-6002-member", batch_group_id="BATCH-1", batch_quantity=1)
        batch_leader.batch_quantity = 2
        db_session.commit()

        info = _verify(client, "BT-6002-member").json["product"]["batchInfo"]
        assert info == {"batchGroupId": "BATCH-1", "isBatchLeader": False, "batchQuantity": 2}

    def test_owner_email_is_not_exposed(self, client, db_session, business):
        make_product(db_session, business, "BT-6003-private")
        assert "owner@roastery.com" not in _verify(client, "BT-6003-private").get_data(as_text=True)

    def test_requires_id(self, client, db_session):
        resp = client.get("/api/products/verify")
        assert resp.status_code == 400
        assert resp.json["error"] == "Product ID required"

    def test_unknown_product(self, client, db_session):
        assert _verify(client, "BT-missing").status_code == 404


# =============================================================================
# OWNER DETAIL
# =============================================================================


class TestProductDetail:

    def test_owner_sees_detail(self, client, db_session, business):
        make_product(
            db_session, business, "BT-6100-detail",
            qr_code_ipfs_hash="QmQR", product_metadata={"rewardPoints": "15 pts"},
        )
        resp = client.get("/api/products/detail?id=BT-6100-detail", headers=auth_headers(business))
        assert resp.status_code == 200
        detail = resp.json["product"]
        assert detail["rewardPoints"] == 15
        assert detail["qrCodeUrl"] == "https://gateway.test/ipfs/QmQR"
        assert detail["verificationUrl"] == "https://track.test/verify.html?id=BT-6100-detail"
        assert detail["blockchainUrl"] is None

    def test_foreign_product_forbidden(self, client, db_session, business, other_business):
        make_product(db_session, business, "BT-6101-foreign")
        resp = client.get("/api/products/detail?id=BT-6101-foreign", headers=auth_headers(other_business))
        assert resp.status_code == 403


# =============================================================================
# OWNER LIST
# =============================================================================


class TestListProducts:

    def test_batches_are_grouped(self, client, db_session, business, batch_leader):
        now = utcnow()
        member = make_product(
            db_session, business, "BT-6200-member",
            batch_group_id="BATCH-1", batch_quantity=1, created_at=now - timedelta(hours=2),
        )
        batch_leader.batch_quantity = 2
        single = make_product(db_session, business, "BT-6201-single", created_at=now)
        db_session.commit()

        resp = client.get("/api/products", headers=auth_headers(business))
        assert resp.status_code == 200
        entries = resp.json["products"]
        assert resp.json["count"] == 2

        assert entries[0]["productId"] == single.product_id
        assert entries[0]["isBatchGroup"] is False

        group = entries[1]
        assert group["isBatchGroup"] is True
        assert group["batchGroupId"] == "BATCH-1"
        assert group["quantity"] == 2
        assert [p["productId"] for p in group["products"]] == [batch_leader.product_id, member.product_id]
        assert group["products"][0]["checkpointCount"] == 3

    def test_other_business_products_hidden(self, client, db_session, business, other_business):
        make_product(db_session, business, "BT-6202-mine")
        make_product(db_session, other_business, "BT-6203-theirs")

        entries = client.get("/api/products", headers=auth_headers(business)).json["products"]
        assert [e["productId"] for e in entries] == ["BT-6202-mine"]

    def test_empty_list(self, client, business):
        resp = client.get("/api/products", headers=auth_headers(business))
        assert resp.json == {"success": True, "products": [], "count": 0}
