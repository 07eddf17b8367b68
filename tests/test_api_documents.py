import uuid

from app.models.distribution import Invoice


def _create_invoice(db_session, cur_loc="HQ", number="INV-001"):
    invoice = Invoice(invoice_number=number, cur_loc=cur_loc)
    db_session.add(invoice)
    db_session.commit()
    db_session.refresh(invoice)
    return invoice


class TestDocumentLocationEndpoints:
    def test_current_location_falls_back_to_stored(
        self, client, db_session, auth_headers
    ) -> None:
        invoice = _create_invoice(db_session, "HQ")
        resp = client.get(
            f"/documents/invoice/{invoice.id}/location", headers=auth_headers
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "document_kind": "invoice",
            "document_id": str(invoice.id),
            "location_code": "HQ",
        }

    def test_move_and_history(self, client, db_session, auth_headers, person) -> None:
        invoice = _create_invoice(db_session, "HQ")
        resp = client.post(
            f"/documents/invoice/{invoice.id}/move",
            json={"location_code": "WH2", "reason": "Audit"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["location_code"] == "WH2"
        assert resp.json()["moved_by"] == str(person.id)

        resp = client.get(
            f"/documents/invoice/{invoice.id}/location-history", headers=auth_headers
        )
        history = resp.json()
        assert len(history) == 1
        assert history[0]["reason"] == "Audit"

    def test_unknown_document(self, client, auth_headers) -> None:
        resp = client.get(
            f"/documents/invoice/{uuid.uuid4()}/location", headers=auth_headers
        )
        assert resp.status_code == 404

    def test_unknown_kind(self, client, auth_headers) -> None:
        resp = client.get(
            f"/documents/receipt/{uuid.uuid4()}/location", headers=auth_headers
        )
        assert resp.status_code == 422

    def test_documents_in_location(self, client, db_session, auth_headers) -> None:
        here = _create_invoice(db_session, "HQ", "INV-001")
        _create_invoice(db_session, "WH1", "INV-002")
        resp = client.get(
            "/documents/in-location/HQ",
            params={"document_kind": "invoice"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert [d["document_id"] for d in resp.json()] == [str(here.id)]

    def test_initialize_tracking_and_statistics(
        self, client, db_session, auth_headers
    ) -> None:
        _create_invoice(db_session, "HQ", "INV-001")
        _create_invoice(db_session, "HQ", "INV-002")
        resp = client.post("/documents/tracking/initialize", headers=auth_headers)
        assert resp.json() == {
            "initialized": {"invoice": 2, "additional_document": 0}
        }

        resp = client.get("/documents/movement-statistics", headers=auth_headers)
        assert resp.json() == [{"location_code": "HQ", "movements": 2}]
