import uuid

from app.models.distribution import AdditionalDocument, Invoice


def _create_invoice(db_session, cur_loc="HQ", number="INV-001"):
    invoice = Invoice(invoice_number=number, cur_loc=cur_loc)
    db_session.add(invoice)
    db_session.commit()
    db_session.refresh(invoice)
    return invoice


def _create_additional(db_session, cur_loc="HQ", invoices=(), number="DO-001"):
    document = AdditionalDocument(document_number=number, cur_loc=cur_loc)
    document.invoices.extend(invoices)
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document


def _create_payload(dist_type, destination, invoices):
    return {
        "type_id": str(dist_type.id),
        "destination_department_id": str(destination.id),
        "document_kind": "invoice",
        "documents": [
            {"document_kind": "invoice", "document_id": str(invoice.id)}
            for invoice in invoices
        ],
    }


def _create_distribution(client, headers, dist_type, destination, invoices):
    resp = client.post(
        "/distributions",
        json=_create_payload(dist_type, destination, invoices),
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAuthentication:
    def test_requires_user_header(self, client) -> None:
        resp = client.get("/distributions")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthorized"

    def test_unknown_user_rejected(self, client) -> None:
        resp = client.get("/distributions", headers={"X-User-Id": str(uuid.uuid4())})
        assert resp.status_code == 401


class TestDistributionEndpoints:
    def test_create(
        self, client, db_session, auth_headers, dist_type, destination
    ) -> None:
        invoice = _create_invoice(db_session)
        linked = _create_additional(db_session, invoices=[invoice])
        _create_additional(db_session, "WH1", [invoice], number="DO-002")

        data = _create_distribution(
            client, auth_headers, dist_type, destination, [invoice]
        )

        distribution = data["distribution"]
        assert distribution["status"] == "draft"
        assert distribution["distribution_number"].endswith("/HQ/N/00001")
        assert distribution["type"]["code"] == "N"
        assert len(distribution["documents"]) == 2
        assert data["auto_included"][0]["document_id"] == str(linked.id)
        assert data["warnings"][0]["type"] == "location_mismatch"
        assert data["warnings"][0]["current_location"] == "WH1"

    def test_create_with_mismatched_kind(
        self, client, db_session, auth_headers, dist_type, destination
    ) -> None:
        invoice = _create_invoice(db_session)
        payload = _create_payload(dist_type, destination, [invoice])
        payload["document_kind"] = "additional_document"
        resp = client.post("/distributions", json=payload, headers=auth_headers)
        assert resp.status_code == 422
        assert resp.json()["code"] == "validation_error"
        assert resp.json()["message"] == "Validation error"

    def test_create_with_document_elsewhere(
        self, client, db_session, auth_headers, dist_type, destination
    ) -> None:
        invoice = _create_invoice(db_session, "WH1")
        resp = client.post(
            "/distributions",
            json=_create_payload(dist_type, destination, [invoice]),
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["details"]["current_location"] == "WH1"

    def test_update_and_delete_draft(
        self, client, db_session, auth_headers, dist_type, destination
    ) -> None:
        invoice = _create_invoice(db_session)
        distribution_id = _create_distribution(
            client, auth_headers, dist_type, destination, [invoice]
        )["distribution"]["id"]

        resp = client.patch(
            f"/distributions/{distribution_id}",
            json={"notes": "handle with care"},
            headers=auth_headers,
        )
        assert resp.json()["notes"] == "handle with care"

        resp = client.delete(f"/distributions/{distribution_id}", headers=auth_headers)
        assert resp.json() == {"deleted": True}
        resp = client.get(f"/distributions/{distribution_id}", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"

    def test_attach_and_detach_documents(
        self, client, db_session, auth_headers, dist_type, destination
    ) -> None:
        first = _create_invoice(db_session, number="INV-001")
        second = _create_invoice(db_session, number="INV-002")
        distribution_id = _create_distribution(
            client, auth_headers, dist_type, destination, [first]
        )["distribution"]["id"]

        resp = client.post(
            f"/distributions/{distribution_id}/documents",
            json={
                "documents": [
                    {"document_kind": "invoice", "document_id": str(second.id)}
                ]
            },
            headers=auth_headers,
        )
        assert len(resp.json()["distribution"]["documents"]) == 2

        resp = client.delete(
            f"/distributions/{distribution_id}/documents/invoice/{second.id}",
            headers=auth_headers,
        )
        assert len(resp.json()["documents"]) == 1

        resp = client.delete(
            f"/distributions/{distribution_id}/documents/invoice/{first.id}",
            headers=auth_headers,
        )
        assert resp.status_code == 422

    def test_list_and_lookups(
        self, client, db_session, auth_headers, person, dist_type, destination
    ) -> None:
        invoice = _create_invoice(db_session)
        created = _create_distribution(
            client, auth_headers, dist_type, destination, [invoice]
        )
        number = created["distribution"]["distribution_number"]

        resp = client.get(
            "/distributions", params={"status": "draft"}, headers=auth_headers
        )
        data = resp.json()
        assert data["count"] == 1
        assert data["items"][0]["distribution_number"] == number

        resp = client.get(
            "/distributions", params={"status": "archived"}, headers=auth_headers
        )
        assert resp.status_code == 422

        resp = client.get(
            "/distributions/by-number", params={"number": number}, headers=auth_headers
        )
        assert resp.json()["id"] == created["distribution"]["id"]

        resp = client.get(
            "/distributions/number-available",
            params={"number": number},
            headers=auth_headers,
        )
        assert resp.json() == {"available": False}

        resp = client.get(
            f"/distributions/by-department/{destination.id}",
            params={"direction": "destination"},
            headers=auth_headers,
        )
        assert len(resp.json()) == 1

        resp = client.get("/distributions/by-status/draft", headers=auth_headers)
        assert len(resp.json()) == 1

        resp = client.get(
            f"/distributions/by-user/{person.id}",
            params={"role": "creator"},
            headers=auth_headers,
        )
        assert len(resp.json()) == 1

    def test_transmittal(
        self, client, db_session, auth_headers, dist_type, destination
    ) -> None:
        invoice = _create_invoice(db_session, number="INV-900")
        distribution_id = _create_distribution(
            client, auth_headers, dist_type, destination, [invoice]
        )["distribution"]["id"]

        resp = client.get(
            f"/distributions/{distribution_id}/transmittal", headers=auth_headers
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["type_name"] == "Normal"
        assert data["created_by"] == "Sender User"
        assert data["documents"][0]["document_number"] == "INV-900"

    def test_invalid_identifier(self, client, auth_headers) -> None:
        resp = client.get("/distributions/not-a-uuid", headers=auth_headers)
        assert resp.status_code == 422


class TestWorkflowEndpoints:
    def test_full_workflow(
        self,
        client,
        db_session,
        auth_headers,
        receiver_headers,
        dist_type,
        destination,
    ) -> None:
        invoice = _create_invoice(db_session)
        distribution_id = _create_distribution(
            client, auth_headers, dist_type, destination, [invoice]
        )["distribution"]["id"]
        base = f"/api/v1/distributions/{distribution_id}"

        resp = client.post(f"{base}/send", headers=auth_headers)
        assert resp.status_code == 409
        assert resp.json()["details"] == {"current_status": "draft"}

        resp = client.post(f"{base}/verify-sender", json={}, headers=auth_headers)
        assert resp.json()["status"] == "verified_by_sender"
        resp = client.post(f"{base}/send", headers=auth_headers)
        assert resp.json()["status"] == "sent"
        resp = client.post(f"{base}/receive", headers=receiver_headers)
        assert resp.json()["status"] == "received"

        resp = client.get(
            f"/documents/invoice/{invoice.id}/location", headers=auth_headers
        )
        assert resp.json()["location_code"] == "WH1"

        verifications = [
            {
                "document_kind": "invoice",
                "document_id": str(invoice.id),
                "status": "missing",
                "notes": "not in envelope",
            }
        ]
        resp = client.post(
            f"{base}/verify-receiver",
            json={"verifications": verifications},
            headers=receiver_headers,
        )
        assert resp.status_code == 409
        data = resp.json()
        assert data["code"] == "discrepancy_pending"
        assert data["details"]["discrepancies"][0]["status"] == "missing"

        resp = client.post(
            f"{base}/verify-receiver",
            json={
                "verifications": verifications,
                "force_complete_with_discrepancies": True,
            },
            headers=receiver_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["has_discrepancies"] is True

        resp = client.post(f"{base}/complete", headers=receiver_headers)
        assert resp.json()["status"] == "completed"

        summary = client.get(f"{base}/discrepancy-summary", headers=auth_headers).json()
        assert summary["missing"] == 1
        assert summary["receiver_discrepancies"][0]["notes"] == "not in envelope"

        history = client.get(f"{base}/history", headers=auth_headers).json()
        assert history[0]["action"] == "completed"
        assert history[-1]["action"] == "created"

    def test_missing_distribution(self, client, auth_headers) -> None:
        resp = client.post(
            f"/distributions/{uuid.uuid4()}/send", headers=auth_headers
        )
        assert resp.status_code == 404
