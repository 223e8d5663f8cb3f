"""
API Tests
HTTP surface: identity header, status codes and error bodies
"""

from datetime import datetime, timedelta

from expense_approvals.models.approval import ApprovalRequest


def _headers(user):
    return {"X-User-Id": str(user.id)}


def _rule_payload(approvers, **overrides):
    payload = {
        "name": "Standard",
        "rule_type": "SEQUENTIAL",
        "approval_steps": [
            {"sequence": index, "approver_id": user.id}
            for index, user in enumerate(approvers, start=1)
        ],
    }
    payload.update(overrides)
    return payload


class TestIdentity:
    """Test the gateway identity header"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_header(self, client, org):
        response = client.get("/api/approvals/pending")
        assert response.status_code == 401

    def test_unknown_user(self, client, org):
        response = client.get("/api/approvals/pending", headers={"X-User-Id": "9999"})
        assert response.status_code == 401


class TestRuleEndpoints:
    """Test rule administration over HTTP"""

    def test_create_and_list(self, client, org):
        response = client.post(
            "/api/approval-rules",
            json=_rule_payload([org["approver_a"], org["approver_b"]]),
            headers=_headers(org["admin"])
        )
        assert response.status_code == 201
        body = response.json()
        assert [step["sequence"] for step in body["approval_steps"]] == [1, 2]

        response = client.get("/api/approval-rules", headers=_headers(org["employee"]))
        assert response.status_code == 200
        assert [rule["id"] for rule in response.json()] == [body["id"]]

    def test_create_as_employee_forbidden(self, client, org):
        response = client.post(
            "/api/approval-rules",
            json=_rule_payload([org["approver_a"]]),
            headers=_headers(org["employee"])
        )
        assert response.status_code == 403
        assert response.json()["error"] == "ForbiddenError"

    def test_invalid_definition(self, client, org):
        response = client.post(
            "/api/approval-rules",
            json=_rule_payload([org["approver_a"]], rule_type="PERCENTAGE"),
            headers=_headers(org["admin"])
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgumentError"

    def test_schema_validation(self, client, org):
        response = client.post(
            "/api/approval-rules",
            json=_rule_payload([org["approver_a"]], percentage_threshold=150),
            headers=_headers(org["admin"])
        )
        assert response.status_code == 422

    def test_unknown_rule(self, client, org):
        response = client.get("/api/approval-rules/9999", headers=_headers(org["admin"]))
        assert response.status_code == 404

    def test_update_and_delete(self, client, org):
        created = client.post(
            "/api/approval-rules",
            json=_rule_payload([org["approver_a"]]),
            headers=_headers(org["admin"])
        ).json()

        response = client.patch(
            f"/api/approval-rules/{created['id']}",
            json={"max_amount": 250},
            headers=_headers(org["admin"])
        )
        assert response.status_code == 200
        assert response.json()["max_amount"] == 250

        response = client.delete(f"/api/approval-rules/{created['id']}", headers=_headers(org["admin"]))
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_delete_rule_in_use(self, client, org, make_expense):
        created = client.post(
            "/api/approval-rules",
            json=_rule_payload([org["approver_a"]]),
            headers=_headers(org["admin"])
        ).json()
        expense = make_expense(40)
        client.post(f"/api/approvals/expenses/{expense.id}/submit", headers=_headers(org["employee"]))

        response = client.delete(f"/api/approval-rules/{created['id']}", headers=_headers(org["admin"]))

        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"


class TestApprovalEndpoints:
    """Test submission and decisions over HTTP"""

    def test_submit_and_approve(self, client, org, make_expense):
        expense = make_expense(40)

        response = client.post(f"/api/approvals/expenses/{expense.id}/submit", headers=_headers(org["employee"]))
        assert response.status_code == 201
        workflow = response.json()
        assert workflow["expense"]["status"] == "PENDING_APPROVAL"
        assert workflow["approval_rule"] is None
        assert workflow["approval_requests"][0]["approver_id"] == org["manager"].id

        response = client.get("/api/approvals/pending", headers=_headers(org["manager"]))
        assert response.status_code == 200
        assert [item["expense"]["id"] for item in response.json()] == [expense.id]

        response = client.post(
            f"/api/approvals/{expense.id}/approve",
            json={"comment": "OK"},
            headers=_headers(org["manager"])
        )
        assert response.status_code == 200
        assert response.json() == {"expense_id": expense.id, "status": "APPROVED"}

        response = client.get(f"/api/approvals/expenses/{expense.id}/workflow", headers=_headers(org["employee"]))
        assert response.json()["approval_requests"][0]["comment"] == "OK"

    def test_second_decision_not_found(self, client, org, make_expense):
        expense = make_expense(40)
        client.post(f"/api/approvals/expenses/{expense.id}/submit", headers=_headers(org["employee"]))
        client.post(f"/api/approvals/{expense.id}/reject", json={}, headers=_headers(org["manager"]))

        response = client.post(f"/api/approvals/{expense.id}/approve", json={}, headers=_headers(org["manager"]))

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "NotFoundError"
        assert body["expense_id"] == expense.id

    def test_workflow_other_company(self, client, org, make_expense):
        expense = make_expense(40)

        response = client.get(f"/api/approvals/expenses/{expense.id}/workflow", headers=_headers(org["outsider"]))

        assert response.status_code == 404


class TestEscalationEndpoints:
    """Test escalation over HTTP"""

    def test_run_requires_admin(self, client, org):
        response = client.post("/api/escalations/run", json={}, headers=_headers(org["manager"]))
        assert response.status_code == 403

    def test_run_sweep(self, client, db, org, make_expense):
        expense = make_expense(40)
        client.post(f"/api/approvals/expenses/{expense.id}/submit", headers=_headers(org["employee"]))
        request = db.query(ApprovalRequest).filter(ApprovalRequest.expense_id == expense.id).first()
        request.created_at = datetime.utcnow() - timedelta(hours=3)
        db.commit()

        response = client.post("/api/escalations/run", json={"timeout_hours": 1}, headers=_headers(org["admin"]))

        assert response.status_code == 200
        assert response.json() == {"escalated_count": 1}

    def test_manual_escalation(self, client, org, make_expense):
        expense = make_expense(40)
        submitted = client.post(f"/api/approvals/expenses/{expense.id}/submit", headers=_headers(org["employee"]))
        request_id = submitted.json()["approval_requests"][0]["id"]

        response = client.post(
            f"/api/escalations/{request_id}",
            json={"new_approver_id": org["approver_c"].id},
            headers=_headers(org["admin"])
        )

        assert response.status_code == 201
        assert response.json()["approver_id"] == org["approver_c"].id
        assert response.json()["step_number"] == 101
