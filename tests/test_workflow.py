from sat_reportbuilder.models.audit import AuditLog
from sat_reportbuilder.models.report import Report
from sat_reportbuilder.models.sqla import db

STORAGE_LOCATION = "/storage/completed/project-a"


def approve(client, headers, report_id, **payload):
    return client.post(f"/api/reports/{report_id}/approve", json=payload, headers=headers)


class TestSubmit:
    def test_submit(self, client, auth, create_report):
        report = create_report()
        rv = client.post(f"/api/reports/{report['id']}/submit", headers=auth["engineer"])
        assert rv.status_code == 200
        data = rv.json["data"]
        assert data["status"] == "PENDING_TM_APPROVAL"
        assert data["submittedAt"] is not None
        assert data["availableActions"] == []
        assert data["stateHistory"][0]["from"] == "DRAFT"
        assert data["stateHistory"][0]["to"] == "PENDING_TM_APPROVAL"
        assert data["stateHistory"][0]["action"] == "submit"

    def test_submit_needs_technical_manager(self, client, auth, create_report):
        report = create_report(tmId=None)
        rv = client.post(f"/api/reports/{report['id']}/submit", headers=auth["engineer"])
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Report is not ready for submission"
        assert rv.json["error"]["errors"] == ["Technical Manager must be assigned"]

    def test_only_creator_submits(self, client, auth, create_report):
        report = create_report()
        rv = client.post(f"/api/reports/{report['id']}/submit", headers=auth["admin"])
        assert rv.status_code == 403

    def test_submit_twice(self, client, auth, submitted_report):
        rv = client.post(
            f"/api/reports/{submitted_report['id']}/submit", headers=auth["engineer"]
        )
        assert rv.status_code == 409
        assert rv.json["error"]["message"] == (
            "Cannot submit a report in status PENDING_TM_APPROVAL"
        )


class TestApprove:
    def test_full_approval(self, app, client, auth, submitted_report):
        report_id = submitted_report["id"]
        rv = client.get(f"/api/reports/{report_id}", headers=auth["tm"])
        assert rv.json["data"]["availableActions"] == ["approve", "reject"]

        rv = approve(client, auth["tm"], report_id, signatureData="data:image/png;base64,AA")
        assert rv.status_code == 200
        assert rv.json["data"]["status"] == "PENDING_PM_APPROVAL"
        assert rv.json["data"]["signatures"][0]["role"] == "TECHNICAL_MANAGER"

        rv = approve(
            client,
            auth["pm"],
            report_id,
            comment="Looks good",
            storageLocation=STORAGE_LOCATION,
        )
        assert rv.status_code == 200
        data = rv.json["data"]
        assert data["status"] == "COMPLETED"
        assert data["storageLocation"] == STORAGE_LOCATION
        assert data["completedAt"] is not None
        assert [s["role"] for s in data["signatures"]] == [
            "TECHNICAL_MANAGER",
            "PROJECT_MANAGER",
        ]
        assert data["comments"][0]["content"] == "Looks good"
        assert data["availableActions"] == []

        rv = client.get(f"/api/reports/{report_id}/history", headers=auth["engineer"])
        assert [entry["to"] for entry in rv.json["data"]] == [
            "PENDING_TM_APPROVAL",
            "PENDING_PM_APPROVAL",
            "COMPLETED",
        ]
        rv = client.get(f"/api/reports/{report_id}/signatures", headers=auth["engineer"])
        assert len(rv.json["data"]) == 2
        assert rv.json["data"][0]["signatureData"] == "data:image/png;base64,AA"

        with app.app_context():
            actions = [
                entry.action
                for entry in db.session.query(AuditLog).filter_by(report_id=report_id)
            ]
            assert actions.count("report_approve") == 2
            assert actions.count("signature_create") == 2

    def test_pm_cannot_approve_before_tm(self, client, auth, submitted_report):
        rv = approve(client, auth["pm"], submitted_report["id"])
        assert rv.status_code == 403
        assert rv.json["error"]["message"] == (
            "Only the assigned Technical Manager can approve this report"
        )

    def test_unassigned_manager_cannot_approve(
        self, app, client, appbuilder, token, submitted_report
    ):
        with app.app_context():
            other = appbuilder.sm.add_user(
                email="tm2@test.com",
                full_name="Other TM",
                role="TECHNICAL_MANAGER",
                password="Password123!",
            )
            headers = token(other.id)
        rv = approve(client, headers, submitted_report["id"])
        assert rv.status_code == 403

    def test_engineer_cannot_approve(self, client, auth, submitted_report):
        rv = approve(client, auth["engineer"], submitted_report["id"])
        assert rv.status_code == 403
        assert rv.json["error"]["message"] == "Insufficient permissions"

    def test_approve_draft(self, client, auth, create_report):
        report = create_report()
        rv = approve(client, auth["tm"], report["id"])
        assert rv.status_code == 409

    def test_tm_approval_needs_project_manager(self, client, auth, create_report):
        report = create_report(pmId=None)
        client.post(f"/api/reports/{report['id']}/submit", headers=auth["engineer"])
        rv = approve(client, auth["tm"], report["id"])
        assert rv.status_code == 400
        assert "Project Manager must be assigned" in rv.json["error"]["message"]

    def test_invalid_storage_location(self, client, auth, submitted_report):
        approve(client, auth["tm"], submitted_report["id"])
        rv = approve(client, auth["pm"], submitted_report["id"], storageLocation="/tmp")
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Invalid storage location"
        rv = client.get(f"/api/reports/{submitted_report['id']}", headers=auth["pm"])
        assert rv.json["data"]["status"] == "PENDING_PM_APPROVAL"
        assert len(rv.json["data"]["signatures"]) == 1


class TestRejectAndRevise:
    def test_reject_then_revise(self, app, client, auth, submitted_report):
        report_id = submitted_report["id"]
        rv = client.post(
            f"/api/reports/{report_id}/reject",
            json={"comment": "Missing alarm screenshots"},
            headers=auth["tm"],
        )
        assert rv.status_code == 200
        data = rv.json["data"]
        assert data["status"] == "REJECTED"
        assert data["comments"][0]["content"] == "Missing alarm screenshots"
        assert data["stateHistory"][-1]["comment"] == "Missing alarm screenshots"

        rv = client.get(f"/api/reports/{report_id}", headers=auth["engineer"])
        assert rv.json["data"]["availableActions"] == ["revise"]

        rv = client.post(f"/api/reports/{report_id}/revise", headers=auth["engineer"])
        assert rv.status_code == 200
        assert rv.json["data"]["status"] == "DRAFT"
        assert rv.json["data"]["availableActions"] == ["submit"]

        rv = client.put(
            f"/api/reports/{report_id}", json={"title": "Fixed"}, headers=auth["engineer"]
        )
        assert rv.status_code == 200

    def test_reject_requires_comment(self, client, auth, submitted_report):
        rv = client.post(
            f"/api/reports/{submitted_report['id']}/reject",
            json={"comment": "  "},
            headers=auth["tm"],
        )
        assert rv.status_code == 400
        assert rv.json["error"]["errors"]["comment"] == ["A rejection comment is required"]

    def test_pm_rejects(self, client, auth, submitted_report):
        approve(client, auth["tm"], submitted_report["id"])
        rv = client.post(
            f"/api/reports/{submitted_report['id']}/reject",
            json={"comment": "Wrong revision"},
            headers=auth["pm"],
        )
        assert rv.status_code == 200
        assert rv.json["data"]["status"] == "REJECTED"

    def test_revise_draft(self, client, auth, create_report):
        report = create_report()
        rv = client.post(f"/api/reports/{report['id']}/revise", headers=auth["engineer"])
        assert rv.status_code == 409

    def test_completed_report_is_final(self, app, client, auth, submitted_report):
        report_id = submitted_report["id"]
        approve(client, auth["tm"], report_id)
        approve(client, auth["pm"], report_id)
        rv = client.post(
            f"/api/reports/{report_id}/reject", json={"comment": "late"}, headers=auth["pm"]
        )
        assert rv.status_code == 409
        with app.app_context():
            report = db.session.get(Report, report_id)
            assert report.get_available_actions() == []


class TestChangeState:
    def test_change_state_follows_transitions(self, app, create_report):
        report_id = create_report()["id"]
        with app.app_context():
            report = db.session.get(Report, report_id)
            assert not report.change_state("COMPLETED", "approve")
            assert report.status == "DRAFT"
            assert report.get_state_history() == []

            assert report.change_state("PENDING_TM_APPROVAL", "submit", user_id=1)
            assert report.status == "PENDING_TM_APPROVAL"
            assert report.get_state_history()[0]["action"] == "submit"
            db.session.rollback()
