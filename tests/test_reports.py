from sat_reportbuilder.models.audit import AuditLog
from sat_reportbuilder.models.report import Report
from sat_reportbuilder.models.sqla import db

from .conftest import DOCUMENT_INFO


class TestReportCreate:
    def test_create_report(self, client, auth, users):
        rv = client.post(
            "/api/reports/",
            json={
                "title": "  Pump Station SAT ",
                "projectRef": "PRJ-1",
                "documentRef": "SAT-100",
                "revision": "A",
                "tmId": users["tm"],
            },
            headers=auth["engineer"],
        )
        assert rv.status_code == 201
        data = rv.json["data"]
        assert data["title"] == "Pump Station SAT"
        assert data["status"] == "DRAFT"
        assert data["type"] == "SAT"
        assert data["creatorId"] == users["engineer"]
        assert data["technicalManager"]["fullName"] == "Technical Manager"
        assert data["projectManager"] is None
        assert data["steps"] == []
        assert data["availableActions"] == ["submit"]

    def test_only_engineers_create_reports(self, client, auth):
        rv = client.post(
            "/api/reports/",
            json={"title": "x", "projectRef": "p", "documentRef": "d", "revision": "1"},
            headers=auth["tm"],
        )
        assert rv.status_code == 403

    def test_missing_fields(self, client, auth):
        rv = client.post("/api/reports/", json={"title": ""}, headers=auth["engineer"])
        assert rv.status_code == 400
        errors = rv.json["error"]["errors"]
        assert errors["title"] == ["Title is required"]
        assert "documentRef" in errors
        assert "revision" in errors

    def test_duplicate_document_revision(self, client, auth, create_report):
        create_report()
        rv = client.post(
            "/api/reports/",
            json={
                "title": "Other",
                "projectRef": "PRJ-2",
                "documentRef": DOCUMENT_INFO["documentRef"],
                "revision": DOCUMENT_INFO["revision"],
            },
            headers=auth["engineer"],
        )
        assert rv.status_code == 400
        assert "already exists" in rv.json["error"]["message"]

    def test_new_revision_is_allowed(self, create_report):
        create_report()
        report = create_report(revision="2.0")
        assert report["revision"] == "2.0"

    def test_invalid_approver(self, client, auth, users):
        rv = client.post(
            "/api/reports/",
            json={
                "title": "x",
                "projectRef": "p",
                "documentRef": "d",
                "revision": "1",
                "tmId": users["pm"],
            },
            headers=auth["engineer"],
        )
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Invalid Technical Manager selected"

    def test_create_is_audited(self, app, create_report, users):
        report = create_report()
        with app.app_context():
            entry = db.session.query(AuditLog).filter_by(action="report_create").one()
            assert entry.report_id == report["id"]
            assert entry.user_id == users["engineer"]
            assert entry.details["body"]["documentRef"] == "SAT-001"


class TestReportList:
    def test_engineer_sees_own_reports(self, client, auth, create_report):
        create_report()
        rv = client.get("/api/reports/", headers=auth["other_engineer"])
        assert rv.json["data"] == []
        rv = client.get("/api/reports/", headers=auth["engineer"])
        assert len(rv.json["data"]) == 1
        assert rv.json["data"][0]["_count"] == {"comments": 0, "files": 0}

    def test_managers_see_assigned_reports(self, client, auth, create_report):
        create_report()
        create_report(revision="2.0", tmId=None, pmId=None)
        assert len(client.get("/api/reports/", headers=auth["tm"]).json["data"]) == 1
        assert len(client.get("/api/reports/", headers=auth["pm"]).json["data"]) == 1
        assert len(client.get("/api/reports/", headers=auth["admin"]).json["data"]) == 2

    def test_filter_and_search(self, client, auth, create_report):
        create_report()
        create_report(title="Water Treatment", documentRef="SAT-002")
        rv = client.get("/api/reports/?search=water", headers=auth["engineer"])
        assert [r["documentRef"] for r in rv.json["data"]] == ["SAT-002"]
        rv = client.get("/api/reports/?status=COMPLETED", headers=auth["engineer"])
        assert rv.json["data"] == []

    def test_invalid_status_filter(self, client, auth):
        rv = client.get("/api/reports/?status=FINAL", headers=auth["engineer"])
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Invalid query parameters"


class TestReportDetail:
    def test_get_report(self, client, auth, create_report):
        report = create_report()
        rv = client.get(f"/api/reports/{report['id']}", headers=auth["tm"])
        assert rv.status_code == 200
        assert rv.json["data"]["documentRef"] == "SAT-001"
        assert rv.json["data"]["availableActions"] == []

    def test_not_found(self, client, auth):
        rv = client.get("/api/reports/999", headers=auth["admin"])
        assert rv.status_code == 404
        assert rv.json["error"]["message"] == "Report not found"

    def test_access_denied(self, client, auth, create_report):
        report = create_report()
        rv = client.get(f"/api/reports/{report['id']}", headers=auth["other_engineer"])
        assert rv.status_code == 403
        assert rv.json["error"]["message"] == "Access denied"


class TestReportUpdate:
    def test_update_header(self, client, auth, create_report):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}",
            json={"title": "Renamed", "pmId": None},
            headers=auth["engineer"],
        )
        assert rv.status_code == 200
        assert rv.json["data"]["title"] == "Renamed"
        assert rv.json["data"]["pmId"] is None
        assert rv.json["data"]["documentRef"] == "SAT-001"

    def test_only_creator_updates(self, client, auth, create_report):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}", json={"title": "x"}, headers=auth["admin"]
        )
        assert rv.status_code == 403

    def test_submitted_report_is_read_only(self, client, auth, submitted_report):
        rv = client.put(
            f"/api/reports/{submitted_report['id']}",
            json={"title": "x"},
            headers=auth["engineer"],
        )
        assert rv.status_code == 409
        assert rv.json["error"]["message"] == "Only draft reports can be edited"

    def test_revision_clash(self, client, auth, create_report):
        create_report()
        report = create_report(revision="2.0")
        rv = client.put(
            f"/api/reports/{report['id']}", json={"revision": "1.0"}, headers=auth["engineer"]
        )
        assert rv.status_code == 400


class TestReportDelete:
    def test_creator_deletes_draft(self, app, client, auth, create_report):
        report = create_report()
        rv = client.delete(f"/api/reports/{report['id']}", headers=auth["engineer"])
        assert rv.status_code == 200
        with app.app_context():
            assert db.session.get(Report, report["id"]) is None

    def test_admin_deletes_submitted(self, client, auth, submitted_report):
        rv = client.delete(f"/api/reports/{submitted_report['id']}", headers=auth["admin"])
        assert rv.status_code == 200

    def test_creator_cannot_delete_submitted(self, client, auth, submitted_report):
        rv = client.delete(
            f"/api/reports/{submitted_report['id']}", headers=auth["engineer"]
        )
        assert rv.status_code == 409


class TestSteps:
    def test_save_and_get_step(self, client, auth, create_report):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}/steps",
            json={
                "stepName": "introduction_scope",
                "data": {
                    "introduction": '<p onclick="steal()">Intro</p><iframe src="x"></iframe>',
                    "scope": "<p>Scope</p>",
                },
            },
            headers=auth["engineer"],
        )
        assert rv.status_code == 200
        assert rv.json["data"]["data"] == {
            "introduction": "<p>Intro</p>",
            "scope": "<p>Scope</p>",
            "relatedDocuments": [],
        }
        rv = client.get(
            f"/api/reports/{report['id']}/steps/introduction_scope", headers=auth["tm"]
        )
        assert rv.status_code == 200
        assert rv.json["data"]["stepName"] == "introduction_scope"

    def test_rich_text_is_sanitized(self, client, auth, create_report):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}/steps",
            json={
                "stepName": "introduction_scope",
                "data": {
                    "introduction": (
                        "<p>Intro</p><svg/onload=alert(1)><img/src=x/onerror=alert(2)>"
                    ),
                    "scope": '<a href="jav&#x61;script:alert(3)">x</a>',
                },
            },
            headers=auth["engineer"],
        )
        assert rv.status_code == 200
        data = rv.json["data"]["data"]
        assert data["introduction"].startswith("<p>Intro</p>")
        assert "onload" not in data["introduction"]
        assert "onerror" not in data["introduction"]
        assert data["scope"] == "<a>x</a>"

    def test_save_overwrites_step(self, app, client, auth, create_report):
        report = create_report()
        for scope in ("first", "second"):
            client.put(
                f"/api/reports/{report['id']}/steps",
                json={
                    "stepName": "introduction_scope",
                    "data": {"introduction": "intro", "scope": scope},
                },
                headers=auth["engineer"],
            )
        with app.app_context():
            steps = db.session.get(Report, report["id"]).steps
            assert len(steps) == 1
            assert steps[0].data["scope"] == "second"

    def test_invalid_step_data(self, client, auth, create_report):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}/steps",
            json={"stepName": "introduction_scope", "data": {"introduction": ""}},
            headers=auth["engineer"],
        )
        assert rv.status_code == 422
        assert rv.json["error"]["message"] == "Step data is invalid"
        assert rv.json["error"]["errors"]["introduction"] == ["Introduction is required"]

    def test_document_info_lengths_match_report_columns(
        self, app, client, auth, create_report
    ):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}/steps",
            json={
                "stepName": "document_info",
                "data": dict(DOCUMENT_INFO, title="T" * 257, revision="R" * 33),
            },
            headers=auth["engineer"],
        )
        assert rv.status_code == 422
        assert set(rv.json["error"]["errors"]) == {"title", "revision"}
        with app.app_context():
            assert db.session.get(Report, report["id"]).steps == []

    def test_unknown_step(self, client, auth, create_report):
        report = create_report()
        rv = client.put(
            f"/api/reports/{report['id']}/steps",
            json={"stepName": "review_submit", "data": {}},
            headers=auth["engineer"],
        )
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Unknown step: review_submit"

    def test_missing_step(self, client, auth, create_report):
        report = create_report()
        rv = client.get(
            f"/api/reports/{report['id']}/steps/asset_register", headers=auth["engineer"]
        )
        assert rv.status_code == 404
        assert rv.json["error"]["message"] == "Step not found"

    def test_document_info_updates_header(self, client, auth, create_report):
        report = create_report()
        data = dict(DOCUMENT_INFO, title="Synced Title", revision="1.1")
        rv = client.put(
            f"/api/reports/{report['id']}/steps",
            json={"stepName": "document_info", "data": data},
            headers=auth["engineer"],
        )
        assert rv.status_code == 200
        rv = client.get(f"/api/reports/{report['id']}", headers=auth["engineer"])
        assert rv.json["data"]["title"] == "Synced Title"
        assert rv.json["data"]["revision"] == "1.1"

    def test_steps_of_submitted_report_are_read_only(
        self, client, auth, submitted_report
    ):
        rv = client.put(
            f"/api/reports/{submitted_report['id']}/steps",
            json={"stepName": "introduction_scope", "data": {}},
            headers=auth["engineer"],
        )
        assert rv.status_code == 409


class TestSignalGeneration:
    def test_generate_from_pre_configuration(self, client, auth, create_report):
        report = create_report()
        client.put(
            f"/api/reports/{report['id']}/steps",
            json={
                "stepName": "pre_configuration",
                "data": {
                    "digitalModules": [
                        {"rackNo": "1", "modulePosition": "3", "channelCount": 4}
                    ],
                    "analogModules": [
                        {"rackNo": "1", "modulePosition": "4", "defaultRange": "0-10V"}
                    ],
                    "modbusConfig": {
                        "digitalCoils": {"startAddress": 100, "registerCount": 2}
                    },
                },
            },
            headers=auth["engineer"],
        )
        rv = client.post(
            f"/api/reports/{report['id']}/steps/signal_tests/generate",
            headers=auth["engineer"],
        )
        assert rv.status_code == 200
        data = rv.json["data"]["data"]
        assert len(data["digitalSignals"]) == 4
        assert data["digitalSignals"][0]["signalTag"] == "DI_1_3_01"
        assert len(data["analogSignals"]) == 8
        assert data["analogSignals"][0]["ioRange"] == "0-10V"
        assert [row["address"] for row in data["modbusDigital"]] == ["100", "101"]
        assert data["modbusAnalog"] == []

    def test_generate_without_pre_configuration(self, client, auth, create_report):
        report = create_report()
        rv = client.post(
            f"/api/reports/{report['id']}/steps/signal_tests/generate",
            headers=auth["engineer"],
        )
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Save the Module & Modbus Setup step first"


class TestReview:
    def test_review(self, client, auth, create_report):
        report = create_report()
        client.put(
            f"/api/reports/{report['id']}/steps",
            json={"stepName": "document_info", "data": DOCUMENT_INFO},
            headers=auth["engineer"],
        )
        rv = client.get(f"/api/reports/{report['id']}/review", headers=auth["engineer"])
        assert rv.status_code == 200
        data = rv.json["data"]
        assert [step["stepName"] for step in data["steps"]] == [
            "document_info",
            "introduction_scope",
            "pre_test_requirements",
            "asset_register",
            "signal_tests",
            "process_scada_alarms",
            "test_equipment_punch",
        ]
        assert data["canSubmit"] is True
        assert data["submissionIssues"] == []
        assert data["availableActions"] == ["submit"]


class TestComments:
    def test_post_comment(self, client, auth, create_report):
        report = create_report()
        rv = client.post(
            f"/api/reports/{report['id']}/comments",
            json={"content": "  Please check the alarms "},
            headers=auth["tm"],
        )
        assert rv.status_code == 201
        assert rv.json["data"]["content"] == "Please check the alarms"
        assert rv.json["data"]["user"]["role"] == "TECHNICAL_MANAGER"
        rv = client.get(f"/api/reports/{report['id']}", headers=auth["engineer"])
        assert len(rv.json["data"]["comments"]) == 1

    def test_empty_comment(self, client, auth, create_report):
        report = create_report()
        rv = client.post(
            f"/api/reports/{report['id']}/comments",
            json={"content": "   "},
            headers=auth["tm"],
        )
        assert rv.status_code == 400


class TestExportEndpoint:
    def test_export_xlsx(self, client, auth, create_report):
        report = create_report()
        rv = client.get(f"/api/reports/{report['id']}/export", headers=auth["engineer"])
        assert rv.status_code == 200
        assert rv.mimetype == (
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "SAT-001_Rev1.0.xlsx" in rv.headers["Content-Disposition"]
        assert rv.data[:2] == b"PK"

    def test_export_json(self, client, auth, create_report):
        report = create_report()
        rv = client.get(
            f"/api/reports/{report['id']}/export?format=json", headers=auth["engineer"]
        )
        assert rv.status_code == 200
        assert rv.mimetype == "application/json"
        assert rv.json["documentRef"] == "SAT-001"

    def test_export_unknown_format(self, client, auth, create_report):
        report = create_report()
        rv = client.get(
            f"/api/reports/{report['id']}/export?format=pdf", headers=auth["engineer"]
        )
        assert rv.status_code == 400
