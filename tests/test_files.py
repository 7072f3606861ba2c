import io
import os

from sat_reportbuilder.models.report import ReportFile
from sat_reportbuilder.models.sqla import db


def upload(client, headers, *files, **form):
    data = dict(form)
    data["files"] = [(io.BytesIO(content), name) for name, content in files]
    return client.post(
        "/api/files/upload",
        data=data,
        headers=headers,
        content_type="multipart/form-data",
    )


class TestUpload:
    def test_upload_to_report(self, app, client, auth, create_report):
        report = create_report()
        rv = upload(
            client,
            auth["engineer"],
            ("alarm.png", b"\x89PNG fake"),
            ("trend.csv", b"a,b\n1,2\n"),
            reportId=str(report["id"]),
            description="Alarm screenshots",
        )
        assert rv.status_code == 201
        files = rv.json["data"]["files"]
        assert [f["originalName"] for f in files] == ["alarm.png", "trend.csv"]
        assert files[0]["reportId"] == report["id"]
        assert files[0]["description"] == "Alarm screenshots"
        assert files[0]["filename"].endswith(".png")
        assert files[0]["size"] == len(b"\x89PNG fake")
        stored = os.path.join(app.config["UPLOAD_FOLDER"], files[0]["filename"])
        assert os.path.exists(stored)

        rv = client.get(f"/api/reports/{report['id']}", headers=auth["engineer"])
        assert rv.json["data"]["_count"]["files"] == 2

    def test_upload_without_report(self, client, auth):
        rv = upload(client, auth["tm"], ("notes.pdf", b"%PDF-1.4"))
        assert rv.status_code == 201
        assert rv.json["data"]["files"][0]["reportId"] is None

    def test_no_files(self, client, auth):
        rv = client.post(
            "/api/files/upload",
            data={"description": "nothing"},
            headers=auth["engineer"],
            content_type="multipart/form-data",
        )
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "No files uploaded"

    def test_extension_not_allowed(self, app, client, auth):
        rv = upload(client, auth["engineer"], ("run.exe", b"MZ"))
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "File type not allowed: run.exe"
        with app.app_context():
            assert db.session.query(ReportFile).count() == 0

    def test_submitted_report_refuses_files(self, client, auth, submitted_report):
        rv = upload(
            client,
            auth["engineer"],
            ("alarm.png", b"png"),
            reportId=str(submitted_report["id"]),
        )
        assert rv.status_code == 409

    def test_foreign_report(self, client, auth, create_report):
        report = create_report()
        rv = upload(
            client, auth["other_engineer"], ("alarm.png", b"png"), reportId=str(report["id"])
        )
        assert rv.status_code == 403

    def test_too_large(self, app, client, auth):
        app.config["MAX_CONTENT_LENGTH"] = 10
        rv = upload(client, auth["engineer"], ("big.csv", b"x" * 100))
        assert rv.status_code == 413


class TestDownloadAndDelete:
    def test_download(self, client, auth, create_report):
        report = create_report()
        rv = upload(
            client, auth["engineer"], ("trend.csv", b"a,b\n"), reportId=str(report["id"])
        )
        file_id = rv.json["data"]["files"][0]["id"]
        rv = client.get(f"/api/files/{file_id}", headers=auth["tm"])
        assert rv.status_code == 200
        assert rv.data == b"a,b\n"
        assert "trend.csv" in rv.headers["Content-Disposition"]

        rv = client.get(f"/api/files/{file_id}", headers=auth["other_engineer"])
        assert rv.status_code == 403

    def test_missing_file(self, client, auth):
        rv = client.get("/api/files/999", headers=auth["admin"])
        assert rv.status_code == 404

    def test_delete_own_file(self, app, client, auth):
        rv = upload(client, auth["engineer"], ("notes.pdf", b"%PDF"))
        stored = rv.json["data"]["files"][0]
        rv = client.delete(f"/api/files/{stored['id']}", headers=auth["engineer"])
        assert rv.status_code == 200
        path = os.path.join(app.config["UPLOAD_FOLDER"], stored["filename"])
        assert not os.path.exists(path)

    def test_delete_other_users_file(self, client, auth):
        rv = upload(client, auth["engineer"], ("notes.pdf", b"%PDF"))
        file_id = rv.json["data"]["files"][0]["id"]
        rv = client.delete(f"/api/files/{file_id}", headers=auth["tm"])
        assert rv.status_code == 403
        rv = client.delete(f"/api/files/{file_id}", headers=auth["admin"])
        assert rv.status_code == 200

    def test_report_delete_removes_files(self, app, client, auth, create_report):
        report = create_report()
        rv = upload(
            client, auth["engineer"], ("alarm.png", b"png"), reportId=str(report["id"])
        )
        stored = rv.json["data"]["files"][0]["filename"]
        client.delete(f"/api/reports/{report['id']}", headers=auth["engineer"])
        assert not os.path.exists(os.path.join(app.config["UPLOAD_FOLDER"], stored))
