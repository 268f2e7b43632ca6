"""
API tests for the article import routes.

The import service is swapped for one backed by in-memory fakes.

Run: pytest tests/unit/test_article_import_routes.py -v
"""

import pytest


BASE = "/api/articles/import"


def upload(client, content, file_name="articles.csv", **form):
    return client.post(
        f"{BASE}/upload",
        files={"file": (file_name, content, "text/csv")},
        data=form,
    )


class TestStaticEndpoints:
    """Template, target fields and branches."""

    def test_target_fields(self, test_client):
        response = test_client.get(f"{BASE}/target-fields")

        assert response.status_code == 200
        fields = response.json()
        assert len(fields) == 10
        assert [f["name"] for f in fields if f["required"]] == ["name", "base_rate"]

    def test_csv_template(self, test_client):
        response = test_client.get(f"{BASE}/template")

        assert response.status_code == 200
        assert "article-import-template.csv" in response.headers["content-disposition"]
        assert response.text.splitlines()[0].startswith("Article Name,Description,Base Rate")

    def test_excel_template(self, test_client):
        response = test_client.get(f"{BASE}/template", params={"format": "xlsx"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )

    def test_unknown_template_format(self, test_client):
        response = test_client.get(f"{BASE}/template", params={"format": "pdf"})

        assert response.status_code == 422

    def test_branches(self, test_client):
        response = test_client.get(f"{BASE}/branches")

        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == ["branch-1", "branch-2"]


class TestUploadEndpoint:
    """POST /upload"""

    def test_upload_csv(self, test_client, sample_csv):
        response = upload(test_client, sample_csv, default_branch_id="branch-1")

        assert response.status_code == 201
        data = response.json()
        assert data["row_count"] == 3
        assert data["source_format"] == "csv"
        assert data["config"]["default_branch_id"] == "branch-1"
        assert {"source_field": "Base Rate", "target_field": "base_rate", "transform": "number"} in data["mappings"]

    def test_upload_unsupported(self, test_client):
        response = upload(test_client, b"name\nA\n", file_name="articles.pdf")

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "IMPORT_UNSUPPORTED_FORMAT"
        assert error["details"]["reason"] == "unsupported-format"

    def test_upload_empty(self, test_client):
        response = upload(test_client, b"name,rate\n")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_EMPTY_FILE"


class TestSessionEndpoints:
    """Mapping, config, validation, preview and commit."""

    @pytest.fixture
    def import_id(self, test_client, sample_csv):
        return upload(test_client, sample_csv).json()["import_id"]

    def test_unknown_session(self, test_client):
        response = test_client.get(f"{BASE}/missing/mappings")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "IMPORT_SESSION_NOT_FOUND"

    def test_get_mappings(self, test_client, import_id):
        response = test_client.get(f"{BASE}/{import_id}/mappings")

        assert response.status_code == 200
        assert response.json()["can_validate"] is True
        assert response.json()["unmapped_required"] == []
        assert response.json()["duplicate_targets"] == {}

    def test_update_mapping(self, test_client, import_id):
        response = test_client.put(
            f"{BASE}/{import_id}/mappings",
            json={"source_field": "Unit", "target_field": "notes", "transform": "uppercase"},
        )

        assert response.status_code == 200
        mapping = next(m for m in response.json()["mappings"] if m["source_field"] == "Unit")
        assert mapping == {"source_field": "Unit", "target_field": "notes", "transform": "uppercase"}

    def test_update_mapping_invalid_target(self, test_client, import_id):
        response = test_client.put(
            f"{BASE}/{import_id}/mappings",
            json={"source_field": "Unit", "target_field": "colour"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_INVALID_TARGET_FIELD"

    def test_remove_mapping(self, test_client, import_id):
        response = test_client.delete(f"{BASE}/{import_id}/mappings/Article Name")

        assert response.status_code == 200
        assert response.json()["unmapped_required"] == ["name"]

    def test_update_config(self, test_client, import_id):
        response = test_client.put(f"{BASE}/{import_id}/config", json={"default_branch_id": "branch-2"})

        assert response.status_code == 200
        assert response.json()["default_branch_id"] == "branch-2"

    def test_update_config_clears_default(self, test_client, import_id):
        test_client.put(f"{BASE}/{import_id}/config", json={"default_tax_rate": 18})

        response = test_client.put(f"{BASE}/{import_id}/config", json={"default_tax_rate": None})

        assert response.status_code == 200
        assert response.json()["default_tax_rate"] is None

    def test_update_config_unknown_branch(self, test_client, import_id):
        response = test_client.put(f"{BASE}/{import_id}/config", json={"default_branch_id": "nope"})

        assert response.status_code == 404

    def test_validate(self, test_client, import_id):
        response = test_client.post(f"{BASE}/{import_id}/validate")

        assert response.status_code == 200
        data = response.json()
        assert data["statistics"] == {"total": 3, "valid": 2, "invalid": 1, "duplicates": 1, "warnings": 2}
        assert data["can_proceed"] is True

    def test_preview(self, test_client, import_id):
        test_client.post(f"{BASE}/{import_id}/validate")

        response = test_client.get(f"{BASE}/{import_id}/preview", params={"search": "silk"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["rows"][0]["values"]["Article Name"] == "Silk Saree Bundle"
        assert data["candidate_counts"] == {"all": 3, "exclude_errors": 2}

    def test_commit_without_branch(self, test_client, import_id):
        response = test_client.post(f"{BASE}/{import_id}/commit", json={"mode": "all"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_CONFIGURATION_ERROR"

    def test_commit(self, test_client, import_id, record_store):
        test_client.put(f"{BASE}/{import_id}/config", json={"default_branch_id": "branch-1"})

        response = test_client.post(f"{BASE}/{import_id}/commit", json={"mode": "exclude_errors"})

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "complete"
        assert data["title"] == "Import Complete"
        assert data["result"]["success_count"] == 1
        assert data["result"]["skipped_row_indices"] == [1]
        assert len(record_store.created) == 1

    def test_commit_invalid_selection(self, test_client, import_id):
        test_client.put(f"{BASE}/{import_id}/config", json={"default_branch_id": "branch-1"})

        response = test_client.post(
            f"{BASE}/{import_id}/commit",
            json={"mode": "selected", "selected_rows": [0, 9]},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "IMPORT_INVALID_ROW_SELECTION"

    def test_discard(self, test_client, import_id):
        response = test_client.delete(f"{BASE}/{import_id}")

        assert response.status_code == 204
        assert test_client.get(f"{BASE}/{import_id}/mappings").status_code == 404
