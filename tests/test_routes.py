from __future__ import annotations

import base64
import io
import time
from datetime import date

from docx import Document
from fastapi.testclient import TestClient
from PIL import Image

from tests.conftest import FakeOpenAI, make_image

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _upload(client: TestClient, image_id: str, comment: str = "", annotations=None) -> None:
    assert client.post(f"/api/images/{image_id}", content=make_image(120, 90)).status_code == 200
    response = client.post(
        f"/api/images/{image_id}",
        json={"comment": comment, "annotations": annotations or [], "name": f"{image_id}.jpg"},
    )
    assert response.status_code == 200


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.json() == {"ok": True, "db_initialized": True, "openai_available": True}


def test_upload_fetch_and_cache_header(client: TestClient) -> None:
    data = make_image(64, 48)

    response = client.put("/api/images/site-1", content=data, headers={"content-type": "application/octet-stream"})
    assert response.json() == {"success": True, "id": "site-1"}

    fetched = client.get("/api/images/site-1")
    assert fetched.status_code == 200
    assert fetched.content == data
    assert fetched.headers["cache-control"] == "public, max-age=31536000"
    assert fetched.headers["content-type"] == "image/png"


def test_fetch_missing_image_is_404(client: TestClient) -> None:
    assert client.get("/api/images/nope").status_code == 404


def test_metadata_is_stored_by_content_type(client: TestClient) -> None:
    _upload(client, "m1", comment="Efflorescence on brickwork.", annotations=[{"id": "a", "coords": [1, 2, 3, 4]}])

    payload = client.get("/api/images/m1/metadata").json()

    assert payload["metadata"]["comment"] == "Efflorescence on brickwork."
    assert payload["metadata"]["annotations"] == [{"id": "a", "coords": [1.0, 2.0, 3.0, 4.0]}]
    assert payload["metadata"]["name"] == "m1.jpg"


def test_metadata_without_image_is_404_after_retries(client: TestClient) -> None:
    response = client.post("/api/images/orphan", json={"comment": "x", "annotations": []})
    assert response.status_code == 404


def test_invalid_id_is_400(client: TestClient) -> None:
    assert client.post("/api/images/bad.id", content=b"abc").status_code == 400


def test_delete_removes_all_assets(client: TestClient) -> None:
    _upload(client, "d1")
    assert client.post("/api/images/d1/annotated", json={"annotations": [{"id": "1", "coords": [5, 5, 40, 40]}]}).status_code == 200

    response = client.delete("/api/images/d1")

    assert response.json()["removed"] == {"image": True, "annotated": True, "metadata": True}
    assert client.get("/api/images/d1").status_code == 404
    assert client.get("/api/images/d1_annotated").status_code == 404
    assert client.get("/api/images/d1/metadata").status_code == 404


def test_annotate_stores_overlay_with_same_dimensions(client: TestClient) -> None:
    _upload(client, "a1")

    response = client.post("/api/images/a1/annotated", json={"annotations": [{"id": "1", "coords": [10, 10, 50, 50]}]})

    assert response.json() == {"success": True, "annotatedId": "a1_annotated"}
    annotated = client.get("/api/images/a1_annotated")
    with Image.open(io.BytesIO(annotated.content)) as img:
        assert img.size == (120, 90)
        assert img.convert("RGB").getpixel((10, 30)) == (255, 255, 0)


def test_annotate_missing_image_is_404(client: TestClient) -> None:
    response = client.post("/api/images/ghost/annotated", json={"annotations": []})
    assert response.status_code == 404


def test_cleanup_reports_counts(client: TestClient) -> None:
    _upload(client, "c1")
    _upload(client, "c2")

    response = client.delete("/api/images/cleanup")

    body = response.json()
    assert body["success"] is True
    assert (body["deleted"], body["errors"]) == (2, 0)
    assert client.get("/api/images/c1").status_code == 404


def test_report_rejects_empty_and_oversized_requests(client: TestClient) -> None:
    assert client.post("/api/reports/normal", json={"imageIds": []}).status_code == 400
    assert client.post("/api/reports/normal", json={}).status_code == 400
    too_many = [f"id{i}" for i in range(1001)]
    response = client.post("/api/reports/modified", json={"imageIds": too_many})
    assert response.status_code == 400
    assert "1000" in response.json()["detail"]


def test_normal_report_download(client: TestClient) -> None:
    _upload(client, "r1", comment="Diagonal shear crack.")
    _upload(client, "r2")

    response = client.post("/api/reports/normal", json={"imageIds": ["r2", "r1"]})

    assert response.status_code == 200
    assert response.headers["content-type"] == DOCX_TYPE
    today = date.today().isoformat()
    assert response.headers["content-disposition"] == f'attachment; filename="inspection-report-{today}.docx"'
    assert response.headers["cache-control"] == "no-store"
    texts = [p.text for p in Document(io.BytesIO(response.content)).paragraphs if p.text]
    assert texts == ["Image 01", "Comment: No assessment available", "Image 02", "Comment: Diagonal shear crack."]


def test_modified_report_accepts_legacy_records(client: TestClient) -> None:
    _upload(client, "L1", comment="Rust staining.")

    response = client.post(
        "/api/reports/modified",
        json={"images": [{"id": "L1", "name": "L1.jpg", "comment": "ignored", "annotations": []}]},
    )

    assert response.status_code == 200
    today = date.today().isoformat()
    assert f"inspection-report-annotated-{today}.docx" in response.headers["content-disposition"]


def test_analyze_single_image_from_base64(client: TestClient) -> None:
    encoded = base64.b64encode(make_image()).decode()

    response = client.post("/api/analyze", data={"imageBase64": encoded})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "comment": "Hairline crack visible on the beam soffit.",
        "tokens": {"input": 1000, "output": 1000},
        "costUsd": 0.02,
    }
    logs = client.get("/api/logs").json()["logs"]
    assert [entry["type"] for entry in logs] == ["info", "cost"]
    assert logs[1]["message"] == "0.020000"


def test_analyze_requires_an_image(client: TestClient) -> None:
    assert client.post("/api/analyze", data={}).status_code == 400


def test_analyze_failure_is_structured(client: TestClient, fake_openai: FakeOpenAI) -> None:
    fake_openai.completions.error = RuntimeError("upstream unavailable")

    response = client.post("/api/analyze", files={"image": ("a.png", make_image(), "image/png")})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "upstream unavailable"}


def _wait_for_job(client: TestClient, job_id: str) -> dict:
    for _ in range(100):
        state = client.get(f"/api/analysis/jobs/{job_id}").json()
        if state["status"] not in ("running", "stopping"):
            return state
        time.sleep(0.02)
    raise AssertionError("analysis job did not finish")


def test_analysis_job_updates_comments_and_logs(client: TestClient) -> None:
    _upload(client, "j1")
    _upload(client, "j2")

    started = client.post("/api/analysis/jobs", json={"imageIds": ["j1", "missing", "j2"], "rateSeconds": 0})
    assert started.status_code == 200

    state = _wait_for_job(client, started.json()["job_id"])

    assert state["status"] == "completed"
    assert state["processed"] == 3
    assert state["results"]["j1"]["success"] is True
    assert state["results"]["missing"]["success"] is False
    assert state["cost_usd"] == 0.04
    comment = client.get("/api/images/j2/metadata").json()["metadata"]["comment"]
    assert comment == "Hairline crack visible on the beam soffit."
    log_types = [entry["type"] for entry in client.get("/api/logs").json()["logs"]]
    assert log_types.count("cost") == 2
    assert "error" in log_types


def test_unknown_job_is_404(client: TestClient) -> None:
    assert client.get("/api/analysis/jobs/unknown").status_code == 404
    assert client.post("/api/analysis/jobs/unknown/stop").status_code == 404


def test_clear_logs(client: TestClient) -> None:
    client.post("/api/analyze", data={"imageBase64": base64.b64encode(make_image()).decode()})

    assert client.delete("/api/logs").json() == {"success": True}
    assert client.get("/api/logs").json() == {"logs": []}


def test_longest_image_id_supports_annotated_variant(client: TestClient) -> None:
    image_id = "a" * 120
    _upload(client, image_id)

    response = client.post(f"/api/images/{image_id}/annotated", json={"annotations": [{"id": "1", "coords": [5, 5, 30, 30]}]})

    assert response.json() == {"success": True, "annotatedId": f"{image_id}_annotated"}
    assert client.get(f"/api/images/{image_id}_annotated").status_code == 200
    assert client.delete(f"/api/images/{image_id}").json()["removed"]["annotated"] is True


def test_cleanup_is_a_reserved_image_id(client: TestClient) -> None:
    response = client.post("/api/images/cleanup", content=make_image())

    assert response.status_code == 400
    assert client.delete("/api/images/cleanup").json()["deleted"] == 0


def test_legacy_report_record_without_id_is_rejected(client: TestClient) -> None:
    _upload(client, "L2")

    response = client.post(
        "/api/reports/normal",
        json={"images": [{"id": "L2", "name": "L2.jpg"}, {"name": "no-id.jpg", "comment": "lost"}]},
    )

    assert response.status_code == 400
    assert "missing its id" in response.json()["detail"]


def test_second_job_conflicts_and_stop_ends_first(client: TestClient, fake_openai: FakeOpenAI) -> None:
    _upload(client, "k1")
    _upload(client, "k2")
    _upload(client, "k3")
    fake_openai.completions.delay = 0.5

    started = client.post("/api/analysis/jobs", json={"imageIds": ["k1", "k2", "k3"], "rateSeconds": 0})
    job_id = started.json()["job_id"]

    assert client.post("/api/analysis/jobs", json={"imageIds": ["k1"]}).status_code == 409
    assert client.post(f"/api/analysis/jobs/{job_id}/stop").json()["status"] == "stopping"

    state = _wait_for_job(client, job_id)
    assert state["status"] == "stopped"
    assert state["processed"] == 1
