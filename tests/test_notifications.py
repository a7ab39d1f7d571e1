from fastapi import status


def test_supervisor_notified_on_submit(client, auth_headers, org_chart, submitted_appraisal):
    response = client.get("/api/notifications", headers=auth_headers(org_chart.supervisor))
    assert response.status_code == status.HTTP_200_OK
    notifications = response.json()
    assert len(notifications) == 1
    assert notifications[0]["appraisal_id"] == submitted_appraisal.id
    assert notifications[0]["is_read"] is False


def test_mark_notification_read(client, auth_headers, org_chart, submitted_appraisal):
    headers = auth_headers(org_chart.supervisor)
    notification_id = client.get("/api/notifications", headers=headers).json()[0]["id"]

    response = client.patch(f"/api/notifications/{notification_id}/read", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_read"] is True
    assert client.get("/api/notifications?unread_only=true", headers=headers).json() == []


def test_cannot_read_someone_elses_notification(client, auth_headers, org_chart, submitted_appraisal):
    notification_id = client.get("/api/notifications", headers=auth_headers(org_chart.supervisor)).json()[0]["id"]
    response = client.patch(f"/api/notifications/{notification_id}/read", headers=auth_headers(org_chart.employee))
    assert response.status_code == status.HTTP_404_NOT_FOUND
