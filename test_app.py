def test_root_lists_calendar_providers(api_client):
    body = api_client.get("/").json()

    assert body["message"] == "Meeting Scheduler API"
    assert body["calendar_providers"] == ["google", "outlook"]


def test_health_reports_unreachable_database(api_client):
    # Startup never ran, so there is no database connection
    response = api_client.get("/health")

    assert response.status_code == 503
    assert response.json()["database"] == "unreachable"
