from portal.api.applications import application_edits
from portal.services.schedule import WEEKDAYS


def test_create_application_initializes_default_schedule(application):
    services = application["services"]
    assert services["open247"] is False
    assert services["schedule"]["sameTimeSelectedDays"] is False
    assert list(services["schedule"]["days"]) == list(WEEKDAYS)


def test_create_application_rejects_duplicate_email(client, application):
    response = client.post(
        "/api/v1/applications",
        json={
            "companyName": "Other",
            "ownerFirstName": "A",
            "ownerLastName": "B",
            "email": application["email"],
        },
    )
    assert response.status_code == 400


def test_list_and_get_application(client, application):
    listed = client.get("/api/v1/applications").json()
    assert [item["id"] for item in listed] == [application["id"]]
    fetched = client.get(f"/api/v1/applications/{application['id']}").json()
    assert fetched["companyName"] == "Roadside Towing Co"


def test_get_missing_application_returns_404(client):
    assert client.get("/api/v1/applications/missing").status_code == 404


def test_update_application_propagates_selected_days(client, application):
    response = client.put(
        f"/api/v1/applications/{application['id']}",
        json={
            "services": {
                "schedule": {
                    "sameTimeSelectedDays": True,
                    "selectedDaysOpen": "08:00",
                    "selectedDaysClose": "17:00",
                    "days": {"monday": {"isOpen": True}, "tuesday": {"isOpen": False}},
                }
            }
        },
    )
    assert response.status_code == 200, response.text
    days = response.json()["services"]["schedule"]["days"]
    assert days["monday"] == {"isOpen": True, "open": "08:00", "close": "17:00"}
    assert days["tuesday"] == {"isOpen": False, "open": "", "close": ""}
    # Sibling fields outside the update survive the merge.
    assert response.json()["companyName"] == "Roadside Towing Co"


def test_update_application_rejects_malformed_times(client, application):
    response = client.put(
        f"/api/v1/applications/{application['id']}",
        json={"services": {"schedule": {"everyDayOpen": "9 in the morning"}}},
    )
    assert response.status_code == 400
    assert "everyDayOpen" in response.json()["detail"]


def test_update_application_rejects_unknown_weekday(client, application):
    response = client.put(
        f"/api/v1/applications/{application['id']}",
        json={"services": {"schedule": {"days": {"caturday": {"isOpen": True}}}}},
    )
    assert response.status_code == 400


def test_update_application_rejects_blank_company_name(client, application):
    response = client.put(f"/api/v1/applications/{application['id']}", json={"companyName": "  "})
    assert response.status_code == 400


def test_schedule_view_reports_mode_and_controls(client, application):
    view = client.get(f"/api/v1/applications/{application['id']}/schedule").json()
    assert view["open247"] is False
    assert view["mode"] == "per_day"
    assert "days.monday.isOpen" in view["visible_controls"]
    assert view["effective_hours"]["monday"] is None


def test_schedule_changes_are_buffered_under_services(client, application):
    app_id = application["id"]
    response = client.post(
        f"/api/v1/applications/{app_id}/schedule/changes",
        json={"field_path": "sameEveryDay", "value": True},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["changes"] == [
        {"path": "services.schedule.sameEveryDay", "value": True},
        {"path": "services.schedule.sameTimeSelectedDays", "value": False},
    ]
    assert body["mode"] == "uniform"

    # Nothing is persisted until the buffer is committed.
    stored = client.get(f"/api/v1/applications/{app_id}").json()
    assert stored["services"]["schedule"]["sameEveryDay"] is False
    edits = client.get(f"/api/v1/applications/{app_id}/edits").json()
    assert edits["services"]["schedule"]["sameEveryDay"] is True
    assert "schedule" not in edits["services"]["schedule"]


def test_open247_change_maps_to_services_open247(client, application):
    app_id = application["id"]
    body = client.post(
        f"/api/v1/applications/{app_id}/schedule/changes",
        json={"field_path": "open247", "value": True},
    ).json()
    assert body["changes"] == [{"path": "services.open247", "value": True}]
    assert body["visible_controls"] == ["open247"]

    view = client.get(f"/api/v1/applications/{app_id}/schedule").json()
    assert view["mode"] == "always_open"


def test_hidden_schedule_control_is_rejected(client, application):
    response = client.post(
        f"/api/v1/applications/{application['id']}/schedule/changes",
        json={"field_path": "days.monday.open", "value": "08:00"},
    )
    assert response.status_code == 400


def test_end_to_end_uniform_hours_commit(client, application):
    app_id = application["id"]
    changes = [
        ("open247", True),
        ("open247", False),
        ("sameEveryDay", True),
        ("everyDayOpen", "09:00"),
        ("everyDayClose", "18:00"),
    ]
    for field_path, value in changes:
        response = client.post(
            f"/api/v1/applications/{app_id}/schedule/changes",
            json={"field_path": field_path, "value": value},
        )
        assert response.status_code == 200, response.text

    saved = client.post(f"/api/v1/applications/{app_id}/edits/commit")
    assert saved.status_code == 200, saved.text
    services = saved.json()["services"]
    assert services["open247"] is False
    assert services["schedule"]["sameEveryDay"] is True
    for day in WEEKDAYS:
        assert services["schedule"]["days"][day] == {"isOpen": True, "open": "09:00", "close": "18:00"}
    assert client.get(f"/api/v1/applications/{app_id}/edits").json() == {}

    view = client.get(f"/api/v1/applications/{app_id}/schedule").json()
    assert view["effective_hours"]["sunday"] == {"open": "09:00", "close": "18:00"}


def test_shared_subset_time_edit_reaches_the_open_days(client, application):
    app_id = application["id"]
    client.put(
        f"/api/v1/applications/{app_id}",
        json={
            "services": {
                "schedule": {
                    "sameTimeSelectedDays": True,
                    "selectedDaysOpen": "08:00",
                    "selectedDaysClose": "17:00",
                    "days": {"monday": {"isOpen": True}},
                }
            }
        },
    )

    response = client.post(
        f"/api/v1/applications/{app_id}/schedule/changes",
        json={"field_path": "everyDayOpen", "value": "10:00"},
    )
    assert response.status_code == 200, response.text
    view = client.get(f"/api/v1/applications/{app_id}/schedule").json()
    assert view["effective_hours"]["monday"] == {"open": "10:00", "close": "17:00"}

    saved = client.post(f"/api/v1/applications/{app_id}/edits/commit").json()
    schedule = saved["services"]["schedule"]
    assert schedule["days"]["monday"] == {"isOpen": True, "open": "10:00", "close": "17:00"}
    assert schedule["selectedDaysOpen"] == schedule["everyDayOpen"] == "10:00"


def test_field_edit_commit_round_trip(client, application):
    app_id = application["id"]
    for path, value in [
        ("services.schedule.sameTimeSelectedDays", True),
        ("services.schedule.selectedDaysOpen", "07:00"),
        ("services.schedule.selectedDaysClose", "19:00"),
        ("services.schedule.days.friday.isOpen", True),
        ("services.lightDuty", True),
        ("companyName", "Roadside Towing LLC"),
    ]:
        response = client.post(f"/api/v1/applications/{app_id}/edits", json={"path": path, "value": value})
        assert response.status_code == 200, response.text

    saved = client.post(f"/api/v1/applications/{app_id}/edits/commit").json()
    assert saved["companyName"] == "Roadside Towing LLC"
    assert saved["services"]["lightDuty"] is True
    assert saved["services"]["schedule"]["days"]["friday"] == {"isOpen": True, "open": "07:00", "close": "19:00"}
    assert saved["services"]["schedule"]["days"]["thursday"]["isOpen"] is False


def test_field_edit_rejects_unknown_paths(client, application):
    app_id = application["id"]
    for path in ("services.schedule.schedule.sameEveryDay", "services", "nickname", "companyName.first"):
        response = client.post(f"/api/v1/applications/{app_id}/edits", json={"path": path, "value": True})
        assert response.status_code == 400, path


def test_commit_with_invalid_buffered_time_keeps_the_buffer(client, application):
    app_id = application["id"]
    client.post(f"/api/v1/applications/{app_id}/edits", json={"path": "services.schedule.everyDayOpen", "value": "25:00"})
    response = client.post(f"/api/v1/applications/{app_id}/edits/commit")
    assert response.status_code == 400
    assert client.get(f"/api/v1/applications/{app_id}/edits").json() != {}


def test_discard_edits(client, application):
    app_id = application["id"]
    client.post(f"/api/v1/applications/{app_id}/edits", json={"path": "step", "value": 2})
    assert client.delete(f"/api/v1/applications/{app_id}/edits").json() == {"ok": True, "discarded": True}
    assert client.get(f"/api/v1/applications/{app_id}/edits").json() == {}


def test_deleting_an_application_drops_its_pending_edits(client, application):
    app_id = application["id"]
    client.post(f"/api/v1/applications/{app_id}/edits", json={"path": "step", "value": 3})
    assert app_id in application_edits.record_ids()

    assert client.delete(f"/api/v1/applications/{app_id}").json() == {"ok": True}
    assert app_id not in application_edits.record_ids()
    assert client.get(f"/api/v1/applications/{app_id}").status_code == 404
