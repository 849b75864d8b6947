import asyncio
import json

from push_dispatch.function import main as function_main


def test_function_success(dispatcher, make_context):
    context = make_context(body=json.dumps({"targetUserId": "u1", "title": "Hi", "body": "there"}))

    response = asyncio.run(function_main.main(context, dispatcher=dispatcher))

    assert response.status_code == 200
    assert response.payload["successCount"] == 1
    assert context.logs == ["Notification sent. Success: 1, Failures: 0."]


def test_function_accepts_decoded_body(dispatcher, make_context):
    context = make_context(body={"targetUserId": "u1", "title": "Hi", "body": "there", "data": {"screen": "chat"}})

    response = asyncio.run(function_main.main(context, dispatcher=dispatcher))

    assert response.status_code == 200


def test_function_rejects_get(dispatcher, make_context):
    context = make_context(method="GET")

    response = asyncio.run(function_main.main(context, dispatcher=dispatcher))

    assert response.status_code == 405
    assert response.payload == {"success": False, "error": "Only POST requests are allowed."}
    assert context.errors


def test_function_invalid_json(dispatcher, make_context):
    context = make_context(body="{oops")

    response = asyncio.run(function_main.main(context, dispatcher=dispatcher))

    assert response.status_code == 400
    assert response.payload["error"] == "Invalid JSON body."


def test_function_reports_init_failure(monkeypatch, settings, make_context):
    settings.strict_credentials = True
    monkeypatch.setattr(function_main, "settings", settings)
    function_main.default_dispatcher.cache_clear()
    context = make_context(body=json.dumps({"targetUserId": "u1", "title": "Hi", "body": "there"}))

    response = asyncio.run(function_main.main(context))
    function_main.default_dispatcher.cache_clear()

    assert response.status_code == 500
    assert response.payload["error"].startswith("Firebase initialization failed")
    assert response.payload["error"].count("Firebase initialization failed") == 1
