# carryon/utils/api.py
from flask import jsonify


def api_ok(data=None, message=None):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def api_error(message, data=None):
    body = {"success": False, "message": message}
    if data is not None:
        body["data"] = data
    return body


# ---- standard API response format ------------------------------------------
def ok(data=None, message=None, status=200):
    r = jsonify(api_ok(data, message)); r.status_code = status; return r
def err(message, status=400, data=None):
    r = jsonify(api_error(message, data)); r.status_code = status; return r
