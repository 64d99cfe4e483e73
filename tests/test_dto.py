import json

from svcdemo.dto import HelloResponse, Response, error_response, success_response


def test_success_response_envelope():
    resp = success_response({"k": 1})
    assert resp.code == 0
    assert resp.message == "success"
    assert resp.data == {"k": 1}


def test_success_response_serializes_nested_payload():
    body = success_response(HelloResponse(message="Hello World")).to_dict()
    assert body == {"code": 0, "message": "success", "data": {"message": "Hello World"}}


def test_error_response_omits_data():
    body = error_response(10001, "failed to call user service").to_dict()
    assert body == {"code": 10001, "message": "failed to call user service"}
    assert "data" not in body


def test_response_dict_round_trips_through_json():
    resp = success_response(HelloResponse(message="hi"))
    decoded = json.loads(json.dumps(resp.to_dict()))
    rebuilt = Response(
        code=decoded["code"],
        message=decoded["message"],
        data=HelloResponse(**decoded["data"]),
    )
    assert rebuilt == resp


def test_plain_data_is_kept_as_is():
    body = Response(code=0, message="success", data=[1, 2]).to_dict()
    assert body["data"] == [1, 2]


def test_hello_response_to_dict():
    assert HelloResponse(message="Hello World").to_dict() == {"message": "Hello World"}