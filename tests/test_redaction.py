from chatbridge.services.redaction import redact_chat_payload, redact_headers


def test_redact_chat_payload_hides_content() -> None:
    payload = {
        "model": "gpt-test",
        "system": "you are helpful",
        "messages": [
            {"role": "system", "content": "you are helpful"},
            {"role": "user", "content": "my secret is 123"},
        ],
    }
    red = redact_chat_payload(payload)
    assert red["system"] == "<redacted>"
    assert red["messages"][0]["content"] == "<redacted>"
    assert red["messages"][1]["content"] == "<redacted>"
    assert red["messages"][1]["content_len"] == len("my secret is 123")
    assert "content_sha256" in red["messages"][1]
    assert payload["messages"][1]["content"] == "my secret is 123"


def test_redact_headers_masks_keys() -> None:
    red = redact_headers(
        {"Authorization": "Bearer sk-abcdefghijklmnop", "x-api-key": "ant-1234567890", "Accept": "*/*"}
    )
    assert "abcdefghijklmnop" not in red["Authorization"]
    assert red["Authorization"].startswith("Bearer ")
    assert "1234567890" not in red["x-api-key"]
    assert red["Accept"] == "*/*"
